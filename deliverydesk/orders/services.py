"""
Order writes: creation with stock reservation, item replacement, state and
driver changes, deletion and print flags.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from deliverydesk.catalog.hierarchy import resolve_variant_price
from deliverydesk.catalog.models import Product, ProductOption, ProductVariant
from deliverydesk.catalog.services import reserve_stock, release_stock
from deliverydesk.core.cache_utils import cached_query, BLACKLIST_CACHE_TTL, BLACKLIST_PREFIX
from deliverydesk.core.cache_signals import suspend_cache_signals
from deliverydesk.core.exceptions import BusinessRuleError
from .lifecycle import apply_state, assign_driver, is_terminal, releases_stock
from .models import Order, OrderItem, BlacklistPhone
from .option_details import normalize_option_details
from .pricing import calculate_totals, normalize_phone

logger = logging.getLogger(__name__)

TOTAL_FIELDS = ('province', 'delivery_price', 'company_delivery_price', 'total_price')


class InvalidOrderItem(BusinessRuleError):
    default_detail = 'Order item is not valid.'
    default_code = 'invalid_order_item'


@cached_query(cache_ttl=BLACKLIST_CACHE_TTL, key_prefix=BLACKLIST_PREFIX)
def get_blacklist_entries():
    from .serializers import BlacklistPhoneSerializer
    entries = BlacklistPhone.objects.select_related('created_by')
    return list(BlacklistPhoneSerializer(entries, many=True).data)


def get_blacklisted_phones():
    return {entry['phone'] for entry in get_blacklist_entries()}


def is_blacklisted(phone, blacklisted=None):
    normalized = normalize_phone(phone)
    if not normalized:
        return False
    if blacklisted is None:
        blacklisted = get_blacklisted_phones()
    return normalized in blacklisted


def stock_rows(items):
    return [
        {'product_id': item.product_id, 'variant_id': item.variant_id, 'quantity': item.quantity}
        for item in items
    ]


def _variant_price(variant):
    has_base = variant.variant_options.filter(option__price_type=ProductOption.PRICE_BASE).exists()
    return resolve_variant_price(variant.product.price, variant.price_adjustment, has_base)


def resolve_items(raw_items, server_prices=False):
    """
    Turn validated item input ({product_id, variant_id, quantity, price,
    option_details}) into unsaved OrderItem rows.

    With server_prices the submitted price is ignored and the product or
    variant price is used; inactive products and variants are rejected.
    """
    product_ids = {item['product_id'] for item in raw_items}
    variant_ids = {item['variant_id'] for item in raw_items if item.get('variant_id')}
    products = Product.objects.in_bulk(product_ids)
    variants = ProductVariant.objects.select_related('product').in_bulk(variant_ids)

    rows = []
    for item in raw_items:
        product = products.get(item['product_id'])
        if product is None:
            raise InvalidOrderItem(f"Product {item['product_id']} not found")
        variant = None
        if item.get('variant_id'):
            variant = variants.get(item['variant_id'])
            if variant is None or variant.product_id != product.id:
                raise InvalidOrderItem(f"Variant {item['variant_id']} does not belong to {product.name}")

        if server_prices:
            if not product.is_active or (variant is not None and not variant.is_active):
                raise InvalidOrderItem(f"{product.name} is not available")
            price = _variant_price(variant) if variant is not None else product.price
        else:
            price = item.get('price')
            if price is None:
                price = _variant_price(variant) if variant is not None else product.price

        option_details = normalize_option_details(item.get('option_details'))
        if variant is not None:
            option_details = option_details or {'selections': []}
            option_details['variant_id'] = variant.id

        rows.append(OrderItem(
            product=product,
            product_name=product.name,
            variant=variant,
            quantity=item['quantity'],
            price=price,
            weight=product.weight,
            option_details=option_details,
        ))
    return rows


def _apply_totals(order, rows, overrides):
    totals = calculate_totals(
        [{'quantity': row.quantity, 'price': row.price, 'weight': row.weight} for row in rows],
        order.province,
        delivery_price=order.delivery_price,
        company_delivery_override=overrides.get('company_delivery_price'),
        total_override=overrides.get('total_price'),
        pp_province=settings.PHNOM_PENH_PROVINCE,
    )
    order.subtotal_price = totals['subtotal_price']
    order.delivery_price = totals['delivery_price']
    order.company_delivery_price = totals['company_delivery_price']
    order.total_price = totals['total_price']


def _save_items(order, rows):
    for row in rows:
        row.order = order
    OrderItem.objects.bulk_create(rows)
    reserve_stock(stock_rows(rows))


def create_order(fields, raw_items, user=None, source=Order.SOURCE_ADMIN, server_prices=False):
    """
    fields: validated order fields. company_delivery_price and total_price
    are treated as overrides when present.
    """
    fields = dict(fields)
    overrides = {key: fields.pop(key) for key in ('company_delivery_price', 'total_price') if fields.get(key) is not None}
    rows = resolve_items(raw_items, server_prices=server_prices)

    with transaction.atomic():
        order = Order(source=source, created_by=user if user and user.is_authenticated else None, **fields)
        _apply_totals(order, rows, overrides)
        order.save()
        _save_items(order, rows)

    logger.info(f"Created order {order.order_number} ({len(rows)} items, total {order.total_price})")
    return order


def update_order(order, fields, raw_items=None):
    """
    Update order fields; raw_items (when given) replaces every item and
    re-reserves stock. Totals are recomputed when items or any pricing
    input changed.
    """
    fields = dict(fields)
    overrides = {key: fields.pop(key) for key in ('company_delivery_price', 'total_price') if key in fields}
    recompute = raw_items is not None or any(key in fields or key in overrides for key in TOTAL_FIELDS)

    if raw_items is not None and is_terminal(order.state):
        raise BusinessRuleError(f"Items of a {order.state.lower()} order cannot be changed")

    with transaction.atomic():
        for key, value in fields.items():
            setattr(order, key, value)

        if raw_items is not None:
            # order.save() below invalidates the dashboard once for the whole swap
            with suspend_cache_signals():
                old_items = list(order.items.all())
                release_stock(stock_rows(old_items))
                order.items.all().delete()
                rows = resolve_items(raw_items)
                _save_items(order, rows)
        else:
            rows = list(order.items.all())

        if recompute:
            _apply_totals(order, rows, overrides)
        order.save()
    return order


def change_state(order, new_state, at=None):
    """Returns (changed, previous_state)"""
    previous = order.state
    with transaction.atomic():
        changed = apply_state(order, new_state, at)
        if not changed:
            return False, previous
        order.save()
        if releases_stock(previous, new_state):
            release_stock(stock_rows(order.items.all()))
    logger.info(f"Order {order.order_number} moved {previous} -> {new_state}")
    return True, previous


def set_driver(order, driver, assigned_at=None):
    previous_state = order.state
    assign_driver(order, driver, assigned_at)
    order.save()
    if previous_state != order.state:
        logger.info(f"Order {order.order_number} moved {previous_state} -> {order.state} by driver change")
    return order


def delete_order(order):
    """Delete the order, giving back stock unless it was already released"""
    with transaction.atomic():
        if not is_terminal(order.state):
            release_stock(stock_rows(order.items.all()))
        order.delete()


def mark_printed(order, at=None):
    order.is_printed = True
    order.printed_at = at or timezone.now()
    order.save(update_fields=['is_printed', 'printed_at', 'updated_at'])
    return order


def reset_print(order):
    order.is_printed = False
    order.printed_at = None
    order.save(update_fields=['is_printed', 'printed_at', 'updated_at'])
    return order
