"""
Variant generation and stock operations for catalog products
"""
import logging
import re
import uuid

from django.db import IntegrityError, transaction

from deliverydesk.core.exceptions import BusinessRuleError
from .hierarchy import (
    combination_key, generate_combinations, variant_price_adjustment,
)
from .models import Product, ProductOptionGroup, ProductVariant, ProductVariantOption

logger = logging.getLogger(__name__)


class InsufficientStock(BusinessRuleError):
    default_detail = 'Insufficient stock for one or more items.'
    default_code = 'insufficient_stock'

    def __init__(self, shortages):
        self.shortages = shortages
        names = ', '.join(f"{s['name']} (requested {s['requested']}, available {s['available']})" for s in shortages)
        super().__init__(f"Insufficient stock: {names}")


class InvalidStockValue(BusinessRuleError):
    default_detail = 'Stock must be a whole number of zero or more.'
    default_code = 'invalid_stock'


def _option_row(option):
    return {
        'id': option.id,
        'name': option.name,
        'stock': option.stock,
        'price_type': option.price_type,
        'price_value': option.price_value,
        'is_available': option.is_available,
        'is_default': option.is_default,
        'sort_order': option.sort_order,
    }


def group_rows(product):
    """Option groups of a product as plain rows for the hierarchy helpers"""
    groups = ProductOptionGroup.objects.filter(product=product).prefetch_related('options')
    return [
        {
            'id': group.id,
            'name': group.name,
            'parent_group': group.parent_group_id,
            'level': group.level,
            'sort_order': group.sort_order,
            'selection_type': group.selection_type,
            'is_required': group.is_required,
            'options': [_option_row(option) for option in group.options.all()],
        }
        for group in groups
    ]


def variant_rows(product):
    variants = ProductVariant.objects.filter(product=product).prefetch_related('variant_options__option')
    return [variant_row(variant) for variant in variants]


def variant_row(variant):
    links = list(variant.variant_options.all())
    return {
        'id': variant.id,
        'sku': variant.sku,
        'name': variant.name,
        'stock': variant.stock,
        'is_active': variant.is_active,
        'price_adjustment': str(variant.price_adjustment),
        'has_base_option': any(link.option.price_type == 'BASE' for link in links),
        'option_ids': [link.option_id for link in links],
    }


def _sku_code(text, length):
    code = re.sub(r'[^A-Za-z0-9]', '', text or '').upper()
    return code[:length] or 'X'


def generate_sku(product, options):
    """SKU from the product name and option names, made unique with a random suffix if taken"""
    sku = f"{_sku_code(product.name, 4)}{product.id}-" + '-'.join(_sku_code(option['name'], 3) for option in options)
    sku = sku[:90]
    while ProductVariant.objects.filter(sku=sku).exists():
        sku = f"{sku[:85]}-{uuid.uuid4().hex[:4].upper()}"
    return sku


def parse_stock(value):
    """Whole number >= 0, or InvalidStockValue"""
    if isinstance(value, bool):
        raise InvalidStockValue()
    try:
        stock = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidStockValue()
    if stock < 0 or str(value).strip() not in (str(stock), f'+{stock}'):
        raise InvalidStockValue()
    return stock


def generate_variants(product):
    """
    Materialize one variant per option combination.

    Returns {created, updated, skipped, deactivated, errors}, each a list of
    variant summaries (errors carry a message).
    """
    result = {'created': [], 'updated': [], 'skipped': [], 'deactivated': [], 'errors': []}
    combinations = generate_combinations(group_rows(product))

    existing = {}
    for variant in ProductVariant.objects.filter(product=product).prefetch_related('variant_options'):
        key = combination_key(link.option_id for link in variant.variant_options.all())
        existing.setdefault(key, variant)

    produced = set()
    with transaction.atomic():
        for combination in combinations:
            key = combination_key(option['id'] for option in combination)
            produced.add(key)
            name = ' / '.join(option['name'] for option in combination)
            adjustment = variant_price_adjustment(product.price, combination)

            variant = existing.get(key)
            try:
                with transaction.atomic():
                    if variant is not None:
                        if variant.name == name and variant.price_adjustment == adjustment and variant.is_active:
                            result['skipped'].append(_summary(variant))
                            continue
                        variant.name = name
                        variant.price_adjustment = adjustment
                        variant.is_active = True
                        variant.save(update_fields=['name', 'price_adjustment', 'is_active', 'updated_at'])
                        result['updated'].append(_summary(variant))
                        continue

                    variant = ProductVariant.objects.create(
                        product=product,
                        sku=generate_sku(product, combination),
                        name=name,
                        stock=min(option['stock'] or 0 for option in combination),
                        price_adjustment=adjustment,
                    )
                    ProductVariantOption.objects.bulk_create([
                        ProductVariantOption(variant=variant, option_id=option['id'])
                        for option in combination
                    ])
                    result['created'].append(_summary(variant))
            except IntegrityError as e:
                logger.error(f"Variant generation failed for product {product.id} ({name}): {str(e)}")
                result['errors'].append({'name': name, 'option_ids': list(key), 'message': str(e)})

        for key, variant in existing.items():
            if key not in produced and variant.is_active:
                variant.is_active = False
                variant.save(update_fields=['is_active', 'updated_at'])
                result['deactivated'].append(_summary(variant))

    logger.info(
        f"Generated variants for product {product.id}: {len(result['created'])} created, "
        f"{len(result['updated'])} updated, {len(result['skipped'])} skipped, "
        f"{len(result['deactivated'])} deactivated, {len(result['errors'])} errors"
    )
    return result


def _summary(variant):
    return {
        'id': variant.id,
        'sku': variant.sku,
        'name': variant.name,
        'stock': variant.stock,
        'price_adjustment': str(variant.price_adjustment),
        'is_active': variant.is_active,
    }


def set_variant_stock(variant, stock):
    """Set absolute stock; returns the previous value"""
    stock = parse_stock(stock)
    previous = variant.stock
    variant.stock = stock
    variant.save(update_fields=['stock', 'updated_at'])
    return previous


def bulk_update_variant_stock(updates):
    """
    Apply [{variant_id, stock}, ...] independently.

    Returns {successful, failed, results}; one bad update does not stop the others.
    """
    results = []
    for update in updates or []:
        variant_id = update.get('variant_id') if isinstance(update, dict) else None
        entry = {'variant_id': variant_id, 'stock': update.get('stock') if isinstance(update, dict) else None}
        try:
            variant = ProductVariant.objects.get(pk=variant_id)
            previous = set_variant_stock(variant, entry['stock'])
            entry.update({'success': True, 'previous_stock': previous, 'stock': variant.stock})
        except (ProductVariant.DoesNotExist, ValueError, TypeError):
            entry.update({'success': False, 'message': 'Variant not found'})
        except InvalidStockValue as e:
            entry.update({'success': False, 'message': str(e.detail)})
        results.append(entry)

    successful = sum(1 for entry in results if entry['success'])
    return {'successful': successful, 'failed': len(results) - successful, 'results': results}


def _quantity(item):
    try:
        return int(item.get('quantity') or 0)
    except (TypeError, ValueError):
        return 0


def validate_stock_for_order(items):
    """Requested vs available stock for every item that names a variant"""
    # ids that are not numeric cannot match a variant and report no stock
    variant_ids = [item['variant_id'] for item in items if str(item.get('variant_id') or '').isdigit()]
    variants = ProductVariant.objects.in_bulk(variant_ids)

    results = []
    for item in items:
        variant_id = item.get('variant_id')
        if not variant_id:
            continue
        variant = variants.get(int(variant_id)) if str(variant_id).isdigit() else None
        available = variant.stock if variant is not None and variant.is_active else 0
        requested = _quantity(item)
        results.append({
            'product_id': item.get('product_id'),
            'variant_id': variant_id,
            'requested_quantity': requested,
            'available_stock': available,
            'is_valid': available >= requested,
        })
    return {'is_valid': all(r['is_valid'] for r in results), 'results': results}


def _aggregate(items):
    by_variant = {}
    by_product = {}
    for item in items:
        quantity = _quantity(item)
        if quantity <= 0:
            continue
        if item.get('variant_id'):
            variant_id = int(item['variant_id'])
            by_variant[variant_id] = by_variant.get(variant_id, 0) + quantity
        elif item.get('product_id'):
            product_id = int(item['product_id'])
            by_product[product_id] = by_product.get(product_id, 0) + quantity
    return by_variant, by_product


def reserve_stock(items):
    """
    Take stock for order items ({product_id, variant_id, quantity}).

    Variant items decrement the variant; items without a variant decrement
    product.quantity for products without options. Raises InsufficientStock
    without changing anything when any line is short.
    """
    by_variant, by_product = _aggregate(items)
    with transaction.atomic():
        variants = {v.id: v for v in ProductVariant.objects.select_for_update().filter(pk__in=by_variant)}
        products = {p.id: p for p in Product.objects.select_for_update().filter(pk__in=by_product, has_options=False)}

        shortages = []
        for variant_id, quantity in by_variant.items():
            variant = variants.get(variant_id)
            available = variant.stock if variant is not None else 0
            if available < quantity:
                shortages.append({'variant_id': variant_id, 'name': variant.name if variant else f'Variant {variant_id}',
                                  'requested': quantity, 'available': available})
        for product_id, quantity in by_product.items():
            product = products.get(product_id)
            if product is not None and product.quantity < quantity:
                shortages.append({'product_id': product_id, 'name': product.name,
                                  'requested': quantity, 'available': product.quantity})
        if shortages:
            raise InsufficientStock(shortages)

        for variant_id, quantity in by_variant.items():
            variant = variants[variant_id]
            variant.stock -= quantity
            variant.save(update_fields=['stock', 'updated_at'])
        for product_id, quantity in by_product.items():
            product = products.get(product_id)
            if product is not None:
                product.quantity -= quantity
                product.save(update_fields=['quantity', 'updated_at'])


def release_stock(items):
    """Give back stock taken by reserve_stock"""
    by_variant, by_product = _aggregate(items)
    with transaction.atomic():
        for variant in ProductVariant.objects.select_for_update().filter(pk__in=by_variant):
            variant.stock += by_variant[variant.id]
            variant.save(update_fields=['stock', 'updated_at'])
        for product in Product.objects.select_for_update().filter(pk__in=by_product, has_options=False):
            product.quantity += by_product[product.id]
            product.save(update_fields=['quantity', 'updated_at'])


def option_stock_from_variants(product):
    """option id -> summed stock of the active variants that contain it"""
    totals = {}
    for row in variant_rows(product):
        if not row['is_active']:
            continue
        for option_id in row['option_ids']:
            totals[option_id] = totals.get(option_id, 0) + row['stock']
    return totals
