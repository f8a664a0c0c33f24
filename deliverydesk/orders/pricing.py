"""Order totals, courier cost and phone normalization"""
import re
from decimal import Decimal, InvalidOperation

PHNOM_PENH = 'Phnom Penh'

# (max kg inclusive, price) tiers; the last price applies above every tier
PHNOM_PENH_TIERS = [(Decimal('19'), Decimal('1.20')), (Decimal('39'), Decimal('2.00'))]
PHNOM_PENH_OVER = Decimal('2.80')
PROVINCE_TIERS = [(Decimal('20'), Decimal('1.20')), (Decimal('39'), Decimal('2.00'))]
PROVINCE_OVER = Decimal('2.70')


def to_decimal(value, default=None):
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def normalize_phone(phone):
    """Digits only"""
    return re.sub(r'[^0-9]', '', str(phone or ''))


def is_phnom_penh(province, pp_province=PHNOM_PENH):
    """Case and surrounding whitespace are ignored"""
    return (province or '').strip().lower() == (pp_province or '').strip().lower()


def company_delivery_price(province, total_weight, pp_province=PHNOM_PENH):
    """Courier cost by destination and total weight in kg"""
    weight = to_decimal(total_weight, Decimal('0'))
    if is_phnom_penh(province, pp_province):
        tiers, over = PHNOM_PENH_TIERS, PHNOM_PENH_OVER
    else:
        tiers, over = PROVINCE_TIERS, PROVINCE_OVER
    for limit, price in tiers:
        if weight <= limit:
            return price
    return over


def calculate_totals(items, province, delivery_price=None, company_delivery_override=None,
                     total_override=None, pp_province=PHNOM_PENH):
    """
    items: iterable of {quantity, price, weight} (unit price and unit weight).

    Company delivery price and total price use the overrides when given,
    otherwise company delivery comes from the weight tiers and
    total = subtotal + delivery price.
    """
    subtotal = Decimal('0')
    total_weight = Decimal('0')
    for item in items:
        quantity = int(item.get('quantity') or 0)
        subtotal += to_decimal(item.get('price'), Decimal('0')) * quantity
        total_weight += to_decimal(item.get('weight'), Decimal('0')) * quantity

    delivery = to_decimal(delivery_price, Decimal('0'))
    company = to_decimal(company_delivery_override)
    if company is None:
        company = company_delivery_price(province, total_weight, pp_province)
    total = to_decimal(total_override)
    if total is None:
        total = subtotal + delivery

    cents = Decimal('0.01')
    return {
        'subtotal_price': subtotal.quantize(cents),
        'total_weight': total_weight,
        'delivery_price': delivery.quantize(cents),
        'company_delivery_price': company.quantize(cents),
        'total_price': total.quantize(cents),
    }
