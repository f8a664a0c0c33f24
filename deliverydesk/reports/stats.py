"""
Dashboard figures computed from plain order rows.

An order row is a dict with state, province, total_price, delivery_price,
company_delivery_price, driver_id and order_date.
"""
import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal

from deliverydesk.orders.pricing import is_phnom_penh

PLACED = 'PLACED'
DELIVERING = 'DELIVERING'
COMPLETED = 'COMPLETED'
RETURNED = 'RETURNED'
CANCELLED = 'CANCELLED'

STATUS_SLICES = [
    (PLACED, 'Placed', '#3B82F6'),
    (DELIVERING, 'Delivering', '#F59E0B'),
    (COMPLETED, 'Completed', '#10B981'),
    (RETURNED, 'Returned', '#EF4444'),
    (CANCELLED, 'Cancelled', '#6B7280'),
]

PERIODS = ['current_day', 'current_month', 'last_month', 'last_3_months', 'last_6_months', 'current_year']

ZERO = Decimal('0.00')


def _money(value):
    if value is None or value == '':
        return ZERO
    return Decimal(str(value))


def _sum(orders, field):
    return sum((_money(o.get(field)) for o in orders), ZERO)


def _is_pp(order, pp_province):
    return is_phnom_penh(order.get('province'), pp_province)


def state_counts(orders):
    counts = {state: 0 for state, _, _ in STATUS_SLICES}
    for order in orders:
        if order.get('state') in counts:
            counts[order['state']] += 1
    return counts


def summarize_orders(orders, pp_province='Phnom Penh'):
    """Order counts and revenue/delivery totals; returned orders do not count as revenue"""
    orders = list(orders)
    counts = state_counts(orders)
    kept = [o for o in orders if o.get('state') != RETURNED]
    completed = [o for o in orders if o.get('state') == COMPLETED]

    revenue_pp = _sum([o for o in kept if _is_pp(o, pp_province)], 'total_price')
    revenue_province = _sum([o for o in kept if not _is_pp(o, pp_province)], 'total_price')
    completed_pp = _sum([o for o in completed if _is_pp(o, pp_province)], 'total_price')
    completed_province = _sum([o for o in completed if not _is_pp(o, pp_province)], 'total_price')

    customer_delivery = _sum(orders, 'delivery_price')
    company_delivery = _sum(orders, 'company_delivery_price')
    customer_delivery_completed = _sum(completed, 'delivery_price')
    company_delivery_completed = _sum(completed, 'company_delivery_price')

    return {
        'total_orders': len(orders),
        'placed_orders': counts[PLACED],
        'delivering_orders': counts[DELIVERING],
        'completed_orders': counts[COMPLETED],
        'returned_orders': counts[RETURNED],
        'cancelled_orders': counts[CANCELLED],
        'total_revenue': revenue_pp + revenue_province,
        'total_revenue_with_returns': _sum(orders, 'total_price'),
        'total_revenue_pp': revenue_pp,
        'total_revenue_province': revenue_province,
        'total_revenue_completed': completed_pp + completed_province,
        'total_revenue_pp_completed': completed_pp,
        'total_revenue_province_completed': completed_province,
        'customer_delivery': customer_delivery,
        'company_delivery': company_delivery,
        'profit_delivery': customer_delivery - company_delivery,
        'customer_delivery_completed': customer_delivery_completed,
        'company_delivery_completed': company_delivery_completed,
        'profit_delivery_completed': customer_delivery_completed - company_delivery_completed,
    }


def _driver_bucket(driver_id, name):
    return {
        'id': driver_id,
        'name': name,
        'total': 0,
        'delivering': 0,
        'completed': 0,
        'returned': 0,
        'delivery': ZERO,
        'total_amount': ZERO,
    }


def driver_breakdown(orders, drivers):
    """
    Per-driver counts plus an 'unassigned' bucket.

    drivers: rows with id and name (the active drivers). Orders whose driver
    is not in that list fall into the unassigned bucket. Delivery fee and
    amount only add up for COMPLETED orders.

    Returns (driver_rows, unassigned_row).
    """
    buckets = {}
    for driver in drivers:
        buckets[driver['id']] = _driver_bucket(driver['id'], driver['name'])
    unassigned = _driver_bucket('unassigned', 'Unassigned')

    for order in orders:
        bucket = buckets.get(order.get('driver_id'), unassigned)
        bucket['total'] += 1
        state = order.get('state')
        if state == DELIVERING:
            bucket['delivering'] += 1
        elif state == COMPLETED:
            bucket['completed'] += 1
            bucket['delivery'] += _money(order.get('delivery_price'))
            bucket['total_amount'] += _money(order.get('total_price'))
        elif state == RETURNED:
            bucket['returned'] += 1

    return list(buckets.values()), unassigned


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def daily_series(orders, date_from, date_to):
    """One point per day from date_from to date_to inclusive, zero-filled"""
    per_day = {}
    for order in orders:
        day = _as_date(order.get('order_date'))
        if day is None:
            continue
        point = per_day.setdefault(day, {'orders': 0, 'revenue': ZERO})
        point['orders'] += 1
        if order.get('state') != RETURNED:
            point['revenue'] += _money(order.get('total_price'))

    series = []
    day = date_from
    while day <= date_to:
        point = per_day.get(day, {'orders': 0, 'revenue': ZERO})
        series.append({'date': day.isoformat(), 'orders': point['orders'], 'revenue': point['revenue']})
        day += timedelta(days=1)
    return series


def top_products(items, limit=10):
    """items: rows with product_id, product_name, quantity and price (unit)"""
    totals = {}
    for item in items:
        key = item.get('product_id') or item.get('product_name')
        row = totals.setdefault(key, {
            'id': item.get('product_id'),
            'name': item.get('product_name'),
            'quantity': 0,
            'revenue': ZERO,
        })
        quantity = int(item.get('quantity') or 0)
        row['quantity'] += quantity
        row['revenue'] += _money(item.get('price')) * quantity

    ranked = sorted(totals.values(), key=lambda row: (-row['quantity'], str(row['name'])))
    return ranked[:limit] if limit else ranked


def status_distribution(counts):
    return [
        {'name': name, 'value': counts.get(state, 0), 'color': color}
        for state, name, color in STATUS_SLICES
        if counts.get(state, 0) > 0
    ]


def _shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_end(year, month):
    return date(year, month, calendar.monthrange(year, month)[1])


def period_range(period, today):
    """(start, end) dates for a named period; unknown names mean the current day"""
    if period == 'current_month':
        return today.replace(day=1), _month_end(today.year, today.month)
    if period == 'last_month':
        year, month = _shift_month(today.year, today.month, -1)
        return date(year, month, 1), _month_end(year, month)
    if period in ('last_3_months', 'last_6_months'):
        back = 2 if period == 'last_3_months' else 5
        year, month = _shift_month(today.year, today.month, -back)
        return date(year, month, 1), _month_end(today.year, today.month)
    if period == 'current_year':
        return date(today.year, 1, 1), date(today.year, 12, 31)
    return today, today
