import logging
from datetime import datetime

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from deliverydesk.core.cache_utils import (
    make_cache_key, DASHBOARD_PREFIX, DASHBOARD_CACHE_TTL, DASHBOARD_TODAY_CACHE_TTL,
)
from deliverydesk.core.permissions import permission_for
from deliverydesk.drivers.models import Driver
from deliverydesk.orders.models import Order, OrderItem
from . import stats

logger = logging.getLogger('deliverydesk.reports')

ORDER_ROW_FIELDS = ['id', 'state', 'province', 'total_price', 'delivery_price', 'company_delivery_price',
                    'driver_id', 'order_at']


def _parse_date(value, default):
    if not value:
        return default
    return datetime.strptime(value, '%Y-%m-%d').date()


def _orders_between(date_from, date_to):
    return Order.objects.filter(order_at__date__gte=date_from, order_at__date__lte=date_to)


def _order_rows(queryset):
    rows = []
    for row in queryset.values(*ORDER_ROW_FIELDS):
        row['order_date'] = timezone.localtime(row['order_at']).date()
        rows.append(row)
    return rows


def _cached(key_parts, date_to, builder):
    """Dashboard payloads live 5 minutes, 1 minute when the range reaches today"""
    cache_key = make_cache_key(DASHBOARD_PREFIX, *key_parts)
    data = cache.get(cache_key)
    if data is not None:
        logger.debug(f"Cache HIT for {key_parts[0]}: {cache_key}")
        return data

    logger.debug(f"Cache MISS for {key_parts[0]}: {cache_key}")
    data = builder()
    ttl = DASHBOARD_TODAY_CACHE_TTL if date_to >= timezone.localdate() else DASHBOARD_CACHE_TTL
    cache.set(cache_key, data, ttl)
    return data


def _period_params(request):
    period = request.query_params.get('period', 'current_day')
    if period not in stats.PERIODS:
        period = 'current_day'
    date_from, date_to = stats.period_range(period, timezone.localdate())
    return period, date_from, date_to


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_dashboard')])
def dashboard_stats(request):
    """Headline figures, per-driver breakdown and daily series for a date range (default today)"""
    today = timezone.localdate()
    try:
        date_from = _parse_date(request.query_params.get('date_from'), today)
        date_to = _parse_date(request.query_params.get('date_to'), today)
    except ValueError:
        return Response({'message': 'Dates must use the YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)
    if date_from > date_to:
        return Response({'message': 'date_from must not be after date_to'}, status=status.HTTP_400_BAD_REQUEST)

    def build():
        orders = _order_rows(_orders_between(date_from, date_to))
        drivers = list(Driver.objects.filter(is_active=True).values('id', 'name'))
        driver_rows, unassigned = stats.driver_breakdown(orders, drivers)
        logger.info(f"Dashboard stats built for {date_from} to {date_to}: {len(orders)} orders")
        return {
            'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
            'stats': stats.summarize_orders(orders, settings.PHNOM_PENH_PROVINCE),
            'drivers': driver_rows,
            'unassigned': unassigned,
            'daily': stats.daily_series(orders, date_from, date_to),
        }

    return Response(_cached(('stats', date_from.isoformat(), date_to.isoformat()), date_to, build))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_dashboard')])
def revenue_chart(request):
    period, date_from, date_to = _period_params(request)

    def build():
        orders = _order_rows(_orders_between(date_from, date_to))
        series = [{'date': p['date'], 'revenue': p['revenue']} for p in stats.daily_series(orders, date_from, date_to)]
        return {
            'period': period,
            'from': date_from.isoformat(),
            'to': date_to.isoformat(),
            'series': series,
            'total': sum((p['revenue'] for p in series), stats.ZERO),
        }

    return Response(_cached(('revenue', period, date_from.isoformat()), date_to, build))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_dashboard')])
def orders_chart(request):
    period, date_from, date_to = _period_params(request)

    def build():
        orders = _order_rows(_orders_between(date_from, date_to))
        series = [{'date': p['date'], 'orders': p['orders']} for p in stats.daily_series(orders, date_from, date_to)]
        return {
            'period': period,
            'from': date_from.isoformat(),
            'to': date_to.isoformat(),
            'series': series,
            'status_distribution': stats.status_distribution(stats.state_counts(orders)),
        }

    return Response(_cached(('orders', period, date_from.isoformat()), date_to, build))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_dashboard')])
def sales_report(request):
    """Daily orders, top selling products and status split for a named period"""
    period, date_from, date_to = _period_params(request)

    def build():
        queryset = _orders_between(date_from, date_to)
        orders = _order_rows(queryset)
        items = OrderItem.objects.filter(order__in=queryset).values('product_id', 'product_name', 'quantity', 'price')
        return {
            'period': period,
            'from': date_from.isoformat(),
            'to': date_to.isoformat(),
            'daily': stats.daily_series(orders, date_from, date_to),
            'top_products': stats.top_products(items),
            'status_distribution': stats.status_distribution(stats.state_counts(orders)),
        }

    return Response(_cached(('sales_report', period, date_from.isoformat()), date_to, build))
