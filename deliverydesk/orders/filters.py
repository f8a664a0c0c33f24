import django_filters
from django.db.models import Q
from .models import Order

SORT_FIELDS = {
    'order_at': 'order_at',
    'created_at': 'created_at',
    'order_number': 'order_number',
    'customer_name': 'customer_name',
    'province': 'province',
    'state': 'state',
    'total_price': 'total_price',
    'assigned_at': 'assigned_at',
    'driver': 'driver__name',
}


def _as_bool(value):
    if isinstance(value, str):
        return value.lower() == 'true'
    return bool(value)


class OrderFilter(django_filters.FilterSet):
    """
    Filters for the order list and exports.

    Only dashboard (ADMIN) orders are listed unless `source` is given or
    `all_sources=true`.
    """
    search = django_filters.CharFilter(method='filter_search', label='Search')
    state = django_filters.CharFilter(method='filter_state', label='State (comma separated)')
    driver = django_filters.CharFilter(method='filter_driver', label='Driver id or "unassigned"')
    province = django_filters.CharFilter(field_name='province', lookup_expr='iexact')
    is_paid = django_filters.CharFilter(method='filter_is_paid', label='Paid')
    is_printed = django_filters.CharFilter(method='filter_is_printed', label='Printed')
    source = django_filters.CharFilter(method='filter_source', label='Source')
    all_sources = django_filters.CharFilter(method='filter_noop', label='Include every source')
    date_from = django_filters.DateFilter(field_name='order_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='order_at', lookup_expr='date__lte')

    class Meta:
        model = Order
        fields = ['search', 'state', 'driver', 'province', 'is_paid', 'is_printed', 'source',
                  'all_sources', 'date_from', 'date_to']

    @property
    def qs(self):
        queryset = super().qs
        params = self.data or {}
        if not params.get('source') and not _as_bool(params.get('all_sources', '')):
            queryset = queryset.filter(source=Order.SOURCE_ADMIN)
        return queryset

    def filter_search(self, queryset, name, value):
        if not value or not value.strip():
            return queryset
        value = value.strip()
        return queryset.filter(
            Q(order_number__icontains=value) |
            Q(customer_name__icontains=value) |
            Q(customer_phone__icontains=value) |
            Q(customer_location__icontains=value) |
            Q(province__icontains=value)
        )

    def filter_state(self, queryset, name, value):
        states = [s.strip().upper() for s in (value or '').split(',') if s.strip()]
        if not states:
            return queryset
        return queryset.filter(state__in=states)

    def filter_driver(self, queryset, name, value):
        if not value:
            return queryset
        if value == 'unassigned':
            return queryset.filter(driver__isnull=True)
        try:
            return queryset.filter(driver_id=int(value))
        except ValueError:
            return queryset.none()

    def filter_is_paid(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        return queryset.filter(is_paid=_as_bool(value))

    def filter_is_printed(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        return queryset.filter(is_printed=_as_bool(value))

    def filter_source(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(source=value.upper())

    def filter_noop(self, queryset, name, value):
        return queryset


def apply_sort(queryset, params):
    """`sort` is one of SORT_FIELDS, `direction` asc|desc (default desc)"""
    field = SORT_FIELDS.get(params.get('sort') or 'order_at', 'order_at')
    direction = (params.get('direction') or 'desc').lower()
    prefix = '' if direction == 'asc' else '-'
    return queryset.order_by(f'{prefix}{field}', f'{prefix}id')
