import django_filters
from django.db.models import Q
from .models import Product, Category


def _as_bool(value):
    if isinstance(value, str):
        return value.lower() == 'true'
    return bool(value)


class ProductFilter(django_filters.FilterSet):
    """Filter for Product model using django-filter"""

    # Basic search - searches across name, description and category
    search = django_filters.CharFilter(method='filter_search', label='Search')

    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    is_active = django_filters.CharFilter(method='filter_active', label='Active')
    has_options = django_filters.CharFilter(method='filter_has_options', label='Has options')
    on_sale = django_filters.CharFilter(method='filter_on_sale', label='On sale')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Product
        fields = ['search', 'category', 'is_active', 'has_options', 'on_sale', 'min_price', 'max_price']

    def filter_search(self, queryset, name, value):
        """
        Multi-word search: every word must appear in the name, description or
        category name (any order, partial words allowed).
        """
        if not value or not value.strip():
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(description__icontains=word) |
                Q(category__name__icontains=word)
            )
        return queryset

    def filter_active(self, queryset, name, value):
        """Filter by active status (handles string 'true'/'false')"""
        if value is None or value == '':
            return queryset
        return queryset.filter(is_active=_as_bool(value))

    def filter_has_options(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        return queryset.filter(has_options=_as_bool(value))

    def filter_on_sale(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        return queryset.filter(is_on_sale=_as_bool(value))


class CategoryFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    is_active = django_filters.CharFilter(method='filter_active', label='Active')

    class Meta:
        model = Category
        fields = ['search', 'is_active']

    def filter_search(self, queryset, name, value):
        if not value or not value.strip():
            return queryset
        value = value.strip()
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))

    def filter_active(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        return queryset.filter(is_active=_as_bool(value))
