from django.contrib import admin
from .models import Category, Product, ProductOptionGroup, ProductOption, ProductVariant, ProductVariantOption


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name']
    ordering = ['name']


class ProductOptionGroupInline(admin.TabularInline):
    model = ProductOptionGroup
    fk_name = 'product'
    extra = 0
    fields = ['name', 'parent_group', 'level', 'selection_type', 'is_required', 'sort_order']
    readonly_fields = ['level']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price', 'quantity', 'has_options', 'is_active', 'created_at']
    list_filter = ['is_active', 'has_options', 'is_on_sale', 'category', 'created_at']
    search_fields = ['name', 'description']
    ordering = ['name']
    readonly_fields = ['has_options', 'created_at', 'updated_at']
    inlines = [ProductOptionGroupInline]


class ProductOptionInline(admin.TabularInline):
    model = ProductOption
    extra = 0
    fields = ['name', 'price_type', 'price_value', 'stock', 'is_available', 'is_default', 'sort_order']


@admin.register(ProductOptionGroup)
class ProductOptionGroupAdmin(admin.ModelAdmin):
    list_display = ['name', 'product', 'parent_group', 'level', 'selection_type', 'is_required', 'sort_order']
    list_filter = ['level', 'selection_type', 'is_required']
    search_fields = ['name', 'product__name']
    ordering = ['product', 'level', 'sort_order']
    readonly_fields = ['level', 'created_at', 'updated_at']
    inlines = [ProductOptionInline]


@admin.register(ProductOption)
class ProductOptionAdmin(admin.ModelAdmin):
    list_display = ['name', 'group', 'price_type', 'price_value', 'stock', 'is_available', 'sort_order']
    list_filter = ['price_type', 'is_available', 'is_default']
    search_fields = ['name', 'group__name', 'group__product__name']
    ordering = ['group', 'sort_order', 'name']


class ProductVariantOptionInline(admin.TabularInline):
    model = ProductVariantOption
    extra = 0


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'product', 'stock', 'price_adjustment', 'is_active']
    list_filter = ['is_active', 'created_at']
    search_fields = ['sku', 'name', 'product__name']
    ordering = ['product', 'name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ProductVariantOptionInline]
