from django.contrib import admin
from .models import Order, OrderItem, BlacklistPhone


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ['product', 'product_name', 'variant', 'quantity', 'price', 'weight', 'option_details']
    raw_id_fields = ['product', 'variant']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer_name', 'customer_phone', 'province', 'state', 'source',
                    'total_price', 'driver', 'is_paid', 'is_printed', 'order_at']
    list_filter = ['state', 'source', 'is_paid', 'is_printed', 'province', 'order_at']
    search_fields = ['order_number', 'customer_name', 'customer_phone', 'customer_location']
    ordering = ['-order_at']
    raw_id_fields = ['driver', 'created_by']
    readonly_fields = ['order_number', 'created_at', 'updated_at']
    inlines = [OrderItemInline]


@admin.register(BlacklistPhone)
class BlacklistPhoneAdmin(admin.ModelAdmin):
    list_display = ['phone', 'reason', 'created_by', 'created_at']
    list_filter = ['created_at']
    search_fields = ['phone', 'reason']
    ordering = ['-created_at']
    readonly_fields = ['created_at']
