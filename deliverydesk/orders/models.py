import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from decimal import Decimal

from deliverydesk.catalog.models import Product, ProductVariant
from deliverydesk.drivers.models import Driver


def generate_order_number():
    return f"ORD-{timezone.localdate():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class Order(models.Model):
    """Customer order placed from the dashboard or the storefront"""
    SOURCE_ADMIN = 'ADMIN'
    SOURCE_CUSTOMER = 'CUSTOMER'
    SOURCE_CHOICES = [
        (SOURCE_ADMIN, 'Admin'),
        (SOURCE_CUSTOMER, 'Customer'),
    ]

    STATE_PLACED = 'PLACED'
    STATE_DELIVERING = 'DELIVERING'
    STATE_COMPLETED = 'COMPLETED'
    STATE_RETURNED = 'RETURNED'
    STATE_CANCELLED = 'CANCELLED'
    STATE_CHOICES = [
        (STATE_PLACED, 'Placed'),
        (STATE_DELIVERING, 'Delivering'),
        (STATE_COMPLETED, 'Completed'),
        (STATE_RETURNED, 'Returned'),
        (STATE_CANCELLED, 'Cancelled'),
    ]

    order_number = models.CharField(max_length=50, unique=True, default=generate_order_number)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=SOURCE_ADMIN, db_index=True)
    customer_name = models.CharField(max_length=200)
    customer_phone = models.CharField(max_length=30, db_index=True)
    customer_location = models.TextField(blank=True)
    province = models.CharField(max_length=100, default='Phnom Penh', db_index=True)
    remark = models.TextField(blank=True)
    state = models.CharField(max_length=20, choices=STATE_CHOICES, default=STATE_PLACED, db_index=True)
    subtotal_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    delivery_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))  # charged to customer
    company_delivery_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))  # paid to courier
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_paid = models.BooleanField(default=False)
    is_printed = models.BooleanField(default=False)
    printed_at = models.DateTimeField(null=True, blank=True)
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    deleted_driver_name = models.CharField(max_length=200, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    order_at = models.DateTimeField(default=timezone.now, db_index=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    returned_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    payment_proof = models.ImageField(upload_to='payment_proofs/%Y/%m/', null=True, blank=True)
    pickup_proof = models.ImageField(upload_to='pickup_proofs/%Y/%m/', null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    @property
    def driver_name(self):
        if self.driver is not None:
            return self.driver.name
        return self.deleted_driver_name or None

    class Meta:
        db_table = 'orders'
        ordering = ['-order_at', '-id']
        indexes = [
            models.Index(fields=['state', 'order_at'], name='orders_state_order_at_idx'),
            models.Index(fields=['driver', 'state'], name='orders_driver_state_idx'),
        ]


class OrderItem(models.Model):
    """Order line; product name, price and weight are snapshots taken when ordered"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    product_name = models.CharField(max_length=200)
    variant = models.ForeignKey(ProductVariant, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))  # unit price
    weight = models.DecimalField(max_digits=8, decimal_places=3, default=Decimal('0.000'))  # unit weight, kg
    option_details = models.JSONField(null=True, blank=True)

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"

    @property
    def line_total(self):
        return self.price * self.quantity

    class Meta:
        db_table = 'order_items'
        ordering = ['id']


class BlacklistPhone(models.Model):
    """Phone numbers that must not receive deliveries; stored as digits only"""
    phone = models.CharField(max_length=30, unique=True)
    reason = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='blacklisted_phones')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.phone

    def save(self, *args, **kwargs):
        from .pricing import normalize_phone
        self.phone = normalize_phone(self.phone)
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'blacklist_phones'
        ordering = ['-created_at']
