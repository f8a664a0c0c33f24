from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class Product(models.Model):
    """Product master"""
    BANNER_TYPE_CHOICES = [
        ('', 'None'),
        ('NEW', 'New'),
        ('SALE', 'Sale'),
        ('HOT', 'Hot'),
        ('LIMITED', 'Limited'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    original_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_on_sale = models.BooleanField(default=False)
    quantity = models.IntegerField(default=0, validators=[MinValueValidator(0)])  # stock for products without options
    weight = models.DecimalField(max_digits=8, decimal_places=3, default=Decimal('0.000'))  # kg
    image_url = models.URLField(blank=True)
    banner_text = models.CharField(max_length=100, blank=True)
    banner_color = models.CharField(max_length=20, blank=True)
    banner_type = models.CharField(max_length=20, choices=BANNER_TYPE_CHOICES, blank=True)
    note = models.TextField(blank=True)
    has_options = models.BooleanField(default=False)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def refresh_has_options(self):
        has_options = self.option_groups.exists()
        if has_options != self.has_options:
            self.has_options = has_options
            self.save(update_fields=['has_options', 'updated_at'])

    class Meta:
        db_table = 'products'
        ordering = ['-updated_at', '-created_at']


class ProductOptionGroup(models.Model):
    """A leveled group of options; groups nest through parent_group"""
    SELECTION_SINGLE = 'SINGLE'
    SELECTION_MULTIPLE = 'MULTIPLE'
    SELECTION_TYPE_CHOICES = [
        (SELECTION_SINGLE, 'Single'),
        (SELECTION_MULTIPLE, 'Multiple'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='option_groups')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    selection_type = models.CharField(max_length=20, choices=SELECTION_TYPE_CHOICES, default=SELECTION_SINGLE)
    is_required = models.BooleanField(default=False)
    sort_order = models.IntegerField(default=0)
    parent_group = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='child_groups')
    level = models.PositiveIntegerField(default=1)  # 1=Parent (Size), 2=Child (Color), 3=Grandchild (Material)
    is_parent = models.BooleanField(default=False)
    image_url = models.URLField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.name} (L{self.level})"

    def save(self, *args, **kwargs):
        """Level always follows the parent chain"""
        self.level = (self.parent_group.level + 1) if self.parent_group_id else 1
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'product_option_groups'
        ordering = ['level', 'sort_order', 'name']


class ProductOption(models.Model):
    """Selectable option inside a group, carrying stock and a price rule"""
    PRICE_FREE = 'FREE'
    PRICE_BASE = 'BASE'
    PRICE_FIXED = 'FIXED'
    PRICE_PERCENTAGE = 'PERCENTAGE'
    PRICE_TYPE_CHOICES = [
        (PRICE_FREE, 'Free'),
        (PRICE_BASE, 'Base price'),
        (PRICE_FIXED, 'Fixed amount'),
        (PRICE_PERCENTAGE, 'Percentage'),
    ]

    group = models.ForeignKey(ProductOptionGroup, on_delete=models.CASCADE, related_name='options')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True)
    price_type = models.CharField(max_length=20, choices=PRICE_TYPE_CHOICES, default=PRICE_BASE)
    price_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_default = models.BooleanField(default=False)
    is_available = models.BooleanField(default=True)
    stock = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.group.name}: {self.name}"

    def save(self, *args, **kwargs):
        if self.price_type == self.PRICE_FREE:
            self.price_value = None
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'product_options'
        ordering = ['sort_order', 'name']


class ProductVariant(models.Model):
    """Materialized combination of one option per group along a path"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    sku = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=255)  # e.g. "Large / Red"
    stock = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    price_adjustment = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True)
    options = models.ManyToManyField(ProductOption, through='ProductVariantOption', related_name='variants')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.name}"

    class Meta:
        db_table = 'product_variants'
        ordering = ['name']


class ProductVariantOption(models.Model):
    variant = models.ForeignKey(ProductVariant, on_delete=models.CASCADE, related_name='variant_options')
    option = models.ForeignKey(ProductOption, on_delete=models.CASCADE, related_name='variant_links')

    class Meta:
        db_table = 'product_variant_options'
        unique_together = [['variant', 'option']]
