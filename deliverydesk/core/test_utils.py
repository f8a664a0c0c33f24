"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from deliverydesk.core.permissions import ROLE_STAFF, default_permissions_for_role
from deliverydesk.catalog.models import (
    Category, Product, ProductOptionGroup, ProductOption, ProductVariant, ProductVariantOption,
)
from deliverydesk.drivers.models import Driver
from deliverydesk.orders.models import Order, OrderItem, BlacklistPhone
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='testpass123', role=ROLE_STAFF, permissions=None,
                    name=None, is_active=True):
        """Create a test user; permissions default to the role's set"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        if permissions is None:
            permissions = default_permissions_for_role(role)
        user = User.objects.create_user(
            username=email,
            email=email,
            password=password,
            name=name or email.split('@')[0],
            role=role,
            permissions=permissions,
            is_active=is_active,
        )
        return user

    @staticmethod
    def create_category(name=None, description=None, is_active=True):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}',
            is_active=is_active,
        )

    @staticmethod
    def create_product(name=None, price=None, category=None, quantity=100, weight=None, is_active=True):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        return Product.objects.create(
            name=name,
            price=price if price is not None else Decimal('10.00'),
            category=category,
            quantity=quantity,
            weight=weight if weight is not None else Decimal('1.000'),
            is_active=is_active,
        )

    @staticmethod
    def create_option_group(product, name=None, parent_group=None, sort_order=0,
                            selection_type=ProductOptionGroup.SELECTION_SINGLE, is_required=False):
        """Create a test option group"""
        group = ProductOptionGroup.objects.create(
            product=product,
            name=name or f'Group_{TestDataFactory.random_string(4)}',
            parent_group=parent_group,
            sort_order=sort_order,
            selection_type=selection_type,
            is_required=is_required,
        )
        product.refresh_has_options()
        return group

    @staticmethod
    def create_option(group, name=None, stock=10, price_type=ProductOption.PRICE_FREE,
                      price_value=None, sort_order=0, is_available=True, is_default=False):
        """Create a test option"""
        return ProductOption.objects.create(
            group=group,
            name=name or f'Option_{TestDataFactory.random_string(4)}',
            stock=stock,
            price_type=price_type,
            price_value=price_value,
            sort_order=sort_order,
            is_available=is_available,
            is_default=is_default,
        )

    @staticmethod
    def create_variant(product, options, stock=10, price_adjustment=None, sku=None, is_active=True):
        """Create a test variant linked to the given options"""
        variant = ProductVariant.objects.create(
            product=product,
            sku=sku or f'SKU-{TestDataFactory.random_string(8).upper()}',
            name=' / '.join(option.name for option in options),
            stock=stock,
            price_adjustment=price_adjustment if price_adjustment is not None else Decimal('0.00'),
            is_active=is_active,
        )
        for option in options:
            ProductVariantOption.objects.create(variant=variant, option=option)
        return variant

    @staticmethod
    def create_driver(name=None, phone=None, is_active=True):
        """Create a test driver"""
        if not name:
            name = f'Driver_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'0{random.randint(10000000, 99999999)}'
        return Driver.objects.create(name=name, phone=phone, is_active=is_active)

    @staticmethod
    def create_order(customer_name=None, customer_phone=None, province='Phnom Penh',
                     state=Order.STATE_PLACED, driver=None, subtotal_price=None,
                     delivery_price=None, company_delivery_price=None, total_price=None,
                     order_at=None, source=Order.SOURCE_ADMIN, created_by=None, is_paid=False):
        """Create a test order; totals default to subtotal + delivery"""
        subtotal_price = subtotal_price if subtotal_price is not None else Decimal('20.00')
        delivery_price = delivery_price if delivery_price is not None else Decimal('1.50')
        if total_price is None:
            total_price = subtotal_price + delivery_price
        return Order.objects.create(
            customer_name=customer_name or f'Customer_{TestDataFactory.random_string(6)}',
            customer_phone=customer_phone or f'0{random.randint(10000000, 99999999)}',
            customer_location='Street 1',
            province=province,
            state=state,
            driver=driver,
            subtotal_price=subtotal_price,
            delivery_price=delivery_price,
            company_delivery_price=company_delivery_price if company_delivery_price is not None else Decimal('1.20'),
            total_price=total_price,
            order_at=order_at or timezone.now(),
            source=source,
            created_by=created_by,
            is_paid=is_paid,
        )

    @staticmethod
    def create_order_item(order, product=None, quantity=1, price=None, variant=None, option_details=None):
        """Create a test order item"""
        if product is None:
            product = TestDataFactory.create_product()
        return OrderItem.objects.create(
            order=order,
            product=product,
            product_name=product.name,
            variant=variant,
            quantity=quantity,
            price=price if price is not None else product.price,
            weight=product.weight,
            option_details=option_details,
        )

    @staticmethod
    def create_blacklist(phone=None, reason='Test reason', created_by=None):
        """Create a test blacklist entry"""
        return BlacklistPhone.objects.create(
            phone=phone or f'0{random.randint(10000000, 99999999)}',
            reason=reason,
            created_by=created_by,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
