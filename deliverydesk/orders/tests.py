"""
Test suite for Orders module
Tests: pricing, state machine, option details, order services, order and blacklist endpoints
"""
import io
import json
import tempfile
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from PIL import Image
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, SimpleTestCase, override_settings
from rest_framework import status

from deliverydesk.catalog.services import InsufficientStock
from deliverydesk.core.models import AuditLog
from deliverydesk.core.permissions import ROLE_ADMIN, ROLE_STAFF
from deliverydesk.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from deliverydesk.drivers.models import Driver
from deliverydesk.orders import lifecycle
from deliverydesk.orders.models import Order, BlacklistPhone
from deliverydesk.orders.option_details import normalize_option_details, describe_item, format_selections
from deliverydesk.orders.pricing import calculate_totals, company_delivery_price, normalize_phone
from deliverydesk.orders.services import (
    InvalidOrderItem, create_order, change_state, delete_order, update_order,
)


def png_upload(name):
    buffer = io.BytesIO()
    Image.new('RGB', (4, 4), 'white').save(buffer, format='PNG')
    return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')


class PricingTests(SimpleTestCase):
    """Courier cost tiers and order totals"""

    def test_phnom_penh_tiers(self):
        self.assertEqual(company_delivery_price('Phnom Penh', 19), Decimal('1.20'))
        self.assertEqual(company_delivery_price('Phnom Penh', Decimal('19.5')), Decimal('2.00'))
        self.assertEqual(company_delivery_price('Phnom Penh', 39), Decimal('2.00'))
        self.assertEqual(company_delivery_price('Phnom Penh', 40), Decimal('2.80'))

    def test_province_tiers(self):
        self.assertEqual(company_delivery_price('Kandal', 20), Decimal('1.20'))
        self.assertEqual(company_delivery_price('Kandal', Decimal('20.5')), Decimal('2.00'))
        self.assertEqual(company_delivery_price('Kandal', 39), Decimal('2.00'))
        self.assertEqual(company_delivery_price('Kandal', 40), Decimal('2.70'))

    def test_calculate_totals(self):
        items = [
            {'quantity': 2, 'price': '5.00', 'weight': '1.5'},
            {'quantity': 1, 'price': '3.50', 'weight': '2'},
        ]
        totals = calculate_totals(items, 'Phnom Penh', delivery_price='1.50')
        self.assertEqual(totals['subtotal_price'], Decimal('13.50'))
        self.assertEqual(totals['total_weight'], Decimal('5.0'))
        self.assertEqual(totals['company_delivery_price'], Decimal('1.20'))
        self.assertEqual(totals['total_price'], Decimal('15.00'))

    def test_overrides_win(self):
        items = [{'quantity': 30, 'price': '1.00', 'weight': '1'}]
        totals = calculate_totals(items, 'Kandal', delivery_price='2', company_delivery_override='0.50',
                                  total_override='25')
        self.assertEqual(totals['subtotal_price'], Decimal('30.00'))
        self.assertEqual(totals['company_delivery_price'], Decimal('0.50'))
        self.assertEqual(totals['total_price'], Decimal('25.00'))

    def test_heavy_order_without_override(self):
        items = [{'quantity': 30, 'price': '1.00', 'weight': '1.5'}]
        totals = calculate_totals(items, 'Kandal')
        self.assertEqual(totals['company_delivery_price'], Decimal('2.70'))
        self.assertEqual(totals['delivery_price'], Decimal('0.00'))
        self.assertEqual(totals['total_price'], Decimal('30.00'))

    def test_normalize_phone(self):
        self.assertEqual(normalize_phone('+855 12-345 678'), '85512345678')
        self.assertEqual(normalize_phone(None), '')


class LifecycleTests(SimpleTestCase):
    """State machine on unsaved orders"""

    def setUp(self):
        self.driver = Driver(name='Dara', phone='012000111', is_active=True)

    def test_allowed_transition_sets_timestamp(self):
        order = Order(state=Order.STATE_DELIVERING)
        self.assertTrue(lifecycle.apply_state(order, Order.STATE_COMPLETED))
        self.assertEqual(order.state, Order.STATE_COMPLETED)
        self.assertIsNotNone(order.completed_at)

    def test_same_state_is_noop(self):
        order = Order(state=Order.STATE_PLACED)
        self.assertFalse(lifecycle.apply_state(order, Order.STATE_PLACED))

    def test_placed_cannot_complete(self):
        order = Order(state=Order.STATE_PLACED)
        with self.assertRaises(lifecycle.InvalidTransition):
            lifecycle.apply_state(order, Order.STATE_COMPLETED)
        self.assertEqual(order.state, Order.STATE_PLACED)

    def test_terminal_states_accept_nothing(self):
        for state in (Order.STATE_COMPLETED, Order.STATE_RETURNED, Order.STATE_CANCELLED):
            order = Order(state=state)
            with self.assertRaises(lifecycle.InvalidTransition):
                lifecycle.apply_state(order, Order.STATE_PLACED)

    def test_unknown_state(self):
        with self.assertRaises(lifecycle.InvalidTransition):
            lifecycle.apply_state(Order(state=Order.STATE_PLACED), 'LOST')

    def test_releases_stock(self):
        self.assertTrue(lifecycle.releases_stock(Order.STATE_DELIVERING, Order.STATE_RETURNED))
        self.assertTrue(lifecycle.releases_stock(Order.STATE_PLACED, Order.STATE_CANCELLED))
        self.assertFalse(lifecycle.releases_stock(Order.STATE_DELIVERING, Order.STATE_COMPLETED))

    def test_assign_moves_to_delivering(self):
        order = Order(state=Order.STATE_PLACED)
        at = datetime(2024, 5, 1, 9, 30, tzinfo=dt_timezone.utc)
        lifecycle.assign_driver(order, self.driver, at)
        self.assertEqual(order.state, Order.STATE_DELIVERING)
        self.assertEqual(order.assigned_at, at)
        self.assertEqual(order.driver_name, 'Dara')

    def test_unassign_moves_back_and_keeps_assigned_at(self):
        order = Order(state=Order.STATE_PLACED)
        lifecycle.assign_driver(order, self.driver)
        assigned_at = order.assigned_at
        lifecycle.assign_driver(order, None)
        self.assertEqual(order.state, Order.STATE_PLACED)
        self.assertIsNone(order.driver)
        self.assertEqual(order.assigned_at, assigned_at)

    def test_inactive_driver_rejected(self):
        self.driver.is_active = False
        with self.assertRaises(lifecycle.InactiveDriver):
            lifecycle.assign_driver(Order(state=Order.STATE_PLACED), self.driver)

    def test_terminal_order_keeps_driver(self):
        with self.assertRaises(lifecycle.InvalidTransition):
            lifecycle.assign_driver(Order(state=Order.STATE_COMPLETED), self.driver)


class OptionDetailsTests(SimpleTestCase):

    def test_legacy_list_is_normalized(self):
        legacy = [{'groupId': 1, 'groupName': 'Size', 'selectionType': 'SINGLE',
                   'selectedOptions': [{'id': 3, 'name': 'Large', 'priceType': 'FIXED', 'priceValue': 1.5}]}]
        details = normalize_option_details(legacy)
        self.assertEqual(details['selections'][0]['group_name'], 'Size')
        self.assertEqual(details['selections'][0]['selected_options'][0]['price_type'], 'FIXED')

    def test_empty_values(self):
        self.assertIsNone(normalize_option_details(None))
        self.assertIsNone(normalize_option_details([]))
        self.assertEqual(format_selections('not json'), '')

    def test_describe_item(self):
        details = {'selections': [
            {'group_name': 'Size', 'selected_options': [{'name': 'Large'}]},
            {'group_name': 'Toppings', 'selected_options': [{'name': 'Cheese'}, {'name': 'Ham'}]},
            {'group_name': 'Empty', 'selected_options': []},
        ]}
        self.assertEqual(describe_item('Pizza', 2, details), 'Pizza (x2) [Size: Large | Toppings: Cheese, Ham]')
        self.assertEqual(describe_item('Water', 1), 'Water (x1)')


class OrderServiceTests(TestCase):
    """Order writes and stock reservation"""

    def setUp(self):
        self.product = TestDataFactory.create_product(name='Shirt', price=Decimal('10.00'))
        group = TestDataFactory.create_option_group(self.product, name='Size')
        small = TestDataFactory.create_option(group, name='Small')
        self.variant = TestDataFactory.create_variant(self.product, [small], stock=5)
        self.plain = TestDataFactory.create_product(name='Water', price=Decimal('1.00'), quantity=100)

    def _fields(self, **overrides):
        fields = {'customer_name': 'Sok', 'customer_phone': '012345678', 'province': 'Phnom Penh',
                  'delivery_price': Decimal('1.50')}
        fields.update(overrides)
        return fields

    def test_create_reserves_stock_and_computes_totals(self):
        order = create_order(self._fields(), [
            {'product_id': self.product.id, 'variant_id': self.variant.id, 'quantity': 2},
            {'product_id': self.plain.id, 'quantity': 3, 'price': Decimal('1.00')},
        ])
        self.variant.refresh_from_db()
        self.plain.refresh_from_db()
        self.assertEqual(self.variant.stock, 3)
        self.assertEqual(self.plain.quantity, 97)
        self.assertEqual(order.subtotal_price, Decimal('23.00'))
        self.assertEqual(order.total_price, Decimal('24.50'))
        self.assertEqual(order.company_delivery_price, Decimal('1.20'))
        item = order.items.get(variant=self.variant)
        self.assertEqual(item.option_details['variant_id'], self.variant.id)
        self.assertTrue(order.order_number.startswith('ORD-'))

    def test_insufficient_stock_creates_nothing(self):
        with self.assertRaises(InsufficientStock):
            create_order(self._fields(), [
                {'product_id': self.product.id, 'variant_id': self.variant.id, 'quantity': 6},
            ])
        self.assertEqual(Order.objects.count(), 0)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_cancel_releases_stock(self):
        order = create_order(self._fields(), [
            {'product_id': self.product.id, 'variant_id': self.variant.id, 'quantity': 2},
        ])
        change_state(order, Order.STATE_CANCELLED)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)
        self.assertIsNotNone(order.cancelled_at)

    def test_delete_placed_order_releases_stock(self):
        order = create_order(self._fields(), [
            {'product_id': self.product.id, 'variant_id': self.variant.id, 'quantity': 2},
        ])
        delete_order(order)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_delete_completed_order_keeps_stock_taken(self):
        order = create_order(self._fields(), [
            {'product_id': self.product.id, 'variant_id': self.variant.id, 'quantity': 2},
        ])
        change_state(order, Order.STATE_DELIVERING)
        change_state(order, Order.STATE_COMPLETED)
        delete_order(order)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 3)

    def test_update_replaces_items(self):
        order = create_order(self._fields(), [{'product_id': self.plain.id, 'quantity': 2}])
        update_order(order, {}, [{'product_id': self.plain.id, 'quantity': 5, 'price': Decimal('2.00')}])
        self.plain.refresh_from_db()
        self.assertEqual(self.plain.quantity, 95)
        self.assertEqual(order.items.count(), 1)
        self.assertEqual(order.subtotal_price, Decimal('10.00'))
        self.assertEqual(order.total_price, Decimal('11.50'))

    def test_variant_of_other_product_rejected(self):
        with self.assertRaises(InvalidOrderItem):
            create_order(self._fields(), [
                {'product_id': self.plain.id, 'variant_id': self.variant.id, 'quantity': 1},
            ])
        self.assertEqual(Order.objects.count(), 0)


class OrderAPITests(TestCase):
    """Order endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_user(role=ROLE_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.product = TestDataFactory.create_product(name='Rice', price=Decimal('5.00'))

    def _create_payload(self, **overrides):
        payload = {
            'customer_name': 'Sok',
            'customer_phone': '012 345 678',
            'customer_location': 'Street 271',
            'province': 'Phnom Penh',
            'delivery_price': '1.50',
            'items': [{'product_id': self.product.id, 'quantity': 2, 'price': '5.00'}],
        }
        payload.update(overrides)
        return payload

    def test_create_order(self):
        response = self.client.post('/api/v1/orders/', self._create_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subtotal_price'], '10.00')
        self.assertEqual(response.data['total_price'], '11.50')
        self.assertEqual(response.data['company_delivery_price'], '1.20')
        self.assertEqual(response.data['state'], Order.STATE_PLACED)
        self.assertEqual(len(response.data['items']), 1)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Order').exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 98)

    def test_create_order_requires_items(self):
        response = self.client.post('/api/v1/orders/', self._create_payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

    def test_create_order_with_short_stock(self):
        payload = self._create_payload(items=[{'product_id': self.product.id, 'quantity': 500}])
        response = self.client.post('/api/v1/orders/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['message'])
        self.assertEqual(Order.objects.count(), 0)

    def test_list_filters_and_blacklist_flag(self):
        TestDataFactory.create_blacklist(phone='012999888')
        flagged = TestDataFactory.create_order(customer_phone='012 999 888')
        TestDataFactory.create_order(state=Order.STATE_COMPLETED)
        TestDataFactory.create_order(source=Order.SOURCE_CUSTOMER)

        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

        response = self.client.get('/api/v1/orders/', {'all_sources': 'true'})
        self.assertEqual(response.data['pagination']['total'], 3)

        response = self.client.get('/api/v1/orders/', {'state': 'PLACED'})
        self.assertEqual([o['id'] for o in response.data['orders']], [flagged.id])
        self.assertTrue(response.data['orders'][0]['is_blacklisted'])

    def test_filter_unassigned_and_sort(self):
        driver = TestDataFactory.create_driver()
        TestDataFactory.create_order(driver=driver, state=Order.STATE_DELIVERING, total_price=Decimal('50'))
        cheap = TestDataFactory.create_order(total_price=Decimal('5'))

        response = self.client.get('/api/v1/orders/', {'driver': 'unassigned'})
        self.assertEqual([o['id'] for o in response.data['orders']], [cheap.id])

        response = self.client.get('/api/v1/orders/', {'sort': 'total_price', 'direction': 'asc'})
        self.assertEqual(response.data['orders'][0]['id'], cheap.id)

    def test_state_change(self):
        order = TestDataFactory.create_order(state=Order.STATE_DELIVERING)
        response = self.client.put(f'/api/v1/orders/{order.id}/state/', {'state': 'COMPLETED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['state'], Order.STATE_COMPLETED)
        self.assertIsNotNone(response.data['completed_at'])
        self.assertTrue(AuditLog.objects.filter(action='state_change', object_id=str(order.id)).exists())

    def test_invalid_state_change(self):
        order = TestDataFactory.create_order()
        response = self.client.put(f'/api/v1/orders/{order.id}/state/', {'state': 'COMPLETED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data)

    def test_assign_and_unassign_driver(self):
        order = TestDataFactory.create_order()
        driver = TestDataFactory.create_driver(name='Vibol')
        response = self.client.put(f'/api/v1/orders/{order.id}/driver/', {'driver_id': driver.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['state'], Order.STATE_DELIVERING)
        self.assertEqual(response.data['driver_name'], 'Vibol')
        self.assertIsNotNone(response.data['assigned_at'])

        response = self.client.put(f'/api/v1/orders/{order.id}/driver/', {'driver_id': None}, format='json')
        self.assertEqual(response.data['state'], Order.STATE_PLACED)
        self.assertIsNone(response.data['driver'])

    def test_assign_inactive_driver(self):
        order = TestDataFactory.create_order()
        driver = TestDataFactory.create_driver(is_active=False)
        response = self.client.put(f'/api/v1/orders/{order.id}/driver/', {'driver_id': driver.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_print_flags(self):
        order = TestDataFactory.create_order()
        response = self.client.put(f'/api/v1/orders/{order.id}/mark-printed/')
        self.assertTrue(response.data['is_printed'])
        self.assertIsNotNone(response.data['printed_at'])

        response = self.client.put(f'/api/v1/orders/{order.id}/reset-print/')
        self.assertFalse(response.data['is_printed'])
        self.assertIsNone(response.data['printed_at'])

    def test_patch_replaces_items(self):
        response = self.client.post('/api/v1/orders/', self._create_payload(), format='json')
        order_id = response.data['id']
        response = self.client.patch(f'/api/v1/orders/{order_id}/', {
            'items': [{'product_id': self.product.id, 'quantity': 4, 'price': '5.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['subtotal_price'], '20.00')
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 96)

    def test_delete_releases_stock(self):
        response = self.client.post('/api/v1/orders/', self._create_payload(), format='json')
        response = self.client.delete(f"/api/v1/orders/{response.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 100)

    def test_staff_cannot_delete(self):
        staff = TestDataFactory.create_user(role=ROLE_STAFF)
        order = TestDataFactory.create_order()
        client = AuthenticatedAPIClient().authenticate_user(staff)
        self.assertEqual(client.get(f'/api/v1/orders/{order.id}/').status_code, status.HTTP_200_OK)
        self.assertEqual(client.delete(f'/api/v1/orders/{order.id}/').status_code, status.HTTP_403_FORBIDDEN)

    def test_stats_summary(self):
        TestDataFactory.create_order()
        TestDataFactory.create_order(state=Order.STATE_COMPLETED, total_price=Decimal('10.00'))
        response = self.client.get('/api/v1/orders/stats/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['by_state']['PLACED'], 1)
        self.assertEqual(response.data['by_state']['COMPLETED'], 1)
        self.assertEqual(response.data['by_state']['RETURNED'], 0)

    def test_duplicate_phones(self):
        TestDataFactory.create_order(customer_phone='012 333 444')
        TestDataFactory.create_order(customer_phone='012333444')
        TestDataFactory.create_order(customer_phone='099000111')
        response = self.client.get('/api/v1/orders/duplicates/phone/')
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['duplicates'][0]['phone'], '012333444')
        self.assertEqual(response.data['duplicates'][0]['count'], 2)

    def test_batch_phone_lookup(self):
        order = TestDataFactory.create_order(customer_phone='012111222')
        response = self.client.post('/api/v1/orders/batch/phone/',
                                    {'phone_numbers': ['012 111 222', '099999999']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['found'], ['012111222'])
        self.assertEqual(response.data['not_found'], ['099999999'])
        self.assertEqual(response.data['results'][0]['orders'][0]['id'], order.id)

    def test_batch_phone_requires_list(self):
        response = self.client.post('/api/v1/orders/batch/phone/', {'phone_numbers': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_exports(self):
        order = TestDataFactory.create_order()
        TestDataFactory.create_order_item(order, product=self.product, quantity=2,
                                          option_details=[{'groupName': 'Bag', 'selectedOptions': [{'name': '25kg'}]}])
        response = self.client.get('/api/v1/orders/export/excel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.startswith(b'PK'))
        self.assertIn('.xlsx', response['Content-Disposition'])

        response = self.client.get('/api/v1/orders/export/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_receipt_marks_printed(self):
        order = TestDataFactory.create_order()
        TestDataFactory.create_order_item(order, product=self.product)
        response = self.client.get(f'/api/v1/orders/{order.id}/receipt/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'image/png')
        self.assertTrue(response.content.startswith(b'\x89PNG'))
        order.refresh_from_db()
        self.assertTrue(order.is_printed)

    def test_pickup_proof_upload(self):
        order = TestDataFactory.create_order()
        with tempfile.TemporaryDirectory() as media_root, override_settings(MEDIA_ROOT=media_root):
            response = self.client.post(f'/api/v1/orders/{order.id}/pickup-proof/',
                                        {'pickup_proof': png_upload('pickup.png')}, format='multipart')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            order.refresh_from_db()
            self.assertTrue(order.pickup_proof.name.startswith('pickup_proofs/'))
        self.assertTrue(AuditLog.objects.filter(action='update', object_reference=order.order_number).exists())

    def test_pickup_proof_requires_image(self):
        order = TestDataFactory.create_order()
        response = self.client.post(f'/api/v1/orders/{order.id}/pickup-proof/',
                                    {'pickup_proof': SimpleUploadedFile('notes.txt', b'hello')},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('pickup_proof', response.data)


class CustomerOrderAPITests(TestCase):
    """Storefront order placement and tracking"""

    def setUp(self):
        cache.clear()
        self.product = TestDataFactory.create_product(name='Oil', price=Decimal('10.00'))
        self.client = AuthenticatedAPIClient()

    def test_public_create_uses_server_prices(self):
        response = self.client.post('/api/v1/customer-orders/', {
            'customer_name': 'Web buyer',
            'customer_phone': '012555666',
            'province': 'Kandal',
            'items': json.dumps([{'product_id': self.product.id, 'quantity': 1, 'price': '0.01'}]),
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['source'], Order.SOURCE_CUSTOMER)
        self.assertEqual(response.data['subtotal_price'], '10.00')
        self.assertEqual(response.data['total_price'], '10.00')

        response = self.client.get(f"/api/v1/customer-orders/{response.data['order_number']}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('is_blacklisted', response.data)

    def test_tracking_hides_internal_fields(self):
        """Public tracking never exposes the blacklist flag or who created the order"""
        admin = TestDataFactory.create_user(role=ROLE_ADMIN)
        order = TestDataFactory.create_order(customer_phone='012777888', created_by=admin)
        TestDataFactory.create_blacklist(phone='012777888')

        response = self.client.get(f'/api/v1/customer-orders/{order.order_number}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_number'], order.order_number)
        for field in ('is_blacklisted', 'created_by', 'created_by_name'):
            self.assertNotIn(field, response.data)

    def test_tracking_unknown_number(self):
        response = self.client.get('/api/v1/customer-orders/ORD-20240101-NOTFOUND/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_inactive_product_rejected(self):
        self.product.is_active = False
        self.product.save()
        response = self.client.post('/api/v1/customer-orders/', {
            'customer_name': 'Web buyer',
            'customer_phone': '012555666',
            'items': json.dumps([{'product_id': self.product.id, 'quantity': 1}]),
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_requires_authentication(self):
        response = self.client.get('/api/v1/customer-orders/')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_list_and_detail_for_staff(self):
        admin = TestDataFactory.create_user(role=ROLE_ADMIN)
        self.client.authenticate_user(admin)
        order = TestDataFactory.create_order(source=Order.SOURCE_CUSTOMER)
        TestDataFactory.create_order()

        response = self.client.get('/api/v1/customer-orders/')
        self.assertEqual([o['id'] for o in response.data['orders']], [order.id])

        response = self.client.get(f'/api/v1/customer-orders/{order.id}/')
        self.assertEqual(response.data['order_number'], order.order_number)


class BlacklistAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_user(role=ROLE_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_normalizes_phone(self):
        response = self.client.post('/api/v1/blacklist-phones/', {'phone': '012 345 678', 'reason': 'Fake orders'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['phone'], '012345678')
        self.assertEqual(BlacklistPhone.objects.get().created_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action='blacklist_add', model_name='BlacklistPhone').exists())

    def test_duplicate_and_empty_rejected(self):
        TestDataFactory.create_blacklist(phone='012345678')
        response = self.client.post('/api/v1/blacklist-phones/', {'phone': '012-345-678'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/blacklist-phones/', {'phone': '---'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_check_and_delete(self):
        entry = TestDataFactory.create_blacklist(phone='+855 12 000 111')
        response = self.client.get('/api/v1/blacklist-phones/')
        self.assertEqual([e['phone'] for e in response.data['entries']], ['85512000111'])

        response = self.client.get('/api/v1/blacklist-phones/check/', {'phone': '855-12-000-111'})
        self.assertTrue(response.data['is_blacklisted'])
        self.assertEqual(response.data['entry']['id'], entry.id)

        response = self.client.delete(f'/api/v1/blacklist-phones/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action='blacklist_remove', object_id=str(entry.id)).exists())
        response = self.client.get('/api/v1/blacklist-phones/check/', {'phone': '85512000111'})
        self.assertFalse(response.data['is_blacklisted'])

    def test_check_requires_phone(self):
        response = self.client.get('/api/v1/blacklist-phones/check/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
