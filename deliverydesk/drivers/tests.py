"""
Test suite for Drivers module
Tests: driver CRUD, search and filters, dropdown cache, deletion keeping names on orders
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from deliverydesk.core.models import AuditLog
from deliverydesk.core.permissions import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF
from deliverydesk.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from deliverydesk.orders.models import Order
from .models import Driver


class DriverAPITests(TestCase):
    """Driver endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(role=ROLE_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.driver = TestDataFactory.create_driver(name='Dara', phone='012345678')

    def test_list_drivers(self):
        """Test listing drivers with pagination and order counts"""
        TestDataFactory.create_order(driver=self.driver)
        response = self.client.get('/api/v1/drivers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['drivers'][0]['order_count'], 1)

    def test_search_and_active_filter(self):
        TestDataFactory.create_driver(name='Sokha', is_active=False)
        response = self.client.get('/api/v1/drivers/', {'search': '0123'})
        self.assertEqual([d['name'] for d in response.data['drivers']], ['Dara'])

        response = self.client.get('/api/v1/drivers/', {'is_active': 'false'})
        self.assertEqual([d['name'] for d in response.data['drivers']], ['Sokha'])

    def test_create_driver(self):
        """Test creating a driver"""
        response = self.client.post('/api/v1/drivers/', {'name': '  Vanna ', 'phone': '098111222'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Vanna')
        self.assertTrue(AuditLog.objects.filter(model_name='Driver', action='create').exists())

    def test_create_driver_requires_name_and_phone(self):
        response = self.client.post('/api/v1/drivers/', {'name': ' ', 'phone': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)
        self.assertIn('phone', response.data)

    def test_update_driver(self):
        response = self.client.patch(f'/api/v1/drivers/{self.driver.id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.driver.refresh_from_db()
        self.assertFalse(self.driver.is_active)

    def test_get_missing_driver(self):
        response = self.client.get('/api/v1/drivers/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_all_drivers_is_cached_and_invalidated(self):
        """Dropdown list only has active drivers and refreshes after a change"""
        TestDataFactory.create_driver(name='Idle', is_active=False)
        response = self.client.get('/api/v1/drivers/all/')
        self.assertEqual([d['name'] for d in response.data], ['Dara'])

        TestDataFactory.create_driver(name='Bopha')
        response = self.client.get('/api/v1/drivers/all/')
        self.assertEqual([d['name'] for d in response.data], ['Bopha', 'Dara'])

    def test_delete_driver_keeps_name_on_orders(self):
        """Orders keep showing the driver's name after the driver is deleted"""
        order = TestDataFactory.create_order(driver=self.driver, state=Order.STATE_COMPLETED)
        admin = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_user(role=ROLE_ADMIN))
        response = admin.delete(f'/api/v1/drivers/{self.driver.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Driver.objects.filter(pk=self.driver.id).exists())

        order.refresh_from_db()
        self.assertIsNone(order.driver)
        self.assertEqual(order.deleted_driver_name, 'Dara')
        self.assertEqual(order.driver_name, 'Dara')

    def test_staff_can_view_but_not_create(self):
        staff = TestDataFactory.create_user(role=ROLE_STAFF)
        client = AuthenticatedAPIClient().authenticate_user(staff)
        self.assertEqual(client.get('/api/v1/drivers/').status_code, status.HTTP_200_OK)
        response = client.post('/api/v1/drivers/', {'name': 'X', 'phone': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client.delete(f'/api/v1/drivers/{self.driver.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requires_authentication(self):
        client = AuthenticatedAPIClient()
        self.assertEqual(client.get('/api/v1/drivers/').status_code, status.HTTP_401_UNAUTHORIZED)

    def test_manager_cannot_delete(self):
        response = self.client.delete(f'/api/v1/drivers/{self.driver.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
