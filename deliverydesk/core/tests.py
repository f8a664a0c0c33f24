"""
Test suite for Core module
Tests: authentication, staff management, permissions, audit logs, cache helpers, create_admin
"""
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from .cache_utils import make_cache_key, cached_query, invalidate_cache_pattern
from .models import User, AuditLog
from .permissions import (
    ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF, ALL_PERMISSION_CODES, default_permissions_for_role,
)
from .test_utils import TestDataFactory, AuthenticatedAPIClient

PASSWORD = 'Kr0ma-Delivery-2024'


class AuthAPITests(TestCase):
    """Login, refresh, signup and profile endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(email='sreymom@test.com', password=PASSWORD, role=ROLE_MANAGER)
        self.client = AuthenticatedAPIClient()

    def test_login(self):
        """Test login returns tokens and the user with permissions"""
        response = self.client.post('/api/v1/auth/login/', {'email': 'sreymom@test.com', 'password': PASSWORD},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], ROLE_MANAGER)
        self.assertIn('view_dashboard', response.data['user']['permissions'])
        self.assertTrue(AuditLog.objects.filter(action='login', user=self.user).exists())

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'email': 'sreymom@test.com', 'password': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {'email': 'sreymom@test.com', 'password': PASSWORD},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        login = self.client.post('/api/v1/auth/login/', {'email': 'sreymom@test.com', 'password': PASSWORD},
                                 format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_signup_creates_staff(self):
        """Self-registration always yields a STAFF account"""
        response = self.client.post('/api/v1/auth/signup/', {
            'email': 'New.Person@Test.com', 'password': PASSWORD, 'name': 'New Person', 'role': ROLE_ADMIN,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        user = User.objects.get(email='new.person@test.com')
        self.assertEqual(user.role, ROLE_STAFF)
        self.assertEqual(user.permissions, default_permissions_for_role(ROLE_STAFF))

    def test_signup_duplicate_email(self):
        response = self.client.post('/api/v1/auth/signup/', {
            'email': 'SREYMOM@test.com', 'password': PASSWORD, 'name': 'Dup',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'sreymom@test.com')

    def test_me_requires_auth(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_update_profile(self):
        self.client.authenticate_user(self.user)
        response = self.client.patch('/api/v1/auth/profile/', {'name': 'Sreymom K', 'phone': '012999888'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Sreymom K')
        self.user.refresh_from_db()
        self.assertEqual(self.user.phone, '012999888')

    def test_change_password(self):
        self.client.authenticate_user(self.user)
        response = self.client.put('/api/v1/auth/change-password/', {
            'current_password': PASSWORD, 'new_password': 'An0ther-Secret-Pass',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('An0ther-Secret-Pass'))

    def test_change_password_wrong_current(self):
        self.client.authenticate_user(self.user)
        response = self.client.put('/api/v1/auth/change-password/', {
            'current_password': 'wrong', 'new_password': 'An0ther-Secret-Pass',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('current_password', response.data)


class StaffAPITests(TestCase):
    """Staff management endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(role=ROLE_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.staff = TestDataFactory.create_user(email='dara@test.com', role=ROLE_STAFF, name='Dara')

    def test_list_staff(self):
        response = self.client.get('/api/v1/staff/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_filter_staff(self):
        response = self.client.get('/api/v1/staff/', {'role': 'staff'})
        self.assertEqual([u['email'] for u in response.data['staff']], ['dara@test.com'])
        response = self.client.get('/api/v1/staff/', {'search': 'dara'})
        self.assertEqual(len(response.data['staff']), 1)

    def test_create_staff_with_role_defaults(self):
        """Test creating a manager without explicit permissions uses the role's defaults"""
        response = self.client.post('/api/v1/staff/', {
            'email': 'manager@test.com', 'password': PASSWORD, 'name': 'Manager', 'role': ROLE_MANAGER,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        user = User.objects.get(email='manager@test.com')
        self.assertEqual(user.permissions, default_permissions_for_role(ROLE_MANAGER))
        self.assertEqual(user.username, 'manager@test.com')
        self.assertTrue(user.check_password(PASSWORD))
        self.assertTrue(AuditLog.objects.filter(model_name='User', action='create').exists())

    def test_create_staff_requires_password(self):
        response = self.client.post('/api/v1/staff/', {'email': 'x@test.com', 'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_create_staff_unknown_permission(self):
        response = self.client.post('/api/v1/staff/', {
            'email': 'x@test.com', 'password': PASSWORD, 'permissions': ['view_orders', 'fly_rockets'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('permissions', response.data)

    def test_role_change_resets_permissions(self):
        response = self.client.patch(f'/api/v1/staff/{self.staff.id}/', {'role': ROLE_MANAGER}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.staff.refresh_from_db()
        self.assertIn('view_dashboard', self.staff.permissions)

    def test_custom_permissions(self):
        response = self.client.patch(f'/api/v1/staff/{self.staff.id}/',
                                     {'permissions': ['view_dashboard', 'view_orders']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.staff.refresh_from_db()
        self.assertTrue(self.staff.has_code('view_dashboard'))
        self.assertFalse(self.staff.has_code('view_products'))

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/staff/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data)

    def test_delete_staff(self):
        response = self.client.delete(f'/api/v1/staff/{self.staff.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.staff.id).exists())

    def test_toggle_status(self):
        response = self.client.patch(f'/api/v1/staff/{self.staff.id}/toggle-status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        response = self.client.patch(f'/api/v1/staff/{self.admin.id}/toggle-status/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_role_cannot_manage_staff(self):
        client = AuthenticatedAPIClient().authenticate_user(self.staff)
        self.assertEqual(client.get('/api/v1/staff/').status_code, status.HTTP_403_FORBIDDEN)

    def test_permission_catalog(self):
        response = self.client.get('/api/v1/staff/permissions/list/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['permissions']), len(ALL_PERMISSION_CODES))
        self.assertIn('dashboard', response.data['categories'])

    def test_role_permissions(self):
        response = self.client.get('/api/v1/staff/roles/staff/permissions/')
        self.assertEqual(response.data['permissions'], default_permissions_for_role(ROLE_STAFF))
        response = self.client.get('/api/v1/staff/roles/owner/permissions/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AuditLogAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_user(role=ROLE_ADMIN)
        AuditLog.objects.create(user=self.admin, action='create', model_name='Order', object_id='1',
                                object_reference='ORD-20240101-AAAA0000')
        AuditLog.objects.create(user=self.admin, action='delete', model_name='Driver', object_id='2')

    def test_admin_lists_logs(self):
        client = AuthenticatedAPIClient().authenticate_user(self.admin)
        response = client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

        response = client.get('/api/v1/audit-logs/', {'object_reference': 'ORD-20240101-AAAA0000'})
        self.assertEqual(len(response.data['logs']), 1)
        self.assertEqual(response.data['logs'][0]['model_name'], 'Order')

    def test_manager_cannot_read_logs(self):
        manager = TestDataFactory.create_user(role=ROLE_MANAGER)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        self.assertEqual(client.get('/api/v1/audit-logs/').status_code, status.HTTP_403_FORBIDDEN)


class PermissionModelTests(SimpleTestCase):

    def test_admin_bypass(self):
        admin = User(role=ROLE_ADMIN, permissions=[])
        self.assertTrue(admin.has_code('delete_staff'))
        self.assertEqual(admin.effective_permissions(), ALL_PERMISSION_CODES)

    def test_inactive_user_has_no_codes(self):
        user = User(role=ROLE_MANAGER, permissions=['view_orders'], is_active=False)
        self.assertFalse(user.has_code('view_orders'))


class CacheUtilsTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_invalidation_changes_keys(self):
        before = make_cache_key('things', 1)
        self.assertEqual(before, make_cache_key('things', 1))
        invalidate_cache_pattern('things')
        self.assertNotEqual(before, make_cache_key('things', 1))

    def test_cached_query(self):
        calls = []

        @cached_query(cache_ttl=60, key_prefix='counting')
        def count(value):
            calls.append(value)
            return [value]

        self.assertEqual(count(3), [3])
        self.assertEqual(count(3), [3])
        self.assertEqual(calls, [3])

        invalidate_cache_pattern('counting')
        count(3)
        self.assertEqual(calls, [3, 3])


class CreateAdminCommandTests(TestCase):

    def test_creates_admin(self):
        out = StringIO()
        call_command('create_admin', email='Boss@Test.com', password=PASSWORD, name='Boss', stdout=out)
        user = User.objects.get(email='boss@test.com')
        self.assertEqual(user.role, ROLE_ADMIN)
        self.assertTrue(user.is_superuser)
        self.assertIn('Created', out.getvalue())

    def test_promotes_existing_user(self):
        TestDataFactory.create_user(email='lead@test.com', role=ROLE_STAFF)
        out = StringIO()
        call_command('create_admin', email='lead@test.com', stdout=out)
        self.assertEqual(User.objects.get(email='lead@test.com').role, ROLE_ADMIN)
        self.assertIn('Promoted', out.getvalue())

    def test_new_admin_needs_password(self):
        with self.assertRaises(CommandError):
            call_command('create_admin', email='nobody@test.com', stdout=StringIO())
