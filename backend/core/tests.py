"""
Test suite for the core module
Tests: auth session flow, user management, audit logs, error shape, scoping and period helpers
"""
from datetime import date, timedelta
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient
from backend.core.exceptions import ApiError
from backend.core.models import AuditLog, User
from backend.core.scoping import (
    category_type_from_name,
    display_category_name,
    display_location_name,
    from_tenant_scoped_item_name,
    is_inactive_location_name,
    is_item_owned_by_tenant,
    is_location_owned_by_tenant,
    tenant_id_from_item_name,
    to_category_name,
    to_tenant_location_name,
    to_tenant_scoped_item_name,
)
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import normalize_diff, redact_sensitive, resolve_period_range
from backend.tenants.models import TenantMembership


class ScopingTests(TestCase):
    """Test tenant name encoding helpers"""

    def test_item_name_round_trip(self):
        scoped = to_tenant_scoped_item_name('  Beras 5kg ', 'abc')
        self.assertEqual(scoped, 'Beras 5kg_tenant_abc')
        self.assertEqual(from_tenant_scoped_item_name(scoped), 'Beras 5kg')
        self.assertEqual(tenant_id_from_item_name(scoped), 'abc')

    def test_item_name_without_tenant(self):
        self.assertEqual(to_tenant_scoped_item_name('Beras'), 'Beras')
        self.assertEqual(from_tenant_scoped_item_name('Beras'), 'Beras')
        self.assertIsNone(tenant_id_from_item_name('Beras'))

    def test_item_ownership(self):
        self.assertTrue(is_item_owned_by_tenant('Beras_tenant_abc', 'abc'))
        self.assertFalse(is_item_owned_by_tenant('Beras_tenant_abc', 'xyz'))
        self.assertTrue(is_item_owned_by_tenant('Beras_tenant_abc', None))

    def test_location_names(self):
        self.assertEqual(to_tenant_location_name('dapur-1', 'Gudang'), 'dapur-1::Gudang')
        inactive = to_tenant_location_name('dapur-1', 'Gudang', active=False)
        self.assertEqual(inactive, 'dapur-1::INACTIVE - Gudang')
        self.assertTrue(is_inactive_location_name(inactive))
        self.assertEqual(display_location_name(inactive), 'Gudang')
        self.assertTrue(is_location_owned_by_tenant(inactive, 'dapur-1'))
        self.assertFalse(is_location_owned_by_tenant(inactive, 'dapur-2'))

    def test_reactivating_location_name_drops_marker(self):
        name = to_tenant_location_name('dapur-1', 'dapur-1::INACTIVE - Gudang', active=True)
        self.assertEqual(name, 'dapur-1::Gudang')

    def test_category_names(self):
        scoped = to_category_name('GAS', 'Elpiji', 'abc')
        self.assertEqual(scoped, 'GAS - Elpiji_tenant_abc')
        self.assertEqual(category_type_from_name(scoped), 'GAS')
        self.assertEqual(display_category_name(scoped), 'Elpiji')

    def test_legacy_category_type_from_keyword(self):
        self.assertEqual(category_type_from_name('Tabung Gas_tenant_abc'), 'GAS')
        self.assertEqual(category_type_from_name('Asset Dapur'), 'ASSET')
        self.assertEqual(category_type_from_name('Bumbu'), 'CONSUMABLE')


class UtilsTests(TestCase):
    """Test period resolution and audit diff helpers"""

    def test_daily_period(self):
        start, end = resolve_period_range('DAILY')
        today = timezone.localdate()
        self.assertEqual(timezone.localtime(start).date(), today)
        self.assertEqual(timezone.localtime(end).date(), today)

    def test_weekly_period_starts_on_monday(self):
        start, end = resolve_period_range('WEEKLY')
        self.assertEqual(timezone.localtime(start).weekday(), 0)
        self.assertEqual((timezone.localtime(end).date() - timezone.localtime(start).date()).days, 6)

    def test_monthly_period(self):
        start, end = resolve_period_range('MONTHLY')
        self.assertEqual(timezone.localtime(start).day, 1)
        self.assertEqual(timezone.localtime(start).month, timezone.localtime(end).month)

    def test_explicit_dates_win(self):
        start, end = resolve_period_range('DAILY', date(2024, 1, 1), date(2024, 1, 31))
        self.assertEqual(timezone.localtime(start).date(), date(2024, 1, 1))
        self.assertEqual(timezone.localtime(end).date(), date(2024, 1, 31))

    def test_no_period(self):
        self.assertEqual(resolve_period_range(), (None, None))

    def test_inverted_range_rejected(self):
        with self.assertRaises(ApiError) as ctx:
            resolve_period_range(None, date(2024, 2, 1), date(2024, 1, 1))
        self.assertEqual(ctx.exception.code, 'DATE_RANGE_INVALID')

    def test_normalize_diff_pairs_old_and_new(self):
        rows = normalize_diff({'oldName': 'Gudang', 'newName': 'Gudang Utama'})
        self.assertEqual(rows, [{'field': 'name', 'before': 'Gudang', 'after': 'Gudang Utama'}])

    def test_normalize_diff_before_after_and_plain(self):
        rows = normalize_diff({'isActive': {'before': True, 'after': False}, 'code': 'dapur-1'})
        self.assertIn({'field': 'isActive', 'before': True, 'after': False}, rows)
        self.assertIn({'field': 'code', 'before': None, 'after': 'dapur-1'}, rows)

    def test_normalize_diff_non_dict(self):
        self.assertEqual(normalize_diff(None), [])

    def test_redact_sensitive_nested(self):
        redacted = redact_sensitive({'bot_token': 'abc', 'nested': [{'password': 'x', 'name': 'ok'}]})
        self.assertEqual(redacted['bot_token'], '[REDACTED]')
        self.assertEqual(redacted['nested'][0]['password'], '[REDACTED]')
        self.assertEqual(redacted['nested'][0]['name'], 'ok')


class AuthAPITests(TestCase):
    """Test login, refresh, logout and session context endpoints"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant(code='dapur-pusat')
        self.user = TestDataFactory.create_user(username='koord1', password='testpass123')
        TestDataFactory.create_membership(self.user, self.tenant)
        self.client = APIClient()

    def _login(self, password='testpass123'):
        return self.client.post(
            '/api/v1/auth/login/', {'username': 'koord1', 'password': password}, format='json'
        )

    def test_login_returns_tokens_and_default_tenant(self):
        response = self._login()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['tenant']['code'], 'dapur-pusat')
        self.assertIn('refreshToken', response.cookies)
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.ACTION_LOGIN, actor=self.user).exists())

    def test_login_wrong_password(self):
        response = self._login(password='wrongpass')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'AUTH_INVALID')

    def test_login_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        response = self._login()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_rotates_token(self):
        refresh = self._login().data['refresh']
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertNotEqual(response.data['refresh'], refresh)

    def test_refresh_requires_token(self):
        self.client.cookies.clear()
        response = self.client.post('/api/v1/auth/refresh/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'AUTH_REFRESH_REQUIRED')

    def test_logout_revokes_refresh_token(self):
        refresh = self._login().data['refresh']
        response = self.client.post('/api/v1/auth/logout/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'LOGOUT_SUCCESS')

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'AUTH_REFRESH_INVALID')

    def test_refresh_rejected_for_deactivated_user(self):
        refresh = self._login().data['refresh']
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_reports_active_tenant(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'koord1')
        self.assertEqual(response.data['active_tenant']['code'], 'dapur-pusat')
        self.assertEqual(response.data['default_tenant']['code'], 'dapur-pusat')
        self.assertIsNone(response.data['active_location'])

    def test_unauthenticated_request(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'UNAUTHORIZED')

    def test_user_tenants(self):
        other = TestDataFactory.create_tenant()
        TestDataFactory.create_membership(self.user, other, is_default=False)
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.get('/api/v1/auth/tenants/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['code'], 'dapur-pusat')

    def test_select_tenant(self):
        other = TestDataFactory.create_tenant()
        TestDataFactory.create_membership(self.user, other, is_default=False)
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/tenant/select/', {'tenant_id': str(other.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tenant']['code'], other.code)

    def test_select_tenant_without_membership(self):
        other = TestDataFactory.create_tenant()
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/tenant/select/', {'tenant_id': str(other.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'FORBIDDEN')

    def test_select_location(self):
        location = TestDataFactory.create_location(self.tenant, 'Dapur Belakang')
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/location/select/', {'location_id': str(location.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['location']['name'], 'Dapur Belakang')

        client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        me = client.get('/api/v1/auth/me/')
        self.assertEqual(me.data['active_location']['id'], str(location.id))

    def test_select_location_of_other_tenant(self):
        other = TestDataFactory.create_tenant()
        location = TestDataFactory.create_location(other)
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/location/select/', {'location_id': str(location.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_clear_location(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/location/select/', {'location_id': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['location'])

    def test_change_password_revokes_sessions(self):
        refresh = self._login().data['refresh']
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123',
            'new_password': 'newpass12345',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'PASSWORD_CHANGED')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass12345'))

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_change_password_revokes_rotated_sessions(self):
        refresh = self._login().data['refresh']
        rotated = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(rotated.status_code, status.HTTP_200_OK)
        self.assertNotEqual(rotated.data['refresh'], refresh)

        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123',
            'new_password': 'newpass12345',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': rotated.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_change_password_wrong_current(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        response = client.post('/api/v1/auth/change-password/', {
            'current_password': 'notmypass',
            'new_password': 'newpass12345',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'PASSWORD_INVALID')


class UserAPITests(TestCase):
    """Test user management endpoints"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.admin = TestDataFactory.create_user(role=User.ROLE_TENANT_ADMIN)
        TestDataFactory.create_membership(self.admin, self.tenant, role='TENANT_ADMIN')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin, tenant=self.tenant)

    def test_create_user_joins_session_tenant(self):
        response = self.client.post('/api/v1/users/', {
            'username': 'staff_baru',
            'name': 'Staff Baru',
            'password': 'password123',
            'role': 'STAFF',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        membership = TenantMembership.objects.get(user__username='staff_baru')
        self.assertEqual(membership.tenant, self.tenant)
        self.assertFalse(membership.can_edit)

    def test_tenant_admin_cannot_create_admin(self):
        response = self.client.post('/api/v1/users/', {
            'username': 'admin_baru',
            'name': 'Admin Baru',
            'password': 'password123',
            'role': 'ADMIN',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_duplicate_username(self):
        TestDataFactory.create_user(username='dupe_user')
        response = self.client.post('/api/v1/users/', {
            'username': 'DUPE_USER',
            'name': 'Dupe',
            'password': 'password123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'USER_EXISTS')

    def test_list_users_scoped_to_tenant(self):
        member = TestDataFactory.create_user()
        TestDataFactory.create_membership(member, self.tenant)
        TestDataFactory.create_user()
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        usernames = {row['username'] for row in response.data}
        self.assertEqual(usernames, {self.admin.username, member.username})

    def test_staff_cannot_manage_users(self):
        staff = TestDataFactory.create_user()
        TestDataFactory.create_membership(staff, self.tenant)
        client = AuthenticatedAPIClient()
        client.authenticate_user(staff, tenant=self.tenant)
        response = client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'FORBIDDEN')

    def test_deactivate_user(self):
        member = TestDataFactory.create_user()
        TestDataFactory.create_membership(member, self.tenant)
        response = self.client.patch(f'/api/v1/users/{member.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        member.refresh_from_db()
        self.assertFalse(member.is_active)

    def test_cannot_deactivate_self(self):
        response = self.client.patch(f'/api/v1/users/{self.admin.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'USER_SELF_DEACTIVATE')

    def test_status_of_user_outside_tenant(self):
        outsider = TestDataFactory.create_user()
        response = self.client.patch(f'/api/v1/users/{outsider.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AuditLogAPITests(TestCase):
    """Test audit log listing, scoping and redaction"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.other_tenant = TestDataFactory.create_tenant()
        self.admin = TestDataFactory.create_user(role=User.ROLE_TENANT_ADMIN)
        TestDataFactory.create_membership(self.admin, self.tenant, role='TENANT_ADMIN')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin, tenant=self.tenant)

        self.own_log = AuditLog.objects.create(
            actor=self.admin, tenant=self.tenant, entity_type='tenant_telegram_settings',
            entity_id='1', action=AuditLog.ACTION_UPDATE,
            diff={'bot_token': 'secret-token', 'oldName': 'A', 'newName': 'B'},
        )
        self.foreign_log = AuditLog.objects.create(
            tenant=self.other_tenant, entity_type='items', entity_id='2', action=AuditLog.ACTION_CREATE,
        )

    def test_list_is_scoped_to_session_tenant(self):
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = {row['id'] for row in response.data['results']}
        self.assertIn(str(self.own_log.id), ids)
        self.assertNotIn(str(self.foreign_log.id), ids)
        self.assertEqual(response.data['page'], 1)

    def test_detail_redacts_sensitive_values(self):
        response = self.client.get(f'/api/v1/audit-logs/{self.own_log.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['diff']['bot_token'], '[REDACTED]')
        self.assertIn({'field': 'name', 'before': 'A', 'after': 'B'}, response.data['changes'])

    def test_detail_of_other_tenant(self):
        response = self.client.get(f'/api/v1/audit-logs/{self.foreign_log.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'AUDIT_LOG_NOT_FOUND')

    def test_filter_by_action(self):
        response = self.client.get('/api/v1/audit-logs/?action=CREATE')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)

    def test_old_logs_outside_default_window(self):
        AuditLog.objects.filter(pk=self.own_log.pk).update(created_at=timezone.now() - timedelta(days=30))
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.data['count'], 0)

    def test_super_admin_sees_every_tenant(self):
        super_admin = TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN)
        client = AuthenticatedAPIClient()
        client.authenticate_user(super_admin)
        response = client.get('/api/v1/audit-logs/')
        ids = {row['id'] for row in response.data['results']}
        self.assertIn(str(self.foreign_log.id), ids)

    def test_staff_forbidden(self):
        staff = TestDataFactory.create_user()
        TestDataFactory.create_membership(staff, self.tenant)
        client = AuthenticatedAPIClient()
        client.authenticate_user(staff, tenant=self.tenant)
        response = client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ErrorShapeTests(TestCase):
    """Test the uniform error body"""

    def test_unknown_route(self):
        response = self.client.get('/api/v1/does-not-exist/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()['code'], 'NOT_FOUND')

    def test_validation_error_shape(self):
        response = APIClient().post('/api/v1/auth/login/', {'username': 'ab'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_ERROR')
        self.assertIn('password', response.data['details'])

    def test_health(self):
        response = APIClient().get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ok')
