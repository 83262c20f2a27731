"""
Test suite for the tenants module
Tests: tenant lifecycle, tenant members, tenant locations and Telegram settings
"""
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.models import User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.locations.models import Location
from backend.tenants.models import Tenant, TenantMembership, TenantTelegramSetting


class TenantAPITests(TestCase):
    """Test tenant CRUD and lifecycle endpoints"""

    def setUp(self):
        self.super_admin = TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def test_create_tenant(self):
        response = self.client.post('/api/v1/tenants/', {'code': ' Dapur-Timur ', 'name': 'Dapur Timur'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'dapur-timur')
        self.assertEqual(response.data['status'], 'active')
        self.assertEqual([loc['name'] for loc in response.data['locations']], ['Gudang Utama'])

        tenant = Tenant.objects.get(code='dapur-timur')
        self.assertTrue(TenantTelegramSetting.objects.filter(tenant=tenant, is_enabled=False).exists())
        self.assertTrue(Location.objects.filter(name='dapur-timur::Gudang Utama').exists())

    def test_create_tenant_invalid_code(self):
        response = self.client.post('/api/v1/tenants/', {'code': 'dapur timur!', 'name': 'Dapur'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_ERROR')

    def test_create_duplicate_tenant(self):
        TestDataFactory.create_tenant(code='dapur-barat')
        response = self.client.post('/api/v1/tenants/', {'code': 'dapur-barat', 'name': 'Dapur Barat'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'TENANT_EXISTS')

    def test_list_with_status_filter(self):
        active = TestDataFactory.create_tenant()
        inactive = TestDataFactory.create_tenant(is_active=False)
        response = self.client.get('/api/v1/tenants/?status=inactive')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        codes = [row['code'] for row in response.data]
        self.assertIn(inactive.code, codes)
        self.assertNotIn(active.code, codes)

    def test_list_counts(self):
        tenant = TestDataFactory.create_tenant()
        TestDataFactory.create_location(tenant)
        TestDataFactory.create_location(tenant, active=False)
        TestDataFactory.create_membership(TestDataFactory.create_user(), tenant)
        response = self.client.get(f'/api/v1/tenants/?search={tenant.code}')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['location_count'], 2)
        self.assertEqual(response.data[0]['member_count'], 1)

    def test_invalid_status_filter(self):
        response = self.client.get('/api/v1/tenants/?status=unknown')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rename_tenant(self):
        tenant = TestDataFactory.create_tenant()
        response = self.client.patch(f'/api/v1/tenants/{tenant.id}/', {'name': 'Dapur Baru'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Dapur Baru')

    def test_soft_delete_restore_reactivate(self):
        tenant = TestDataFactory.create_tenant()

        response = self.client.delete(f'/api/v1/tenants/{tenant.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'TENANT_DELETED')
        tenant.refresh_from_db()
        self.assertIsNotNone(tenant.deleted_at)
        self.assertFalse(tenant.is_active)

        response = self.client.post(f'/api/v1/tenants/{tenant.id}/reactivate/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(f'/api/v1/tenants/{tenant.id}/restore/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'inactive')

        response = self.client.post(f'/api/v1/tenants/{tenant.id}/reactivate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'active')

    def test_status_toggle(self):
        tenant = TestDataFactory.create_tenant()
        response = self.client.patch(f'/api/v1/tenants/{tenant.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

    def test_unknown_tenant(self):
        response = self.client.get('/api/v1/tenants/00000000-0000-0000-0000-000000000000/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'TENANT_NOT_FOUND')

    def test_bulk_action_skips_deleted_on_activate(self):
        deleted = TestDataFactory.create_tenant(is_active=False)
        Tenant.objects.filter(pk=deleted.pk).update(deleted_at=timezone.now())
        inactive = TestDataFactory.create_tenant(is_active=False)
        response = self.client.post('/api/v1/tenants/bulk-action/', {
            'ids': [str(deleted.id), str(inactive.id)],
            'action': 'activate',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'TENANT_BULK_ACTION_COMPLETED')
        self.assertEqual(response.data['updated'], [str(inactive.id)])
        self.assertEqual(response.data['skipped'], [str(deleted.id)])

    def test_non_super_admin_forbidden(self):
        admin = TestDataFactory.create_user(role=User.ROLE_ADMIN)
        client = AuthenticatedAPIClient()
        client.authenticate_user(admin)
        response = client.get('/api/v1/tenants/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'FORBIDDEN')


class TenantUserAPITests(TestCase):
    """Test tenant member management"""

    def setUp(self):
        self.super_admin = TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)
        self.tenant = TestDataFactory.create_tenant()

    def test_create_member(self):
        response = self.client.post(f'/api/v1/tenants/{self.tenant.id}/users/', {
            'username': 'koord_dapur',
            'name': 'Koordinator Dapur',
            'password': 'password123',
            'role': 'KOORD_DAPUR',
            'can_edit': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], 'KOORD_DAPUR')
        self.assertTrue(response.data['is_default'])
        user = User.objects.get(username='koord_dapur')
        self.assertEqual(user.role, 'KOORD_DAPUR')
        self.assertTrue(user.check_password('password123'))

    def test_create_member_duplicate_username(self):
        TestDataFactory.create_user(username='dupe')
        response = self.client.post(f'/api/v1/tenants/{self.tenant.id}/users/', {
            'username': 'dupe', 'name': 'Dupe', 'password': 'password123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_update_member_role_syncs_user(self):
        user = TestDataFactory.create_user()
        TestDataFactory.create_membership(user, self.tenant, can_edit=False)
        response = self.client.patch(f'/api/v1/tenants/{self.tenant.id}/users/{user.id}/', {
            'role': 'TENANT_ADMIN', 'can_edit': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['can_edit'])
        user.refresh_from_db()
        self.assertEqual(user.role, 'TENANT_ADMIN')

    def test_update_non_member(self):
        user = TestDataFactory.create_user()
        response = self.client.patch(f'/api/v1/tenants/{self.tenant.id}/users/{user.id}/', {'name': 'X Y'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'USER_NOT_FOUND')

    def test_cannot_deactivate_self(self):
        TestDataFactory.create_membership(self.super_admin, self.tenant)
        response = self.client.patch(
            f'/api/v1/tenants/{self.tenant.id}/users/{self.super_admin.id}/', {'is_active': False}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'USER_SELF_DEACTIVATE')

    def test_bulk_remove_skips_self(self):
        member = TestDataFactory.create_user()
        TestDataFactory.create_membership(member, self.tenant)
        TestDataFactory.create_membership(self.super_admin, self.tenant)
        response = self.client.post(f'/api/v1/tenants/{self.tenant.id}/users/bulk-action/', {
            'user_ids': [str(member.id), str(self.super_admin.id)],
            'action': 'remove',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], [str(member.id)])
        self.assertEqual(response.data['skipped'], [str(self.super_admin.id)])
        self.assertFalse(TenantMembership.objects.filter(user=member, tenant=self.tenant).exists())

    def test_bulk_deactivate(self):
        member = TestDataFactory.create_user()
        TestDataFactory.create_membership(member, self.tenant)
        response = self.client.post(f'/api/v1/tenants/{self.tenant.id}/users/bulk-action/', {
            'user_ids': [str(member.id)], 'action': 'deactivate',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        member.refresh_from_db()
        self.assertFalse(member.is_active)


class TenantLocationAPITests(TestCase):
    """Test tenant location administration"""

    def setUp(self):
        self.super_admin = TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)
        self.tenant = TestDataFactory.create_tenant(code='dapur-a')

    def test_create_location(self):
        response = self.client.post(f'/api/v1/tenants/{self.tenant.id}/locations/', {'name': 'Freezer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Freezer')
        self.assertTrue(Location.objects.filter(name='dapur-a::Freezer').exists())

    def test_create_duplicate_location(self):
        TestDataFactory.create_location(self.tenant, 'Freezer', active=False)
        response = self.client.post(f'/api/v1/tenants/{self.tenant.id}/locations/', {'name': 'Freezer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'LOCATION_EXISTS')

    def test_deactivate_and_rename_location(self):
        location = TestDataFactory.create_location(self.tenant, 'Freezer')
        response = self.client.patch(
            f'/api/v1/tenants/{self.tenant.id}/locations/{location.id}/',
            {'name': 'Freezer Besar', 'is_active': False}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        location.refresh_from_db()
        self.assertEqual(location.name, 'dapur-a::INACTIVE - Freezer Besar')

        response = self.client.patch(
            f'/api/v1/tenants/{self.tenant.id}/locations/{location.id}/', {'is_active': True}, format='json',
        )
        location.refresh_from_db()
        self.assertEqual(location.name, 'dapur-a::Freezer Besar')

    def test_rename_to_existing_name(self):
        TestDataFactory.create_location(self.tenant, 'Rak Kering')
        location = TestDataFactory.create_location(self.tenant, 'Freezer')
        response = self.client.patch(
            f'/api/v1/tenants/{self.tenant.id}/locations/{location.id}/', {'name': 'Rak Kering'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_update_other_tenant_location(self):
        other = TestDataFactory.create_tenant()
        location = TestDataFactory.create_location(other)
        response = self.client.patch(
            f'/api/v1/tenants/{self.tenant.id}/locations/{location.id}/', {'description': 'x'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TenantTelegramAPITests(TestCase):
    """Test Telegram integration settings"""

    def setUp(self):
        self.super_admin = TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)
        self.tenant = TestDataFactory.create_tenant()

    def test_get_creates_default_settings(self):
        response = self.client.get(f'/api/v1/tenants/{self.tenant.id}/telegram/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_enabled'])
        self.assertFalse(response.data['has_bot_token'])

    def test_token_is_masked(self):
        response = self.client.put(f'/api/v1/tenants/{self.tenant.id}/telegram/', {
            'is_enabled': True,
            'bot_token': '123456789:ABCDEFGHIJ',
            'chat_id': '-100987',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('bot_token', response.data)
        self.assertEqual(response.data['bot_token_masked'], '1234...GHIJ')
        self.assertTrue(response.data['has_bot_token'])

        setting = TenantTelegramSetting.objects.get(tenant=self.tenant)
        self.assertEqual(setting.bot_token, '123456789:ABCDEFGHIJ')
        log = self.tenant.audit_logs.get(entity_type='tenant_telegram_settings')
        self.assertEqual(log.diff['bot_token'], '[REDACTED]')

    def test_enable_requires_token_and_chat(self):
        response = self.client.put(f'/api/v1/tenants/{self.tenant.id}/telegram/', {'is_enabled': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_ERROR')
