"""
Test suite for the locations module
"""
from django.test import TestCase
from rest_framework import status
from backend.core.models import User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import Stock
from backend.locations.models import Location
from backend.locations.services import ensure_default_location, get_tenant_location, tenant_locations
from backend.core.exceptions import ApiError


class LocationServiceTests(TestCase):
    """Test tenant location lookups"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant(code='dapur-a')

    def test_tenant_locations_excludes_inactive(self):
        active = TestDataFactory.create_location(self.tenant, 'Gudang')
        TestDataFactory.create_location(self.tenant, 'Lama', active=False)
        self.assertEqual(list(tenant_locations(self.tenant)), [active])
        self.assertEqual(tenant_locations(self.tenant, include_inactive=True).count(), 2)

    def test_prefix_does_not_leak_between_codes(self):
        TestDataFactory.create_location(self.tenant, 'Gudang')
        other = TestDataFactory.create_tenant(code='dapur-ab')
        TestDataFactory.create_location(other, 'Gudang')
        self.assertEqual(tenant_locations(self.tenant).count(), 1)

    def test_get_inactive_location(self):
        location = TestDataFactory.create_location(self.tenant, 'Lama', active=False)
        with self.assertRaises(ApiError) as ctx:
            get_tenant_location(self.tenant, location.id)
        self.assertEqual(ctx.exception.code, 'LOCATION_INACTIVE')
        self.assertEqual(get_tenant_location(self.tenant, location.id, require_active=False), location)

    def test_ensure_default_location_only_once(self):
        created = ensure_default_location(self.tenant)
        self.assertEqual(created.display_name, 'Gudang Utama')
        self.assertIsNone(ensure_default_location(self.tenant))


class LocationAPITests(TestCase):
    """Test location list and create endpoints"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant(code='dapur-a')
        self.user = TestDataFactory.create_user()
        self.membership = TestDataFactory.create_membership(self.user, self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)

    def test_list_creates_default_location(self):
        response = self.client.get('/api/v1/locations/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data], ['Gudang Utama'])

    def test_list_hides_inactive_and_foreign(self):
        TestDataFactory.create_location(self.tenant, 'Freezer')
        TestDataFactory.create_location(self.tenant, 'Rak Lama', active=False)
        TestDataFactory.create_location(TestDataFactory.create_tenant(), 'Gudang Lain')
        response = self.client.get('/api/v1/locations/')
        self.assertEqual([row['name'] for row in response.data], ['Freezer'])

    def test_list_requires_tenant(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user)
        response = client.get('/api/v1/locations/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'TENANT_CONTEXT_REQUIRED')

    def test_super_admin_without_tenant_sees_all_active(self):
        TestDataFactory.create_location(self.tenant, 'Freezer')
        TestDataFactory.create_location(TestDataFactory.create_tenant(), 'Gudang Lain')
        TestDataFactory.create_location(self.tenant, 'Rak Lama', active=False)
        super_admin = TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN)
        client = AuthenticatedAPIClient()
        client.authenticate_user(super_admin)
        response = client.get('/api/v1/locations/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(sorted(row['name'] for row in response.data), ['Freezer', 'Gudang Lain'])

    def test_create_location_with_stock_rows(self):
        item = TestDataFactory.create_item(self.tenant)
        response = self.client.post('/api/v1/locations/', {'name': 'Freezer', 'description': 'Lantai 1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Freezer')
        location = Location.objects.get(name='dapur-a::Freezer')
        self.assertTrue(Stock.objects.filter(item=item, location=location, qty=0).exists())

    def test_create_rejects_delimiter(self):
        response = self.client.post('/api/v1/locations/', {'name': 'a::b'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_duplicate(self):
        TestDataFactory.create_location(self.tenant, 'Freezer')
        response = self.client.post('/api/v1/locations/', {'name': 'Freezer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'LOCATION_EXISTS')

    def test_create_requires_edit(self):
        self.membership.can_edit = False
        self.membership.save()
        response = self.client.post('/api/v1/locations/', {'name': 'Freezer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_inactive_tenant_rejected(self):
        self.tenant.is_active = False
        self.tenant.save()
        response = self.client.get('/api/v1/locations/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'TENANT_INACTIVE')
