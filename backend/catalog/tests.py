"""
Comprehensive test suite for Catalog module
Tests: tenant categories, items, filters and bulk actions
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from backend.catalog.filters import parse_bool
from backend.catalog.models import Category, Item
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import InventoryTransaction, Stock


class CategoryAPITests(TestCase):
    """Test category endpoints"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        self.membership = TestDataFactory.create_membership(self.user, self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)

    def test_create_category(self):
        response = self.client.post('/api/v1/categories/', {'name': 'Elpiji', 'type': 'GAS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Elpiji')
        self.assertEqual(response.data['type'], 'GAS')
        self.assertTrue(Category.objects.filter(name=f'GAS - Elpiji_tenant_{self.tenant.id}').exists())

    def test_same_name_allowed_in_other_tenant(self):
        other = TestDataFactory.create_tenant()
        TestDataFactory.create_category(other, 'GAS', 'Elpiji')
        response = self.client.post('/api/v1/categories/', {'name': 'Elpiji', 'type': 'GAS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_duplicate_category(self):
        TestDataFactory.create_category(self.tenant, 'GAS', 'Elpiji')
        response = self.client.post('/api/v1/categories/', {'name': 'Elpiji', 'type': 'GAS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'CATEGORY_EXISTS')

    def test_list_filters_by_type_and_tenant(self):
        TestDataFactory.create_category(self.tenant, 'GAS', 'Elpiji')
        TestDataFactory.create_category(self.tenant, 'ASSET', 'Peralatan')
        TestDataFactory.create_category(TestDataFactory.create_tenant(), 'GAS', 'Elpiji Lain')
        response = self.client.get('/api/v1/categories/?type=GAS')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data], ['Elpiji'])

    def test_search_ignores_tenant_suffix(self):
        TestDataFactory.create_category(self.tenant, 'GAS', 'Elpiji')
        self.assertEqual(self.client.get('/api/v1/categories/?search=tenant').data, [])
        self.assertEqual(self.client.get(f'/api/v1/categories/?search={str(self.tenant.id)[:8]}').data, [])
        self.assertEqual(len(self.client.get('/api/v1/categories/?search=elpi').data), 1)

    def test_list_item_count(self):
        category = TestDataFactory.create_category(self.tenant, 'CONSUMABLE', 'Bumbu')
        TestDataFactory.create_item(self.tenant, category=category)
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.data[0]['item_count'], 1)

    def test_rename_category(self):
        category = TestDataFactory.create_category(self.tenant, 'CONSUMABLE', 'Bumbu')
        response = self.client.patch(f'/api/v1/categories/{category.id}/', {'name': 'Bumbu Dapur', 'type': 'ASSET'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Bumbu Dapur')
        self.assertEqual(response.data['type'], 'ASSET')

    def test_delete_category_in_use(self):
        category = TestDataFactory.create_category(self.tenant)
        TestDataFactory.create_item(self.tenant, category=category)
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'CATEGORY_IN_USE')

    def test_delete_category(self):
        category = TestDataFactory.create_category(self.tenant)
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Category.objects.filter(pk=category.pk).exists())

    def test_category_of_other_tenant(self):
        category = TestDataFactory.create_category(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'CATEGORY_NOT_FOUND')

    def test_status_toggle(self):
        category = TestDataFactory.create_category(self.tenant)
        response = self.client.patch(f'/api/v1/categories/{category.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

    def test_bulk_delete_skips_in_use(self):
        used = TestDataFactory.create_category(self.tenant)
        TestDataFactory.create_item(self.tenant, category=used)
        unused = TestDataFactory.create_category(self.tenant)
        response = self.client.post('/api/v1/categories/bulk-action/', {
            'ids': [str(used.id), str(unused.id)], 'action': 'delete',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], [str(unused.id)])
        self.assertEqual(response.data['skipped'][0]['reason'], 'CATEGORY_IN_USE')

    def test_view_only_member_cannot_create(self):
        self.membership.can_edit = False
        self.membership.save()
        response = self.client.post('/api/v1/categories/', {'name': 'Elpiji', 'type': 'GAS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/v1/categories/').status_code, status.HTTP_200_OK)


class ItemAPITests(TestCase):
    """Test item endpoints"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        TestDataFactory.create_membership(self.user, self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)
        self.category = TestDataFactory.create_category(self.tenant, 'GAS', 'Elpiji')
        self.location = TestDataFactory.create_location(self.tenant, 'Gudang')

    def test_create_item(self):
        response = self.client.post('/api/v1/items/', {
            'name': 'Gas 3kg',
            'sku': 'gas-3kg',
            'category_id': str(self.category.id),
            'unit': 'tabung',
            'min_stock': '4',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Gas 3kg')
        self.assertEqual(response.data['sku'], 'GAS-3KG')
        self.assertEqual(response.data['type'], 'GAS')
        item = Item.objects.get(sku='GAS-3KG')
        self.assertEqual(item.name, f'Gas 3kg_tenant_{self.tenant.id}')
        self.assertTrue(Stock.objects.filter(item=item, location=self.location, qty=0).exists())

    def test_create_item_duplicate_sku(self):
        TestDataFactory.create_item(self.tenant, sku='GAS-3KG')
        response = self.client.post('/api/v1/items/', {
            'name': 'Gas Lain', 'sku': 'gas-3kg', 'category_id': str(self.category.id), 'unit': 'tabung',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'ITEM_EXISTS')

    def test_create_item_with_foreign_category(self):
        foreign = TestDataFactory.create_category(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/items/', {
            'name': 'Gas 3kg', 'sku': 'GAS-1', 'category_id': str(foreign.id), 'unit': 'tabung',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'CATEGORY_NOT_FOUND')

    def test_create_item_rejects_tenant_marker(self):
        response = self.client.post('/api/v1/items/', {
            'name': 'x_tenant_y', 'sku': 'X-1', 'category_id': str(self.category.id), 'unit': 'pcs',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_items_scoped_and_filtered(self):
        TestDataFactory.create_item(self.tenant, category=self.category, name='Gas 3kg', item_type='GAS')
        TestDataFactory.create_item(self.tenant, name='Beras', is_active=False)
        TestDataFactory.create_item(TestDataFactory.create_tenant(), name='Gas Lain')

        response = self.client.get('/api/v1/items/')
        self.assertEqual(sorted(row['name'] for row in response.data), ['Beras', 'Gas 3kg'])

        response = self.client.get('/api/v1/items/?is_active=true&type=GAS')
        self.assertEqual([row['name'] for row in response.data], ['Gas 3kg'])

        response = self.client.get('/api/v1/items/?search=ber')
        self.assertEqual([row['name'] for row in response.data], ['Beras'])

    def test_search_ignores_tenant_suffix(self):
        TestDataFactory.create_item(self.tenant, name='Beras', sku='BRS-1')
        TestDataFactory.create_item(self.tenant, name='Minyak', sku='MYK-1')
        self.assertEqual(self.client.get('/api/v1/items/?search=tenant').data, [])
        self.assertEqual(self.client.get(f'/api/v1/items/?search={str(self.tenant.id)[:8]}').data, [])
        response = self.client.get('/api/v1/items/?search=miny')
        self.assertEqual([row['name'] for row in response.data], ['Minyak'])

    def test_get_item_of_other_tenant(self):
        item = TestDataFactory.create_item(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/items/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'ITEM_NOT_FOUND')

    def test_update_item(self):
        item = TestDataFactory.create_item(self.tenant, name='Gas 3kg')
        response = self.client.patch(f'/api/v1/items/{item.id}/', {
            'name': 'Gas 3 kg', 'min_stock': '10', 'category_id': str(self.category.id),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Gas 3 kg')
        item.refresh_from_db()
        self.assertEqual(item.min_stock, Decimal('10'))
        self.assertEqual(item.category, self.category)

    def test_bulk_delete_skips_items_with_transactions(self):
        used = TestDataFactory.create_item(self.tenant)
        InventoryTransaction.objects.create(
            trx_type=InventoryTransaction.TYPE_IN, item=used, to_location=self.location,
            qty=Decimal('1'), created_by=self.user,
        )
        unused = TestDataFactory.create_item(self.tenant)
        response = self.client.post('/api/v1/items/bulk-action/', {
            'ids': [str(used.id), str(unused.id)], 'action': 'delete',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], [str(unused.id)])
        self.assertEqual(response.data['skipped'][0]['reason'], 'ITEM_HAS_TRANSACTIONS')

    def test_bulk_set_category(self):
        item = TestDataFactory.create_item(self.tenant)
        response = self.client.post('/api/v1/items/bulk-action/', {
            'ids': [str(item.id)], 'action': 'set_category', 'category_id': str(self.category.id),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        item.refresh_from_db()
        self.assertEqual(item.category, self.category)

    def test_bulk_set_category_requires_category(self):
        item = TestDataFactory.create_item(self.tenant)
        response = self.client.post('/api/v1/items/bulk-action/', {
            'ids': [str(item.id)], 'action': 'set_category',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_action_ignores_foreign_items(self):
        item = TestDataFactory.create_item(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/items/bulk-action/', {
            'ids': [str(item.id)], 'action': 'deactivate',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class FilterHelperTests(TestCase):
    def test_parse_bool(self):
        self.assertIsNone(parse_bool(None))
        self.assertIsNone(parse_bool(''))
        self.assertTrue(parse_bool('true'))
        self.assertTrue(parse_bool('1'))
        self.assertFalse(parse_bool('false'))
