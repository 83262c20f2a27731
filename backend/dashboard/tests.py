"""
Test suite for Dashboard module
Tests: summary counters and caching, low-stock rows, notification feed
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.checklists.models import ChecklistRun
from backend.checklists.services import get_today_run
from backend.core.cache_utils import bump_dashboard_version
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import Stock
from backend.purchasing.models import PurchaseRequest


class DashboardTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        TestDataFactory.create_membership(self.user, self.tenant, can_edit=False)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)
        self.gudang = TestDataFactory.create_location(self.tenant, 'Gudang')
        self.dapur = TestDataFactory.create_location(self.tenant, 'Dapur')
        self.beras = TestDataFactory.create_item(self.tenant, name='Beras', min_stock=Decimal('5'), unit='karung')
        self.minyak = TestDataFactory.create_item(self.tenant, name='Minyak', min_stock=Decimal('5'))


class DashboardSummaryTests(DashboardTestCase):
    """Test headline counters"""

    def test_summary_counts(self):
        TestDataFactory.create_stock(self.beras, self.gudang, Decimal('2'))
        TestDataFactory.create_stock(self.minyak, self.gudang, Decimal('10'))
        retired = TestDataFactory.create_item(self.tenant, name='Lama', is_active=False)
        TestDataFactory.create_stock(retired, self.gudang, Decimal('0'))
        inactive_location = TestDataFactory.create_location(self.tenant, 'Rak Lama', active=False)
        TestDataFactory.create_stock(self.minyak, inactive_location, Decimal('0'))
        get_today_run(self.tenant, self.user)
        TestDataFactory.create_purchase_request(self.tenant, self.user, status=PurchaseRequest.STATUS_SUBMITTED)
        TestDataFactory.create_purchase_request(self.tenant, self.user)

        other = TestDataFactory.create_tenant()
        TestDataFactory.create_item(other)
        TestDataFactory.create_purchase_request(other, self.user, status=PurchaseRequest.STATUS_ORDERED)

        response = self.client.get('/api/v1/dashboard/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {
            'item_count': 2,
            'low_stock_count': 1,
            'checklist_pending_count': 1,
            'active_pr_count': 1,
        })

    def test_submitted_checklist_not_pending(self):
        run = get_today_run(self.tenant, self.user)
        run.status = ChecklistRun.STATUS_SUBMITTED
        run.save()
        response = self.client.get('/api/v1/dashboard/summary/')
        self.assertEqual(response.data['checklist_pending_count'], 0)

    def test_summary_cached_until_version_bump(self):
        first = self.client.get('/api/v1/dashboard/summary/')
        TestDataFactory.create_item(self.tenant, name='Garam')
        cached = self.client.get('/api/v1/dashboard/summary/')
        self.assertEqual(cached.data['item_count'], first.data['item_count'])

        bump_dashboard_version()
        fresh = self.client.get('/api/v1/dashboard/summary/')
        self.assertEqual(fresh.data['item_count'], first.data['item_count'] + 1)

    def test_summary_requires_tenant(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user)
        response = client.get('/api/v1/dashboard/summary/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'TENANT_CONTEXT_REQUIRED')


class LowStockTests(DashboardTestCase):
    """Test low-stock rows"""

    def setUp(self):
        super().setUp()
        TestDataFactory.create_stock(self.beras, self.gudang, Decimal('1'))
        TestDataFactory.create_stock(self.beras, self.dapur, Decimal('4'))
        TestDataFactory.create_stock(self.minyak, self.gudang, Decimal('20'))

    def test_low_stock_rows(self):
        response = self.client.get('/api/v1/dashboard/low-stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([(row['item_name'], row['location_name']) for row in response.data],
                         [('Beras', 'Gudang'), ('Beras', 'Dapur')])
        self.assertEqual(response.data[0]['qty'], Decimal('1'))
        self.assertEqual(response.data[0]['unit'], 'karung')

    def test_low_stock_respects_active_location(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant, location=self.dapur)
        response = client.get('/api/v1/dashboard/low-stock/')
        self.assertEqual([row['location_id'] for row in response.data], [str(self.dapur.id)])


class NotificationTests(DashboardTestCase):
    """Test the merged notification feed"""

    def setUp(self):
        super().setUp()
        now = timezone.now()
        empty = TestDataFactory.create_stock(self.beras, self.gudang, Decimal('0'))
        low = TestDataFactory.create_stock(self.minyak, self.dapur, Decimal('3'))
        Stock.objects.filter(pk=empty.pk).update(updated_at=now - timedelta(hours=3))
        Stock.objects.filter(pk=low.pk).update(updated_at=now - timedelta(hours=2))

        run = get_today_run(self.tenant, self.user)
        ChecklistRun.objects.filter(pk=run.pk).update(
            status=ChecklistRun.STATUS_SUBMITTED, updated_at=now - timedelta(hours=1),
        )
        self.run = run

        self.purchase_request = TestDataFactory.create_purchase_request(
            self.tenant, self.user, status=PurchaseRequest.STATUS_APPROVED
        )
        TestDataFactory.create_purchase_request(self.tenant, self.user, status=PurchaseRequest.STATUS_RECEIVED)
        self.empty, self.low = empty, low

    def test_feed_order_and_titles(self):
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([entry['id'] for entry in response.data], [
            f'pr-{self.purchase_request.id}',
            f'checklist-{self.run.id}',
            f'stock-{self.low.id}',
            f'stock-{self.empty.id}',
        ])
        self.assertEqual([entry['title'] for entry in response.data], [
            'Active purchase request', 'Checklist submitted', 'Stock low', 'Stock out',
        ])
        self.assertEqual(response.data[0]['tenant_code'], self.tenant.code)
        self.assertIn('APPROVED', response.data[0]['message'])
        self.assertEqual(response.data[2]['type'], 'warning')

    def test_feed_respects_active_location(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant, location=self.dapur)
        response = client.get('/api/v1/notifications/')
        ids = [entry['id'] for entry in response.data]
        self.assertIn(f'stock-{self.low.id}', ids)
        self.assertNotIn(f'stock-{self.empty.id}', ids)
        self.assertNotIn(f'checklist-{self.run.id}', ids)
        self.assertIn(f'pr-{self.purchase_request.id}', ids)

    def test_feed_is_capped(self):
        with patch('backend.dashboard.services.NOTIFICATION_LIMIT', 2):
            response = self.client.get('/api/v1/notifications/')
        self.assertEqual(len(response.data), 2)
