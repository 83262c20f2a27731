"""
Comprehensive test suite for Inventory module
Tests: stock movements, location guards, bulk adjustments, listings and Telegram export
"""
from decimal import Decimal
from unittest.mock import patch
from django.db import IntegrityError, connection, transaction
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.test.utils import CaptureQueriesContext
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, run_concurrently
from backend.inventory.models import InventoryTransaction, Stock
from backend.inventory.services import format_qty, stock_status


class StockHelperTests(TestCase):
    def test_stock_status(self):
        self.assertEqual(stock_status(Decimal('0'), Decimal('5')), 'OUT')
        self.assertEqual(stock_status(Decimal('5'), Decimal('5')), 'LOW')
        self.assertEqual(stock_status(Decimal('6'), Decimal('5')), 'SAFE')

    def test_format_qty(self):
        self.assertEqual(format_qty(Decimal('5.000')), '5')
        self.assertEqual(format_qty(Decimal('2.500')), '2.5')
        self.assertEqual(format_qty(Decimal('100')), '100')


class InventoryTestCase(TestCase):
    """Shared tenant, member, item and two locations"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        self.membership = TestDataFactory.create_membership(self.user, self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)
        self.item = TestDataFactory.create_item(self.tenant, name='Beras 5kg', unit='karung', min_stock=Decimal('3'))
        self.gudang = TestDataFactory.create_location(self.tenant, 'Gudang')
        self.dapur = TestDataFactory.create_location(self.tenant, 'Dapur')

    def post_transaction(self, trx_type, qty, from_location=None, to_location=None, item=None, client=None):
        data = {'trx_type': trx_type, 'item_id': str((item or self.item).id), 'qty': str(qty)}
        if from_location is not None:
            data['from_location_id'] = str(from_location.id)
        if to_location is not None:
            data['to_location_id'] = str(to_location.id)
        return (client or self.client).post('/api/v1/transactions/', data, format='json')

    def qty_at(self, location, item=None):
        stock = Stock.objects.filter(item=item or self.item, location=location).first()
        return stock.qty if stock else None


class TransactionAPITests(InventoryTestCase):
    """Test single stock movements"""

    def test_stock_in(self):
        response = self.post_transaction('IN', '10', to_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['trx_type'], 'IN')
        self.assertEqual(response.data['item']['name'], 'Beras 5kg')
        self.assertIsNone(response.data['from_location'])
        self.assertEqual(self.qty_at(self.gudang), Decimal('10'))
        self.assertTrue(AuditLog.objects.filter(entity_type='inventory_transactions', tenant=self.tenant).exists())

    def test_stock_in_ignores_source_location(self):
        response = self.post_transaction('IN', '2', from_location=self.dapur, to_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(InventoryTransaction.objects.get().from_location)

    def test_stock_out(self):
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('10'))
        response = self.post_transaction('OUT', '4', from_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.qty_at(self.gudang), Decimal('6'))

    def test_stock_out_insufficient(self):
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('3'))
        response = self.post_transaction('OUT', '4', from_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'STOCK_INSUFFICIENT')
        self.assertEqual(self.qty_at(self.gudang), Decimal('3'))
        self.assertFalse(InventoryTransaction.objects.exists())

    def test_stock_out_without_stock_row(self):
        response = self.post_transaction('OUT', '1', from_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'STOCK_INSUFFICIENT')

    def test_transfer(self):
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('10'))
        response = self.post_transaction('TRANSFER', '2.5', from_location=self.gudang, to_location=self.dapur)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.qty_at(self.gudang), Decimal('7.5'))
        self.assertEqual(self.qty_at(self.dapur), Decimal('2.5'))

    def test_transfer_same_location(self):
        response = self.post_transaction('TRANSFER', '1', from_location=self.gudang, to_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'LOCATION_INVALID')

    def test_transfer_requires_both_locations(self):
        response = self.post_transaction('TRANSFER', '1', from_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'LOCATION_REQUIRED')

    def test_out_requires_source(self):
        response = self.post_transaction('OUT', '1', to_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'LOCATION_REQUIRED')

    def test_adjust_signed_delta(self):
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('5'))
        response = self.post_transaction('ADJUST', '-2', from_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.qty_at(self.gudang), Decimal('3'))

    def test_adjust_below_zero(self):
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('1'))
        response = self.post_transaction('ADJUST', '-2', from_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'STOCK_NEGATIVE')
        self.assertEqual(self.qty_at(self.gudang), Decimal('1'))

    def test_zero_qty_rejected(self):
        response = self.post_transaction('IN', '0', to_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'QTY_INVALID')

    def test_negative_out_rejected(self):
        response = self.post_transaction('OUT', '-1', from_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'QTY_INVALID')

    def test_active_location_guard(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant, location=self.dapur)
        response = self.post_transaction('IN', '1', to_location=self.gudang, client=client)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'LOCATION_FORBIDDEN')

        response = self.post_transaction('IN', '1', to_location=self.dapur, client=client)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_foreign_item(self):
        foreign_item = TestDataFactory.create_item(TestDataFactory.create_tenant())
        response = self.post_transaction('IN', '1', to_location=self.gudang, item=foreign_item)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_foreign_location(self):
        foreign_location = TestDataFactory.create_location(TestDataFactory.create_tenant())
        response = self.post_transaction('IN', '1', to_location=foreign_location)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_inactive_location(self):
        inactive = TestDataFactory.create_location(self.tenant, 'Lama', active=False)
        response = self.post_transaction('IN', '1', to_location=inactive)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'LOCATION_INACTIVE')

    def test_view_only_member_cannot_post(self):
        self.membership.can_edit = False
        self.membership.save()
        response = self.post_transaction('IN', '1', to_location=self.gudang)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_transactions(self):
        self.post_transaction('IN', '10', to_location=self.gudang)
        self.post_transaction('OUT', '1', from_location=self.gudang)
        other_item = TestDataFactory.create_item(TestDataFactory.create_tenant())
        InventoryTransaction.objects.create(
            trx_type='IN', item=other_item, to_location=self.gudang, qty=Decimal('1'), created_by=self.user,
        )

        response = self.client.get('/api/v1/transactions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['tenant_code'], self.tenant.code)

        response = self.client.get('/api/v1/transactions/?trx_type=OUT&period=DAILY')
        self.assertEqual([row['trx_type'] for row in response.data], ['OUT'])

    def test_list_transactions_for_active_location(self):
        self.post_transaction('IN', '10', to_location=self.gudang)
        self.post_transaction('IN', '5', to_location=self.dapur)
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant, location=self.dapur)
        response = client.get('/api/v1/transactions/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['to_location']['name'], 'Dapur')

    def test_list_invalid_date_range(self):
        response = self.client.get('/api/v1/transactions/?from=2024-02-01&to=2024-01-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'DATE_RANGE_INVALID')


class BulkAdjustAPITests(InventoryTestCase):
    """Test batched stock adjustments"""

    def setUp(self):
        super().setUp()
        self.item2 = TestDataFactory.create_item(self.tenant, name='Minyak Goreng')
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('10'))
        TestDataFactory.create_stock(self.item2, self.gudang, Decimal('2'))

    def test_bulk_adjust(self):
        response = self.client.post('/api/v1/transactions/bulk-adjust/', {
            'location_id': str(self.gudang.id),
            'reason': 'Stock opname',
            'adjustments': [
                {'item_id': str(self.item.id), 'qty': '-3'},
                {'item_id': str(self.item2.id), 'qty': '5'},
                {'item_id': str(self.item2.id), 'qty': '0'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'BULK_ADJUST_COMPLETED')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(self.qty_at(self.gudang), Decimal('7'))
        self.assertEqual(self.qty_at(self.gudang, self.item2), Decimal('7'))
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.ACTION_BULK_ADJUST).exists())

    def test_bulk_adjust_requires_reason(self):
        response = self.client.post('/api/v1/transactions/bulk-adjust/', {
            'location_id': str(self.gudang.id),
            'reason': '  ',
            'adjustments': [{'item_id': str(self.item.id), 'qty': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'REASON_REQUIRED')

    def test_bulk_adjust_all_zero(self):
        response = self.client.post('/api/v1/transactions/bulk-adjust/', {
            'location_id': str(self.gudang.id),
            'reason': 'Opname',
            'adjustments': [{'item_id': str(self.item.id), 'qty': '0'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'ADJUSTMENTS_EMPTY')

    def test_bulk_adjust_rolls_back_on_negative(self):
        response = self.client.post('/api/v1/transactions/bulk-adjust/', {
            'location_id': str(self.gudang.id),
            'reason': 'Opname',
            'adjustments': [
                {'item_id': str(self.item.id), 'qty': '-3'},
                {'item_id': str(self.item2.id), 'qty': '-5'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'STOCK_NEGATIVE')
        self.assertEqual(self.qty_at(self.gudang), Decimal('10'))
        self.assertFalse(InventoryTransaction.objects.exists())

    def test_bulk_adjust_foreign_item(self):
        foreign_item = TestDataFactory.create_item(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/transactions/bulk-adjust/', {
            'location_id': str(self.gudang.id),
            'reason': 'Opname',
            'adjustments': [{'item_id': str(foreign_item.id), 'qty': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'ITEM_NOT_FOUND')

    def test_bulk_adjust_outside_active_location(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant, location=self.dapur)
        response = client.post('/api/v1/transactions/bulk-adjust/', {
            'location_id': str(self.gudang.id),
            'reason': 'Opname',
            'adjustments': [{'item_id': str(self.item.id), 'qty': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'LOCATION_FORBIDDEN')


class StockListAPITests(InventoryTestCase):
    """Test stock listing"""

    def setUp(self):
        super().setUp()
        self.item2 = TestDataFactory.create_item(self.tenant, name='Garam', min_stock=Decimal('1'))
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('2'))
        TestDataFactory.create_stock(self.item, self.dapur, Decimal('0'))
        TestDataFactory.create_stock(self.item2, self.gudang, Decimal('8'))

    def test_list_stocks(self):
        response = self.client.get('/api/v1/stocks/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)
        row = next(r for r in response.data if r['item']['name'] == 'Beras 5kg' and r['location']['name'] == 'Gudang')
        self.assertEqual(row['status'], 'LOW')

    def test_status_filter(self):
        response = self.client.get('/api/v1/stocks/?status=OUT')
        self.assertEqual([(r['item']['name'], r['location']['name']) for r in response.data], [('Beras 5kg', 'Dapur')])
        response = self.client.get('/api/v1/stocks/?status=SAFE')
        self.assertEqual([r['item']['name'] for r in response.data], ['Garam'])

    def test_search_ignores_tenant_suffix(self):
        response = self.client.get('/api/v1/stocks/?search=tenant')
        self.assertEqual(response.data, [])

    def test_search_and_location_filter(self):
        response = self.client.get(f'/api/v1/stocks/?search=beras&location_id={self.gudang.id}')
        self.assertEqual(len(response.data), 1)

    def test_inactive_locations_hidden(self):
        inactive = TestDataFactory.create_location(self.tenant, 'Lama', active=False)
        TestDataFactory.create_stock(self.item, inactive, Decimal('4'))
        response = self.client.get('/api/v1/stocks/')
        self.assertNotIn('Lama', {r['location']['name'] for r in response.data})

    def test_active_location_scope(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant, location=self.dapur)
        response = client.get('/api/v1/stocks/')
        self.assertEqual({r['location']['name'] for r in response.data}, {'Dapur'})


class TransactionTelegramExportTests(InventoryTestCase):
    """Test sending the transaction report to Telegram"""

    def test_export_skipped_when_disabled(self):
        TestDataFactory.create_telegram_setting(self.tenant, enabled=False)
        with patch('backend.inventory.views.send_document') as send:
            response = self.client.post('/api/v1/transactions/export/send-telegram/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'TELEGRAM_EXPORT_SKIPPED')
        self.assertFalse(response.data['sent'])
        send.assert_not_called()

    def test_export_skipped_when_flag_off(self):
        setting = TestDataFactory.create_telegram_setting(self.tenant)
        setting.send_on_transaction_export = False
        setting.save()
        with patch('backend.inventory.views.send_document') as send:
            response = self.client.post('/api/v1/transactions/export/send-telegram/', {}, format='json')
        self.assertFalse(response.data['sent'])
        send.assert_not_called()

    def test_export_sends_pdf(self):
        TestDataFactory.create_telegram_setting(self.tenant, bot_token='123:abc', chat_id='-100')
        self.post_transaction('IN', '10', to_location=self.gudang)
        with patch('backend.inventory.views.send_document') as send:
            response = self.client.post(
                '/api/v1/transactions/export/send-telegram/', {'period': 'DAILY'}, format='json'
            )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'TELEGRAM_EXPORT_SENT')
        self.assertEqual(response.data['count'], 1)

        args, kwargs = send.call_args
        self.assertEqual(args[0], '123:abc')
        self.assertEqual(args[1], '-100')
        self.assertTrue(args[2].endswith('.pdf'))
        self.assertTrue(args[3].startswith(b'%PDF'))
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.ACTION_SEND_TELEGRAM).exists())

    def test_export_accepts_form_body(self):
        TestDataFactory.create_telegram_setting(self.tenant, bot_token='123:abc', chat_id='-100')
        self.post_transaction('IN', '10', to_location=self.gudang)
        self.post_transaction('OUT', '2', from_location=self.gudang)
        with patch('backend.inventory.views.send_document') as send:
            response = self.client.post(
                '/api/v1/transactions/export/send-telegram/', {'period': 'DAILY', 'trx_type': 'OUT'},
                format='multipart',
            )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'TELEGRAM_EXPORT_SENT')
        self.assertEqual(response.data['count'], 1)
        send.assert_called_once()


class StockConsistencyTests(InventoryTestCase):
    """Test that stock can never go negative"""

    def test_database_rejects_negative_qty(self):
        stock = TestDataFactory.create_stock(self.item, self.gudang, Decimal('1'))
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Stock.objects.filter(pk=stock.pk).update(qty=Decimal('-1'))
        self.assertEqual(self.qty_at(self.gudang), Decimal('1'))

    def test_database_rejects_negative_new_row(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Stock.objects.create(item=self.item, location=self.dapur, qty=Decimal('-0.5'))

    def test_second_out_exceeding_remaining_stock(self):
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('10'))
        first = self.post_transaction('OUT', '6', from_location=self.gudang)
        second = self.post_transaction('OUT', '6', from_location=self.gudang)
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(second.data['code'], 'STOCK_INSUFFICIENT')
        self.assertEqual(self.qty_at(self.gudang), Decimal('4'))

    @skipUnlessDBFeature('has_select_for_update')
    def test_stock_row_locked_for_movement(self):
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('10'))
        with CaptureQueriesContext(connection) as queries:
            self.post_transaction('OUT', '1', from_location=self.gudang)
        self.assertTrue(any('FOR UPDATE' in query['sql'] for query in queries.captured_queries))


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentStockMovementTests(TransactionTestCase):
    """Parallel movements against one stock row"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        TestDataFactory.create_membership(self.user, self.tenant)
        self.item = TestDataFactory.create_item(self.tenant, name='Beras 5kg')
        self.gudang = TestDataFactory.create_location(self.tenant, 'Gudang')
        self.dapur = TestDataFactory.create_location(self.tenant, 'Dapur')
        TestDataFactory.create_stock(self.item, self.gudang, Decimal('10'))

    def _move(self, trx_type, to_location=None):
        def call():
            client = AuthenticatedAPIClient()
            client.authenticate_user(self.user, tenant=self.tenant)
            data = {
                'trx_type': trx_type, 'item_id': str(self.item.id), 'qty': '6',
                'from_location_id': str(self.gudang.id),
            }
            if to_location is not None:
                data['to_location_id'] = str(to_location.id)
            return client.post('/api/v1/transactions/', data, format='json')
        return call

    def test_parallel_outs(self):
        responses = run_concurrently(self._move('OUT'), self._move('OUT'))
        self.assertEqual(sorted(r.status_code for r in responses), [201, 400])
        rejected = next(r for r in responses if r.status_code == 400)
        self.assertEqual(rejected.data['code'], 'STOCK_INSUFFICIENT')
        self.assertEqual(Stock.objects.get(item=self.item, location=self.gudang).qty, Decimal('4'))
        self.assertEqual(InventoryTransaction.objects.count(), 1)

    def test_parallel_out_and_transfer(self):
        responses = run_concurrently(self._move('OUT'), self._move('TRANSFER', to_location=self.dapur))
        self.assertEqual(sorted(r.status_code for r in responses), [201, 400])
        self.assertEqual(Stock.objects.get(item=self.item, location=self.gudang).qty, Decimal('4'))
