"""
Test suite for Checklists module
Tests: line encoding helpers, daily runs, submission, monitoring and Telegram export
"""
from datetime import timedelta
from unittest.mock import patch
from django.db import IntegrityError, connection, transaction
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.test.utils import CaptureQueriesContext
from django.utils import timezone
from rest_framework import status
from backend.checklists.models import ChecklistRun, ChecklistRunItem
from backend.checklists.services import (
    attach_condition_note,
    decode_title,
    encode_title,
    extract_condition_percent,
    get_today_run,
    result_from_condition,
    template_name_for,
)
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, run_concurrently


class ChecklistHelperTests(TestCase):
    """Test title and note encoding"""

    def test_encode_decode_title(self):
        self.assertEqual(encode_title('ASSET', ' Kompor '), 'ASSET::Kompor')
        self.assertEqual(decode_title('ASSET::Kompor'), ('ASSET', 'Kompor'))

    def test_decode_legacy_title_by_keyword(self):
        self.assertEqual(decode_title('Tabung gas isi ulang')[0], 'GAS')
        self.assertEqual(decode_title('Alat masak')[0], 'ASSET')
        self.assertEqual(decode_title('Beras'), ('CONSUMABLE', 'Beras'))

    def test_extract_condition_percent(self):
        self.assertEqual(extract_condition_percent('Baik | Kondisi: 85%'), 85)
        self.assertEqual(extract_condition_percent('kondisi=150'), 100)
        self.assertIsNone(extract_condition_percent('Baik'))
        self.assertIsNone(extract_condition_percent(''))

    def test_attach_condition_note(self):
        self.assertEqual(attach_condition_note('Baik | Kondisi: 50%', 85), 'Baik | Kondisi: 85%')
        self.assertEqual(attach_condition_note('', 70), 'Kondisi: 70%')
        self.assertEqual(attach_condition_note('Baik | Kondisi: 50%', None), 'Baik')

    def test_result_from_condition(self):
        self.assertEqual(result_from_condition(80), 'OK')
        self.assertEqual(result_from_condition(50), 'LOW')
        self.assertEqual(result_from_condition(49), 'OUT')


class ChecklistTodayTests(TestCase):
    """Test daily run creation and rebuilding"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        TestDataFactory.create_membership(self.user, self.tenant, can_edit=False)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)

    def test_default_lines_without_items(self):
        response = self.client.get('/api/v1/checklists/today/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'DRAFT')
        self.assertEqual(response.data['template_name'], template_name_for(self.tenant))
        self.assertEqual(len(response.data['items']), 3)
        self.assertEqual({line['item_type'] for line in response.data['items']}, {'CONSUMABLE', 'GAS', 'ASSET'})
        self.assertTrue(all(line['result'] == 'NA' for line in response.data['items']))

    def test_lines_follow_active_items(self):
        TestDataFactory.create_item(self.tenant, name='Kompor', item_type='ASSET')
        TestDataFactory.create_item(self.tenant, name='Beras')
        TestDataFactory.create_item(self.tenant, name='Sisa Lama', is_active=False)
        response = self.client.get('/api/v1/checklists/today/')
        self.assertEqual([(line['title'], line['item_type']) for line in response.data['items']],
                         [('Beras', 'CONSUMABLE'), ('Kompor', 'ASSET')])

    def test_same_run_returned_twice(self):
        first = self.client.get('/api/v1/checklists/today/')
        second = self.client.get('/api/v1/checklists/today/')
        self.assertEqual(first.data['run_id'], second.data['run_id'])
        self.assertEqual(ChecklistRun.objects.count(), 1)

    def test_draft_run_rebuilt_when_items_change(self):
        run = get_today_run(self.tenant, self.user)
        self.assertEqual(run.items.count(), 3)
        TestDataFactory.create_item(self.tenant, name='Minyak')
        response = self.client.get('/api/v1/checklists/today/')
        self.assertEqual(response.data['run_id'], str(run.id))
        self.assertEqual([line['title'] for line in response.data['items']], ['Minyak'])

    def test_submitted_run_not_rebuilt(self):
        run = get_today_run(self.tenant, self.user)
        run.status = ChecklistRun.STATUS_SUBMITTED
        run.save()
        TestDataFactory.create_item(self.tenant, name='Minyak')
        response = self.client.get('/api/v1/checklists/today/')
        self.assertEqual(len(response.data['items']), 3)

    def test_run_per_location(self):
        location = TestDataFactory.create_location(self.tenant, 'Dapur')
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant, location=location)
        located = client.get('/api/v1/checklists/today/')
        unlocated = self.client.get('/api/v1/checklists/today/')
        self.assertNotEqual(located.data['run_id'], unlocated.data['run_id'])
        self.assertEqual(located.data['location']['name'], 'Dapur')
        self.assertIsNone(unlocated.data['location'])


class ChecklistSubmitTests(TestCase):
    """Test saving and submitting runs"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        TestDataFactory.create_membership(self.user, self.tenant, can_edit=False)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)
        TestDataFactory.create_item(self.tenant, name='Kompor', item_type='ASSET')
        TestDataFactory.create_item(self.tenant, name='Beras')
        self.run = get_today_run(self.tenant, self.user)
        self.lines = {decode_title(line.title)[1]: line for line in self.run.items.all()}

    def _submit(self, run_status, items, run_id=None):
        return self.client.post('/api/v1/checklists/today/submit/', {
            'run_id': str(run_id or self.run.id),
            'status': run_status,
            'items': items,
        }, format='json')

    def test_save_draft(self):
        response = self._submit('DRAFT', [{'id': str(self.lines['Beras'].id), 'result': 'LOW', 'notes': 'Sisa 1 karung'}])
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'CHECKLIST_SAVED')
        self.assertEqual(response.data['run']['status'], 'DRAFT')
        line = ChecklistRunItem.objects.get(pk=self.lines['Beras'].pk)
        self.assertEqual(line.result, 'LOW')
        self.assertEqual(line.notes, 'Sisa 1 karung')

    def test_submit_derives_asset_result_from_condition(self):
        response = self._submit('SUBMITTED', [
            {'id': str(self.lines['Kompor'].id), 'result': 'OK', 'notes': 'Api kecil', 'condition_percent': 40},
            {'id': str(self.lines['Beras'].id), 'result': 'OK'},
        ])
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['run']['status'], 'SUBMITTED')
        self.assertIsNotNone(response.data['run']['submitted_at'])

        kompor = next(line for line in response.data['run']['items'] if line['title'] == 'Kompor')
        self.assertEqual(kompor['result'], 'OUT')
        self.assertEqual(kompor['condition_percent'], 40)
        self.assertEqual(kompor['notes'], 'Api kecil | Kondisi: 40%')
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.ACTION_SUBMIT, tenant=self.tenant).exists())

    def test_condition_ignored_for_consumables(self):
        self._submit('DRAFT', [{'id': str(self.lines['Beras'].id), 'result': 'OK', 'condition_percent': 10}])
        line = ChecklistRunItem.objects.get(pk=self.lines['Beras'].pk)
        self.assertEqual(line.result, 'OK')

    def test_submitted_run_is_locked(self):
        self._submit('SUBMITTED', [])
        response = self._submit('DRAFT', [{'id': str(self.lines['Beras'].id), 'result': 'OUT'}])
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'CHECKLIST_LOCKED')

    def test_unknown_lines_ignored(self):
        response = self._submit('DRAFT', [{'id': '00000000-0000-0000-0000-000000000000', 'result': 'OK'}])
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_run_of_other_tenant(self):
        other = TestDataFactory.create_tenant()
        other_run = get_today_run(other, self.user)
        response = self._submit('DRAFT', [], run_id=other_run.id)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'CHECKLIST_RUN_NOT_FOUND')

    def test_condition_out_of_range(self):
        response = self._submit('DRAFT', [{'id': str(self.lines['Kompor'].id), 'result': 'OK', 'condition_percent': 120}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ChecklistMonitoringTests(TestCase):
    """Test monitoring report and exports"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        TestDataFactory.create_membership(self.user, self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)
        TestDataFactory.create_item(self.tenant, name='Kompor', item_type='ASSET')
        TestDataFactory.create_item(self.tenant, name='Beras')
        self.run = get_today_run(self.tenant, self.user)
        for line in self.run.items.all():
            line.result = ChecklistRunItem.RESULT_OK if 'Beras' in line.title else ChecklistRunItem.RESULT_DAMAGED
            line.save()
        self.run.status = ChecklistRun.STATUS_SUBMITTED
        self.run.save()

    def test_monitoring_defaults_to_today(self):
        response = self.client.get('/api/v1/checklists/monitoring/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period'], 'DAILY')
        self.assertEqual(response.data['date_from'], timezone.localdate().isoformat())
        summary = response.data['summary']
        self.assertEqual(summary['total_runs'], 1)
        self.assertEqual(summary['submitted_runs'], 1)
        self.assertEqual(summary['results']['OK'], 1)
        self.assertEqual(summary['results']['DAMAGED'], 1)
        self.assertEqual(len(response.data['items']), 2)

    def test_monitoring_item_type_filter(self):
        response = self.client.get('/api/v1/checklists/monitoring/?item_type=ASSET')
        self.assertEqual([row['title'] for row in response.data['items']], ['Kompor'])
        self.assertEqual(response.data['items'][0]['last_result'], 'DAMAGED')

    def test_monitoring_custom_range_excludes_today(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        response = self.client.get(f'/api/v1/checklists/monitoring/?from={yesterday.isoformat()}&to={yesterday.isoformat()}')
        self.assertEqual(response.data['period'], 'CUSTOM')
        self.assertEqual(response.data['summary']['total_runs'], 0)

    def test_monitoring_ignores_other_tenants(self):
        get_today_run(TestDataFactory.create_tenant(), self.user)
        response = self.client.get('/api/v1/checklists/monitoring/?period=WEEKLY')
        self.assertEqual(response.data['summary']['total_runs'], 1)

    def test_today_export_skipped(self):
        with patch('backend.checklists.views.send_document') as send:
            response = self.client.post('/api/v1/checklists/today/export/send-telegram/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'TELEGRAM_EXPORT_SKIPPED')
        send.assert_not_called()

    def test_today_export_sends_pdf(self):
        TestDataFactory.create_telegram_setting(self.tenant)
        with patch('backend.checklists.views.send_document') as send:
            response = self.client.post(
                '/api/v1/checklists/today/export/send-telegram/', {'run_id': str(self.run.id)}, format='json'
            )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'TELEGRAM_EXPORT_SENT')
        args, kwargs = send.call_args
        self.assertEqual(args[2], f'checklist-{self.run.run_date:%Y-%m-%d}.pdf')
        self.assertTrue(args[3].startswith(b'%PDF'))

    def test_today_export_without_run(self):
        TestDataFactory.create_telegram_setting(self.tenant)
        ChecklistRun.objects.all().delete()
        with patch('backend.checklists.views.send_document'):
            response = self.client.post('/api/v1/checklists/today/export/send-telegram/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_monitoring_export_sends_pdf(self):
        TestDataFactory.create_telegram_setting(self.tenant)
        with patch('backend.checklists.views.send_document') as send:
            response = self.client.post(
                '/api/v1/checklists/monitoring/export/send-telegram/', {'period': 'WEEKLY'}, format='json'
            )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        send.assert_called_once()
        self.assertTrue(AuditLog.objects.filter(
            action=AuditLog.ACTION_SEND_TELEGRAM, entity_type='checklist_exports', entity_id='monitoring',
        ).exists())


class ChecklistRunUniquenessTests(TestCase):
    """Test one run per template, day and location"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        self.run = get_today_run(self.tenant, self.user)

    def test_second_run_without_location_rejected(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                ChecklistRun.objects.create(template=self.run.template, run_date=self.run.run_date, location=None)

    def test_second_run_at_location_rejected(self):
        location = TestDataFactory.create_location(self.tenant, 'Dapur')
        get_today_run(self.tenant, self.user, location)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                ChecklistRun.objects.create(template=self.run.template, run_date=self.run.run_date, location=location)

    def test_other_day_allowed(self):
        ChecklistRun.objects.create(
            template=self.run.template, run_date=self.run.run_date - timedelta(days=1), location=None,
        )
        self.assertEqual(ChecklistRun.objects.count(), 2)

    @skipUnlessDBFeature('has_select_for_update')
    def test_submit_locks_run(self):
        TestDataFactory.create_membership(self.user, self.tenant)
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user, tenant=self.tenant)
        with CaptureQueriesContext(connection) as queries:
            client.post('/api/v1/checklists/today/submit/', {
                'run_id': str(self.run.id), 'status': 'SUBMITTED', 'items': [],
            }, format='json')
        self.assertTrue(any('FOR UPDATE' in query['sql'] for query in queries.captured_queries))


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentChecklistTests(TransactionTestCase):
    """Parallel first loads and submits of today's run"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        TestDataFactory.create_membership(self.user, self.tenant)

    def _request(self, method, path, data=None):
        def call():
            client = AuthenticatedAPIClient()
            client.authenticate_user(self.user, tenant=self.tenant)
            return getattr(client, method)(path, data, format='json')
        return call

    def test_parallel_first_load(self):
        responses = run_concurrently(
            self._request('get', '/api/v1/checklists/today/'),
            self._request('get', '/api/v1/checklists/today/'),
        )
        self.assertEqual([r.status_code for r in responses], [200, 200])
        self.assertEqual(responses[0].data['run_id'], responses[1].data['run_id'])
        self.assertEqual(ChecklistRun.objects.count(), 1)

    def test_parallel_submit(self):
        run = get_today_run(self.tenant, self.user)
        payload = {'run_id': str(run.id), 'status': 'SUBMITTED', 'items': []}
        responses = run_concurrently(
            self._request('post', '/api/v1/checklists/today/submit/', payload),
            self._request('post', '/api/v1/checklists/today/submit/', payload),
        )
        self.assertEqual(sorted(r.status_code for r in responses), [200, 409])
        self.assertEqual(AuditLog.objects.filter(action=AuditLog.ACTION_SUBMIT).count(), 1)
