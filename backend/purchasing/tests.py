"""
Comprehensive test suite for Purchasing module
Tests: PR numbering, creation, tenant isolation, status workflow and bulk updates
"""
from datetime import date
from decimal import Decimal
from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.test.utils import CaptureQueriesContext
from rest_framework import status
from backend.core.models import AuditLog, User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, run_concurrently
from backend.purchasing.models import PurchaseRequest, PurchaseRequestStatusHistory
from backend.purchasing.services import generate_pr_number


class PurchaseRequestModelTests(TestCase):
    """Test workflow map and totals"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()

    def test_allowed_transitions(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.user)
        self.assertTrue(purchase_request.can_transition_to(PurchaseRequest.STATUS_SUBMITTED))
        self.assertTrue(purchase_request.can_transition_to(PurchaseRequest.STATUS_CANCELLED))
        self.assertFalse(purchase_request.can_transition_to(PurchaseRequest.STATUS_APPROVED))

    def test_terminal_statuses(self):
        for terminal in (PurchaseRequest.STATUS_REJECTED, PurchaseRequest.STATUS_RECEIVED,
                         PurchaseRequest.STATUS_CANCELLED):
            purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.user, status=terminal)
            self.assertFalse(any(
                purchase_request.can_transition_to(target) for target, _ in PurchaseRequest.STATUS_CHOICES
            ))

    def test_get_total(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.user, items=[
            ('Beras 5kg', Decimal('2'), Decimal('65000')),
            ('Minyak 2L', Decimal('3'), Decimal('35000')),
        ])
        self.assertEqual(purchase_request.get_total(), Decimal('235000'))


class PRNumberTests(TestCase):
    """Test PR number generation"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()

    def test_first_number_of_day(self):
        self.assertEqual(generate_pr_number(date(2024, 3, 5)), 'PR-20240305-0001')

    def test_sequence_counts_existing(self):
        TestDataFactory.create_purchase_request(self.tenant, self.user, pr_number='PR-20240305-0001')
        TestDataFactory.create_purchase_request(self.tenant, self.user, pr_number='PR-20240305-0002')
        TestDataFactory.create_purchase_request(self.tenant, self.user, pr_number='PR-20240304-0001')
        self.assertEqual(generate_pr_number(date(2024, 3, 5)), 'PR-20240305-0003')

    def test_sequence_skips_taken_number(self):
        TestDataFactory.create_purchase_request(self.tenant, self.user, pr_number='PR-20240305-0002')
        self.assertEqual(generate_pr_number(date(2024, 3, 5)), 'PR-20240305-0003')


class PurchaseRequestAPITests(TestCase):
    """Test purchase request create, list and detail"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user()
        self.membership = TestDataFactory.create_membership(self.user, self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user, tenant=self.tenant)

    def test_create_purchase_request(self):
        item = TestDataFactory.create_item(self.tenant, name='Gas 12kg')
        response = self.client.post('/api/v1/purchase-requests/', {
            'notes': ' Untuk minggu depan ',
            'items': [
                {'item_id': str(item.id), 'item_name': 'ignored', 'qty': '2', 'unit_price': '210000'},
                {'item_name': 'Sabun cuci', 'qty': '5', 'unit_price': '12000'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'DRAFT')
        self.assertRegex(response.data['pr_number'], r'^PR-\d{8}-0001$')
        self.assertEqual(response.data['notes'], 'Untuk minggu depan')
        self.assertEqual(response.data['item_count'], 2)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('480000'))
        self.assertEqual(sorted(line['item_name'] for line in response.data['items']), ['Gas 12kg', 'Sabun cuci'])
        self.assertEqual(len(response.data['history']), 1)
        self.assertEqual(response.data['history'][0]['note'], 'PR created')
        self.assertTrue(AuditLog.objects.filter(
            action=AuditLog.ACTION_CREATE, entity_type='purchase_requests', tenant=self.tenant,
        ).exists())

    def test_create_requires_items(self):
        response = self.client.post('/api/v1/purchase-requests/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_ERROR')

    def test_create_rejects_non_positive_qty(self):
        response = self.client.post('/api/v1/purchase-requests/', {
            'items': [{'item_name': 'Sabun cuci', 'qty': '0', 'unit_price': '12000'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_with_foreign_item(self):
        item = TestDataFactory.create_item(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/purchase-requests/', {
            'items': [{'item_id': str(item.id), 'item_name': 'Barang', 'qty': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(PurchaseRequest.objects.exists())

    def test_create_requires_edit_permission(self):
        self.membership.can_edit = False
        self.membership.save()
        response = self.client.post('/api/v1/purchase-requests/', {
            'items': [{'item_name': 'Sabun cuci', 'qty': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_scoped_and_filtered(self):
        TestDataFactory.create_purchase_request(self.tenant, self.user)
        submitted = TestDataFactory.create_purchase_request(
            self.tenant, self.user, status=PurchaseRequest.STATUS_SUBMITTED
        )
        TestDataFactory.create_purchase_request(TestDataFactory.create_tenant(), self.user)

        response = self.client.get('/api/v1/purchase-requests/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/purchase-requests/?status=SUBMITTED')
        self.assertEqual([row['id'] for row in response.data], [str(submitted.id)])

    def test_list_invalid_status_filter(self):
        response = self.client.get('/api/v1/purchase-requests/?status=UNKNOWN')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.user)
        response = self.client.get(f'/api/v1/purchase-requests/{purchase_request.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['subtotal'], str(Decimal('2') * Decimal('65000')))

    def test_detail_of_other_tenant(self):
        purchase_request = TestDataFactory.create_purchase_request(TestDataFactory.create_tenant(), self.user)
        response = self.client.get(f'/api/v1/purchase-requests/{purchase_request.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'FORBIDDEN')

    def test_detail_not_found(self):
        response = self.client.get('/api/v1/purchase-requests/00000000-0000-0000-0000-000000000000/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'PR_NOT_FOUND')


class PurchaseRequestStatusTests(TestCase):
    """Test single and bulk status changes"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.admin = TestDataFactory.create_user(role=User.ROLE_TENANT_ADMIN)
        TestDataFactory.create_membership(self.admin, self.tenant, role='TENANT_ADMIN')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin, tenant=self.tenant)
        self.requester = TestDataFactory.create_user()

    def _set_status(self, purchase_request, new_status, note=''):
        return self.client.patch(
            f'/api/v1/purchase-requests/{purchase_request.id}/status/',
            {'status': new_status, 'note': note}, format='json',
        )

    def test_submit_then_approve(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        response = self._set_status(purchase_request, 'SUBMITTED')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'PR_STATUS_UPDATED')
        self.assertIsNone(response.data['purchase_request']['approved_by'])

        response = self._set_status(purchase_request, 'APPROVED', 'Oke')
        self.assertEqual(response.data['purchase_request']['status'], 'APPROVED')
        self.assertEqual(response.data['purchase_request']['approved_by']['id'], str(self.admin.id))
        self.assertEqual(
            [entry['status'] for entry in response.data['purchase_request']['history']],
            ['DRAFT', 'SUBMITTED', 'APPROVED'],
        )
        self.assertTrue(AuditLog.objects.filter(
            action=AuditLog.ACTION_STATUS_UPDATE, entity_id=str(purchase_request.id),
        ).exists())

    def test_full_workflow_to_received(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        for new_status in ('SUBMITTED', 'APPROVED', 'ORDERED', 'RECEIVED'):
            response = self._set_status(purchase_request, new_status)
            self.assertEqual(response.status_code, status.HTTP_200_OK)
        purchase_request.refresh_from_db()
        self.assertEqual(purchase_request.status, PurchaseRequest.STATUS_RECEIVED)

    def test_invalid_transition(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        response = self._set_status(purchase_request, 'ORDERED')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'PR_STATUS_INVALID')
        self.assertEqual(response.data['details'], {'from': 'DRAFT', 'to': 'ORDERED'})
        self.assertEqual(PurchaseRequestStatusHistory.objects.filter(purchase_request=purchase_request).count(), 1)

    def test_non_admin_cannot_change_status(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        TestDataFactory.create_membership(self.requester, self.tenant)
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.requester, tenant=self.tenant)
        response = client.patch(
            f'/api/v1/purchase-requests/{purchase_request.id}/status/', {'status': 'SUBMITTED'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_of_other_tenant(self):
        purchase_request = TestDataFactory.create_purchase_request(TestDataFactory.create_tenant(), self.requester)
        response = self._set_status(purchase_request, 'SUBMITTED')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_bulk_status(self):
        first = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        second = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        response = self.client.post('/api/v1/purchase-requests/bulk-status/', {
            'ids': [str(first.id), str(second.id), str(first.id)], 'status': 'SUBMITTED',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'PR_BULK_STATUS_UPDATED')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(PurchaseRequest.objects.filter(status=PurchaseRequest.STATUS_SUBMITTED).count(), 2)
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.ACTION_BULK_ACTION, entity_id='bulk_status').exists())

    def test_bulk_status_none_found(self):
        response = self.client.post('/api/v1/purchase-requests/bulk-status/', {
            'ids': ['00000000-0000-0000-0000-000000000000'], 'status': 'SUBMITTED',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'PR_NOT_FOUND')

    def test_bulk_status_with_foreign_request(self):
        own = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        foreign = TestDataFactory.create_purchase_request(TestDataFactory.create_tenant(), self.requester)
        response = self.client.post('/api/v1/purchase-requests/bulk-status/', {
            'ids': [str(own.id), str(foreign.id)], 'status': 'SUBMITTED',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        own.refresh_from_db()
        self.assertEqual(own.status, PurchaseRequest.STATUS_DRAFT)

    def test_bulk_status_rolls_back_on_invalid_transition(self):
        draft = TestDataFactory.create_purchase_request(self.tenant, self.requester)
        received = TestDataFactory.create_purchase_request(
            self.tenant, self.requester, status=PurchaseRequest.STATUS_RECEIVED
        )
        response = self.client.post('/api/v1/purchase-requests/bulk-status/', {
            'ids': [str(draft.id), str(received.id)], 'status': 'CANCELLED',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'PR_STATUS_INVALID')
        draft.refresh_from_db()
        self.assertEqual(draft.status, PurchaseRequest.STATUS_DRAFT)


class PurchaseRequestLockingTests(TestCase):
    """Test that status changes read the row under a lock"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.admin = TestDataFactory.create_user(role=User.ROLE_TENANT_ADMIN)
        TestDataFactory.create_membership(self.admin, self.tenant, role='TENANT_ADMIN')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin, tenant=self.tenant)

    @skipUnlessDBFeature('has_select_for_update')
    def test_status_change_locks_row(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.admin)
        with CaptureQueriesContext(connection) as queries:
            self.client.patch(
                f'/api/v1/purchase-requests/{purchase_request.id}/status/', {'status': 'SUBMITTED'}, format='json'
            )
        self.assertTrue(any('FOR UPDATE' in query['sql'] for query in queries.captured_queries))

    @skipUnlessDBFeature('has_select_for_update')
    def test_bulk_status_locks_rows(self):
        purchase_request = TestDataFactory.create_purchase_request(self.tenant, self.admin)
        with CaptureQueriesContext(connection) as queries:
            self.client.post('/api/v1/purchase-requests/bulk-status/', {
                'ids': [str(purchase_request.id)], 'status': 'SUBMITTED',
            }, format='json')
        self.assertTrue(any('FOR UPDATE' in query['sql'] for query in queries.captured_queries))


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentStatusChangeTests(TransactionTestCase):
    """Parallel decisions on one submitted purchase request"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.admin = TestDataFactory.create_user(role=User.ROLE_TENANT_ADMIN)
        TestDataFactory.create_membership(self.admin, self.tenant, role='TENANT_ADMIN')
        self.purchase_request = TestDataFactory.create_purchase_request(
            self.tenant, self.admin, status=PurchaseRequest.STATUS_SUBMITTED
        )

    def _set_status(self, new_status):
        def call():
            client = AuthenticatedAPIClient()
            client.authenticate_user(self.admin, tenant=self.tenant)
            return client.patch(
                f'/api/v1/purchase-requests/{self.purchase_request.id}/status/', {'status': new_status}, format='json'
            )
        return call

    def test_approve_and_reject_race(self):
        responses = run_concurrently(self._set_status('APPROVED'), self._set_status('REJECTED'))
        self.assertEqual(sorted(r.status_code for r in responses), [200, 400])
        rejected = next(r for r in responses if r.status_code == 400)
        self.assertEqual(rejected.data['code'], 'PR_STATUS_INVALID')
        self.assertEqual(
            PurchaseRequestStatusHistory.objects.filter(purchase_request=self.purchase_request).count(), 2
        )
