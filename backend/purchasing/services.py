"""Purchase request numbering, creation and status workflow"""
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from backend.catalog.services import get_tenant_item
from backend.core.exceptions import ApiError
from backend.core.models import AuditLog
from backend.core.utils import create_audit_log
from .models import PurchaseRequest, PurchaseRequestItem, PurchaseRequestStatusHistory

logger = logging.getLogger('backend.purchasing')

PR_NUMBER_PREFIX = 'PR'
MAX_NUMBER_ATTEMPTS = 5


def generate_pr_number(today=None):
    """``PR-YYYYMMDD-NNNN``; the sequence is today's count + 1, bumped while taken"""
    today = today or timezone.localdate()
    prefix = f"{PR_NUMBER_PREFIX}-{today:%Y%m%d}-"
    sequence = PurchaseRequest.objects.filter(pr_number__startswith=prefix).count() + 1
    pr_number = f"{prefix}{sequence:04d}"
    while PurchaseRequest.objects.filter(pr_number=pr_number).exists():
        sequence += 1
        pr_number = f"{prefix}{sequence:04d}"
    return pr_number


def get_tenant_purchase_request(tenant, pk):
    purchase_request = (
        PurchaseRequest.objects.select_related('tenant', 'requested_by', 'approved_by')
        .prefetch_related('items', 'history', 'history__changed_by')
        .filter(pk=pk)
        .first()
    )
    if purchase_request is None:
        raise ApiError(404, 'PR_NOT_FOUND', 'Purchase request not found.')
    if purchase_request.tenant_id != tenant.id:
        raise ApiError(403, 'FORBIDDEN', 'Purchase request belongs to another tenant.')
    return purchase_request


def create_purchase_request(request, tenant, notes, lines):
    """Create a DRAFT purchase request with its lines and first history row"""
    resolved = []
    for line in lines:
        item = None
        item_name = line['item_name'].strip()
        if line.get('item_id'):
            item = get_tenant_item(tenant.id, line['item_id'])
            item_name = item.display_name
        resolved.append((item, item_name, line['qty'], line['unit_price']))

    with transaction.atomic():
        purchase_request = None
        for attempt in range(MAX_NUMBER_ATTEMPTS):
            try:
                with transaction.atomic():
                    purchase_request = PurchaseRequest.objects.create(
                        pr_number=generate_pr_number(),
                        tenant=tenant,
                        status=PurchaseRequest.STATUS_DRAFT,
                        notes=(notes or '').strip(),
                        requested_by=request.user,
                    )
                break
            except IntegrityError:
                # Concurrent create took the same number
                logger.warning(f"PR number collision for tenant {tenant.code}, attempt {attempt + 1}")
        if purchase_request is None:
            raise ApiError(409, 'PR_NUMBER_CONFLICT', 'Could not allocate a purchase request number.')

        PurchaseRequestItem.objects.bulk_create([
            PurchaseRequestItem(
                purchase_request=purchase_request, item=item, item_name=item_name, qty=qty, unit_price=unit_price,
            )
            for item, item_name, qty, unit_price in resolved
        ])
        PurchaseRequestStatusHistory.objects.create(
            purchase_request=purchase_request,
            status=PurchaseRequest.STATUS_DRAFT,
            note='PR created',
            changed_by=request.user,
        )
        create_audit_log(
            request=request, action=AuditLog.ACTION_CREATE, entity_type='purchase_requests',
            entity_id=purchase_request.id, tenant_id=tenant.id,
            diff={'prNumber': purchase_request.pr_number, 'itemCount': len(resolved)},
        )

    logger.info(f"User {request.user.username} created {purchase_request.pr_number} for tenant {tenant.code}")
    return purchase_request


def _transition(request, purchase_request, new_status, note):
    if not purchase_request.can_transition_to(new_status):
        raise ApiError(
            400, 'PR_STATUS_INVALID',
            f"Cannot change {purchase_request.pr_number} from {purchase_request.status} to {new_status}.",
            details={'from': purchase_request.status, 'to': new_status},
        )
    old_status = purchase_request.status
    purchase_request.status = new_status
    fields = ['status', 'updated_at']
    if new_status in (PurchaseRequest.STATUS_APPROVED, PurchaseRequest.STATUS_RECEIVED):
        purchase_request.approved_by = request.user
        fields.append('approved_by')
    purchase_request.save(update_fields=fields)
    PurchaseRequestStatusHistory.objects.create(
        purchase_request=purchase_request, status=new_status, note=note or '', changed_by=request.user,
    )
    return old_status


def update_status(request, tenant, pk, new_status, note=''):
    get_tenant_purchase_request(tenant, pk)
    with transaction.atomic():
        purchase_request = PurchaseRequest.objects.select_for_update().get(pk=pk)
        old_status = _transition(request, purchase_request, new_status, note)
        create_audit_log(
            request=request, action=AuditLog.ACTION_STATUS_UPDATE, entity_type='purchase_requests',
            entity_id=purchase_request.id, tenant_id=tenant.id,
            diff={'oldStatus': old_status, 'newStatus': new_status, 'note': note},
        )
    logger.info(f"{purchase_request.pr_number} moved {old_status} -> {new_status} by {request.user.username}")
    return purchase_request


def bulk_update_status(request, tenant, ids, new_status, note=''):
    """Apply one status to several requests; any invalid transition rolls back all"""
    ids = list(dict.fromkeys(str(pk) for pk in ids))
    with transaction.atomic():
        # Locked in pk order
        purchase_requests = list(PurchaseRequest.objects.select_for_update().filter(pk__in=ids).order_by('pk'))
        if not purchase_requests:
            raise ApiError(404, 'PR_NOT_FOUND', 'No purchase requests found for the given ids.')
        if len(purchase_requests) != len(ids) or any(pr.tenant_id != tenant.id for pr in purchase_requests):
            raise ApiError(403, 'FORBIDDEN', 'Some purchase requests are missing or belong to another tenant.')

        changes = []
        for purchase_request in purchase_requests:
            old_status = _transition(request, purchase_request, new_status, note)
            changes.append({'id': str(purchase_request.id), 'oldStatus': old_status})
        create_audit_log(
            request=request, action=AuditLog.ACTION_BULK_ACTION, entity_type='purchase_requests',
            entity_id='bulk_status', tenant_id=tenant.id,
            diff={'newStatus': new_status, 'note': note, 'changes': changes},
        )
    logger.info(f"{len(purchase_requests)} purchase requests moved to {new_status} by {request.user.username}")
    return purchase_requests
