"""Dashboard aggregates and the notification feed"""
import logging

from django.utils import timezone

from backend.catalog.services import tenant_items
from backend.checklists.models import ChecklistRun
from backend.checklists.services import DEFAULT_TEMPLATE_NAME, template_name_for
from backend.core.cache_utils import cached_dashboard_value
from backend.inventory.services import format_qty, low_stock_queryset
from backend.purchasing.models import PurchaseRequest

logger = logging.getLogger('backend.dashboard')

LOW_STOCK_LIMIT = 20
NOTIFICATION_STOCK_LIMIT = 10
NOTIFICATION_CHECKLIST_LIMIT = 10
NOTIFICATION_PR_LIMIT = 12
NOTIFICATION_LIMIT = 30


def compute_summary(tenant):
    today = timezone.localdate()
    return {
        'item_count': tenant_items(tenant.id).filter(is_active=True).count(),
        'low_stock_count': low_stock_queryset(tenant).count(),
        'checklist_pending_count': ChecklistRun.objects.filter(
            template__name=template_name_for(tenant), run_date=today, status=ChecklistRun.STATUS_DRAFT,
        ).count(),
        'active_pr_count': PurchaseRequest.objects.filter(
            tenant=tenant, status__in=PurchaseRequest.ACTIVE_STATUSES,
        ).count(),
    }


def dashboard_summary(tenant):
    return cached_dashboard_value('summary', tenant.id, lambda: compute_summary(tenant))


def low_stock_rows(tenant, active_location_id=None, limit=LOW_STOCK_LIMIT):
    queryset = low_stock_queryset(tenant)
    if active_location_id:
        queryset = queryset.filter(location_id=active_location_id)
    rows = queryset.order_by('qty', 'item__name')[:limit]
    return [
        {
            'id': str(row.id),
            'item_id': str(row.item_id),
            'item_name': row.item.display_name,
            'location_id': str(row.location_id),
            'location_name': row.location.display_name,
            'qty': row.qty,
            'min_stock': row.item.min_stock,
            'unit': row.item.unit,
            'updated_at': row.updated_at,
        }
        for row in rows
    ]


def _template_display_name(name, tenant_code):
    suffix = f" - {tenant_code}"
    return name[:-len(suffix)] if name.endswith(suffix) else name


def list_notifications(tenant, active_location_id=None):
    """
    Latest low-stock warnings, submitted checklists and active purchase
    requests merged into one feed, newest first.
    """
    notifications = []

    stock_rows = low_stock_queryset(tenant)
    if active_location_id:
        stock_rows = stock_rows.filter(location_id=active_location_id)
    for row in stock_rows.order_by('qty', '-updated_at')[:NOTIFICATION_STOCK_LIMIT]:
        notifications.append({
            'id': f"stock-{row.id}",
            'title': 'Stock out' if row.qty <= 0 else 'Stock low',
            'message': (
                f"{row.item.display_name} at {row.location.display_name} has "
                f"{format_qty(row.qty)} {row.item.unit} left."
            ),
            'time': row.updated_at,
            'type': 'warning',
            'tenant_code': tenant.code,
        })

    runs = ChecklistRun.objects.select_related('template').filter(
        template__name=template_name_for(tenant), status=ChecklistRun.STATUS_SUBMITTED,
    )
    if active_location_id:
        runs = runs.filter(location_id=active_location_id)
    for run in runs.order_by('-updated_at')[:NOTIFICATION_CHECKLIST_LIMIT]:
        template_name = _template_display_name(run.template.name, tenant.code) or DEFAULT_TEMPLATE_NAME
        notifications.append({
            'id': f"checklist-{run.id}",
            'title': 'Checklist submitted',
            'message': f"{template_name} was submitted for {run.run_date.isoformat()}.",
            'time': run.updated_at,
            'type': 'info',
            'tenant_code': tenant.code,
        })

    purchase_requests = (
        PurchaseRequest.objects.select_related('requested_by')
        .filter(tenant=tenant, status__in=PurchaseRequest.ACTIVE_STATUSES)
        .order_by('-updated_at')[:NOTIFICATION_PR_LIMIT]
    )
    for purchase_request in purchase_requests:
        requester = purchase_request.requested_by.display_name if purchase_request.requested_by else 'unknown user'
        notifications.append({
            'id': f"pr-{purchase_request.id}",
            'title': 'Active purchase request',
            'message': f"{purchase_request.pr_number} is {purchase_request.status} (requested by {requester}).",
            'time': purchase_request.updated_at,
            'type': 'info',
            'tenant_code': tenant.code,
        })

    notifications.sort(key=lambda entry: entry['time'], reverse=True)
    return notifications[:NOTIFICATION_LIMIT]
