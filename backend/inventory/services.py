"""
Stock mutation and query services.

Every movement runs inside one database transaction with the touched stock
rows locked via ``select_for_update``; the ``qty >= 0`` check constraint on
``stocks`` backs the in-code checks.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F, Q

from backend.catalog.services import get_tenant_item, tenant_items
from backend.core.exceptions import ApiError
from backend.core.models import AuditLog
from backend.core.scoping import INACTIVE_LOCATION_MARKER, tenant_item_suffix, tenant_location_prefix
from backend.core.utils import create_audit_log, resolve_period_range
from backend.locations.services import get_tenant_location, tenant_locations
from .models import InventoryTransaction, Stock

logger = logging.getLogger('backend.inventory')

STATUS_OUT = 'OUT'
STATUS_LOW = 'LOW'
STATUS_SAFE = 'SAFE'

TRANSACTION_LIST_LIMIT = 200


def stock_status(qty, min_stock):
    if qty <= 0:
        return STATUS_OUT
    if qty <= min_stock:
        return STATUS_LOW
    return STATUS_SAFE


def format_qty(value):
    return format(Decimal(value).normalize(), 'f')


# Stock row initialisation

def ensure_stock_rows_for_location(tenant, location):
    items = tenant_items(tenant.id).only('id')
    Stock.objects.bulk_create(
        [Stock(item=item, location=location, qty=0) for item in items],
        ignore_conflicts=True,
    )


def ensure_stock_rows_for_item(tenant, item):
    locations = tenant_locations(tenant, include_inactive=True).only('id')
    Stock.objects.bulk_create(
        [Stock(item=item, location=location, qty=0) for location in locations],
        ignore_conflicts=True,
    )


# Stock listing

def tenant_stock_queryset(tenant, active_location_id=None):
    """Stock rows of tenant items at active tenant locations"""
    queryset = (
        Stock.objects.select_related('item', 'item__category', 'location')
        .filter(
            item__name__endswith=tenant_item_suffix(tenant.id),
            location__name__startswith=tenant_location_prefix(tenant.code),
        )
        .exclude(location__name__contains=f"::{INACTIVE_LOCATION_MARKER}")
    )
    if active_location_id:
        queryset = queryset.filter(location_id=active_location_id)
    return queryset


def low_stock_queryset(tenant):
    return tenant_stock_queryset(tenant).filter(item__is_active=True, qty__lte=F('item__min_stock'))


# Payload validation

def validate_transaction_payload(trx_type, qty, from_location_id, to_location_id, active_location_id=None):
    if qty is None or qty == 0:
        raise ApiError(400, 'QTY_INVALID', 'Quantity must not be zero.')
    if trx_type in (InventoryTransaction.TYPE_IN, InventoryTransaction.TYPE_OUT, InventoryTransaction.TYPE_TRANSFER) and qty < 0:
        raise ApiError(400, 'QTY_INVALID', f"Quantity for {trx_type} must be greater than zero.")

    if trx_type == InventoryTransaction.TYPE_IN and not to_location_id:
        raise ApiError(400, 'LOCATION_REQUIRED', 'Destination location is required for IN.')
    if trx_type in (InventoryTransaction.TYPE_OUT, InventoryTransaction.TYPE_ADJUST) and not from_location_id:
        raise ApiError(400, 'LOCATION_REQUIRED', f"Source location is required for {trx_type}.")
    if trx_type == InventoryTransaction.TYPE_TRANSFER:
        if not from_location_id or not to_location_id:
            raise ApiError(400, 'LOCATION_REQUIRED', 'Source and destination locations are required for TRANSFER.')
        if str(from_location_id) == str(to_location_id):
            raise ApiError(400, 'LOCATION_INVALID', 'Source and destination locations must differ.')

    if active_location_id:
        guarded = to_location_id if trx_type == InventoryTransaction.TYPE_IN else from_location_id
        if str(guarded) != str(active_location_id):
            raise ApiError(403, 'LOCATION_FORBIDDEN', 'Transaction must use the active location.')


# Mutation

def _locked_stocks(item, locations):
    """Lock (creating when missing) stock rows in a stable order"""
    locked = {}
    for location in sorted(locations, key=lambda loc: str(loc.pk)):
        stock, _ = Stock.objects.select_for_update().get_or_create(
            item=item, location=location, defaults={'qty': Decimal('0')}
        )
        locked[location.pk] = stock
    return locked


def _apply_movement(item, trx_type, qty, from_location, to_location):
    """Apply one movement to locked stock rows. Must run inside a transaction."""
    involved = [loc for loc in (from_location, to_location) if loc is not None]
    stocks = _locked_stocks(item, involved)

    if trx_type == InventoryTransaction.TYPE_IN:
        target = stocks[to_location.pk]
        target.qty = target.qty + qty
        target.save(update_fields=['qty', 'updated_at'])
        return

    source = stocks[from_location.pk]
    if trx_type in (InventoryTransaction.TYPE_OUT, InventoryTransaction.TYPE_TRANSFER):
        if source.qty < qty:
            raise ApiError(
                400, 'STOCK_INSUFFICIENT',
                f"Insufficient stock: available {format_qty(source.qty)}, requested {format_qty(qty)}.",
                details={'available': str(source.qty), 'requested': str(qty)},
            )
        source.qty = source.qty - qty
        source.save(update_fields=['qty', 'updated_at'])
        if trx_type == InventoryTransaction.TYPE_TRANSFER:
            target = stocks[to_location.pk]
            target.qty = target.qty + qty
            target.save(update_fields=['qty', 'updated_at'])
        return

    # ADJUST: signed delta on the source location
    new_qty = source.qty + qty
    if new_qty < 0:
        raise ApiError(
            400, 'STOCK_NEGATIVE',
            f"Adjustment would make stock negative: available {format_qty(source.qty)}, change {format_qty(qty)}.",
            details={'available': str(source.qty), 'change': str(qty)},
        )
    source.qty = new_qty
    source.save(update_fields=['qty', 'updated_at'])


def create_transaction(request, tenant, trx_type, item_id, qty, from_location_id=None,
                       to_location_id=None, reason='', active_location_id=None):
    """Validate and record one stock movement for the tenant"""
    validate_transaction_payload(trx_type, qty, from_location_id, to_location_id, active_location_id)

    if trx_type == InventoryTransaction.TYPE_IN:
        from_location_id = None
    elif trx_type in (InventoryTransaction.TYPE_OUT, InventoryTransaction.TYPE_ADJUST):
        to_location_id = None

    item = get_tenant_item(tenant.id, item_id)
    from_location = get_tenant_location(tenant, from_location_id) if from_location_id else None
    to_location = get_tenant_location(tenant, to_location_id) if to_location_id else None

    with transaction.atomic():
        _apply_movement(item, trx_type, qty, from_location, to_location)
        trx = InventoryTransaction.objects.create(
            trx_type=trx_type,
            item=item,
            from_location=from_location,
            to_location=to_location,
            qty=qty,
            reason=reason or '',
            created_by=request.user,
        )
        create_audit_log(
            request=request,
            action=AuditLog.ACTION_CREATE,
            entity_type='inventory_transactions',
            entity_id=trx.id,
            tenant_id=tenant.id,
            diff={
                'trxType': trx_type,
                'itemId': str(item.id),
                'fromLocationId': str(from_location.id) if from_location else None,
                'toLocationId': str(to_location.id) if to_location else None,
                'qty': str(qty),
            },
        )

    logger.info(
        f"User {request.user.username} recorded {trx_type} {qty} of {item.display_name} "
        f"for tenant {tenant.code}"
    )
    return trx


def bulk_adjust(request, tenant, location_id, reason, adjustments, active_location_id=None):
    """
    Apply several ADJUST movements at one location atomically.

    Zero quantities are dropped; any failing row rolls back the whole batch.
    """
    reason = (reason or '').strip()
    if not reason:
        raise ApiError(400, 'REASON_REQUIRED', 'A reason is required for stock adjustments.')

    rows = [row for row in adjustments if row.get('qty')]
    if not rows:
        raise ApiError(400, 'ADJUSTMENTS_EMPTY', 'No non-zero adjustments were provided.')

    if active_location_id and str(location_id) != str(active_location_id):
        raise ApiError(403, 'LOCATION_FORBIDDEN', 'Adjustments must use the active location.')
    location = get_tenant_location(tenant, location_id)

    item_ids = {str(row['item_id']) for row in rows}
    items = {
        str(item.id): item
        for item in tenant_items(tenant.id).filter(pk__in=item_ids, is_active=True)
    }
    missing = sorted(item_ids - set(items))
    if missing:
        raise ApiError(404, 'ITEM_NOT_FOUND', 'Some items were not found for this tenant.', details={'itemIds': missing})

    created = []
    with transaction.atomic():
        for row in rows:
            item = items[str(row['item_id'])]
            _apply_movement(item, InventoryTransaction.TYPE_ADJUST, row['qty'], location, None)
            created.append(InventoryTransaction.objects.create(
                trx_type=InventoryTransaction.TYPE_ADJUST,
                item=item,
                from_location=location,
                qty=row['qty'],
                reason=reason,
                created_by=request.user,
            ))
        create_audit_log(
            request=request,
            action=AuditLog.ACTION_BULK_ADJUST,
            entity_type='inventory_transactions',
            entity_id='bulk_adjust',
            tenant_id=tenant.id,
            diff={
                'locationId': str(location.id),
                'reason': reason,
                'count': len(created),
                'adjustments': [{'itemId': str(t.item_id), 'qty': str(t.qty)} for t in created],
            },
        )

    logger.info(f"User {request.user.username} applied {len(created)} adjustments at {location.name}")
    return created


# Listing

def transaction_queryset(tenant, trx_type=None, period=None, date_from=None, date_to=None,
                         active_location_id=None):
    """Tenant transactions, newest first, optionally filtered by type and period"""
    queryset = (
        InventoryTransaction.objects.select_related('item', 'from_location', 'to_location', 'created_by')
        .filter(item__name__endswith=tenant_item_suffix(tenant.id))
    )
    if trx_type:
        queryset = queryset.filter(trx_type=trx_type)

    start, end = resolve_period_range(period, date_from, date_to)
    if start is not None:
        queryset = queryset.filter(created_at__gte=start, created_at__lte=end)

    if active_location_id:
        queryset = queryset.filter(Q(from_location_id=active_location_id) | Q(to_location_id=active_location_id))

    return queryset.order_by('-created_at')[:TRANSACTION_LIST_LIMIT]
