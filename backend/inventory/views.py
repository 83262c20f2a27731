import logging

from django.db.models import F, Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.catalog.services import scoped_display_name
from backend.core.models import AuditLog
from backend.core.pdf_reports import render_table_pdf
from backend.core.permissions import get_session_location_id, require_tenant_permission
from backend.core.telegram_service import get_export_target, send_document
from backend.core.utils import create_audit_log, resolve_period_range
from .serializers import (
    BulkAdjustSerializer,
    InventoryTransactionSerializer,
    StockQuerySerializer,
    StockSerializer,
    TransactionCreateSerializer,
    TransactionQuerySerializer,
)
from .services import (
    STATUS_LOW,
    STATUS_OUT,
    STATUS_SAFE,
    bulk_adjust,
    create_transaction,
    format_qty,
    tenant_stock_queryset,
    transaction_queryset,
)

logger = logging.getLogger('backend.inventory')


# Stock views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_list(request):
    """Stock levels of tenant items at active tenant locations"""
    tenant = require_tenant_permission(request, 'view')
    query = StockQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    params = query.validated_data

    stocks = tenant_stock_queryset(tenant, get_session_location_id(request))

    search = (params.get('search') or '').strip()
    if search:
        stocks = stocks.annotate(item_label=scoped_display_name('item__name')).filter(
            Q(item_label__icontains=search) | Q(item__sku__icontains=search)
        )
    if params.get('location_id'):
        stocks = stocks.filter(location_id=params['location_id'])

    stock_status = params.get('status')
    if stock_status == STATUS_OUT:
        stocks = stocks.filter(qty__lte=0)
    elif stock_status == STATUS_LOW:
        stocks = stocks.filter(qty__gt=0, qty__lte=F('item__min_stock'))
    elif stock_status == STATUS_SAFE:
        stocks = stocks.filter(qty__gt=0).filter(qty__gt=F('item__min_stock'))

    stocks = stocks.order_by('item__name', 'location__name')
    return Response(StockSerializer(stocks, many=True).data)


# Transaction views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def transaction_list_create(request):
    """List tenant stock movements or record a new one"""
    active_location_id = get_session_location_id(request)

    if request.method == 'GET':
        tenant = require_tenant_permission(request, 'view')
        query = TransactionQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        transactions = transaction_queryset(
            tenant,
            trx_type=params.get('trx_type'),
            period=params.get('period'),
            date_from=params.get('date_from'),
            date_to=params.get('date_to'),
            active_location_id=active_location_id,
        )
        serializer = InventoryTransactionSerializer(transactions, many=True, context={'tenant_code': tenant.code})
        return Response(serializer.data)

    tenant = require_tenant_permission(request, 'edit')
    serializer = TransactionCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    trx = create_transaction(
        request,
        tenant,
        trx_type=data['trx_type'],
        item_id=data['item_id'],
        qty=data['qty'],
        from_location_id=data.get('from_location_id'),
        to_location_id=data.get('to_location_id'),
        reason=data.get('reason', ''),
        active_location_id=active_location_id,
    )
    return Response(
        InventoryTransactionSerializer(trx, context={'tenant_code': tenant.code}).data,
        status=status.HTTP_201_CREATED,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def transaction_bulk_adjust(request):
    """Apply a batch of stock adjustments at one location"""
    tenant = require_tenant_permission(request, 'edit')
    serializer = BulkAdjustSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    created = bulk_adjust(
        request,
        tenant,
        location_id=data['location_id'],
        reason=data.get('reason', ''),
        adjustments=data['adjustments'],
        active_location_id=get_session_location_id(request),
    )
    return Response({
        'code': 'BULK_ADJUST_COMPLETED',
        'count': len(created),
        'transactions': InventoryTransactionSerializer(
            created, many=True, context={'tenant_code': tenant.code}
        ).data,
    })


def _period_label(params):
    start, end = resolve_period_range(params.get('period'), params.get('date_from'), params.get('date_to'))
    if start is None:
        return 'All time (latest 200)'
    return f"{timezone.localtime(start):%d/%m/%Y} - {timezone.localtime(end):%d/%m/%Y}"


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def transaction_export_telegram(request):
    """Render the filtered transaction list as PDF and send it to the tenant chat"""
    tenant = require_tenant_permission(request, 'view')
    body = request.data.dict() if hasattr(request.data, 'dict') else request.data
    query = TransactionQuerySerializer(data={**request.query_params.dict(), **body})
    query.is_valid(raise_exception=True)
    params = query.validated_data

    setting = get_export_target(tenant, 'send_on_transaction_export')
    if setting is None:
        return Response({'code': 'TELEGRAM_EXPORT_SKIPPED', 'sent': False,
                         'message': 'Telegram export is disabled for this tenant.'})

    transactions = list(transaction_queryset(
        tenant,
        trx_type=params.get('trx_type'),
        period=params.get('period'),
        date_from=params.get('date_from'),
        date_to=params.get('date_to'),
        active_location_id=get_session_location_id(request),
    ))

    rows = [
        [
            f"{timezone.localtime(trx.created_at):%d/%m/%Y %H:%M}",
            trx.trx_type,
            trx.item.display_name,
            trx.from_location.display_name if trx.from_location else '-',
            trx.to_location.display_name if trx.to_location else '-',
            f"{format_qty(trx.qty)} {trx.item.unit}",
            trx.reason or '-',
            trx.created_by.display_name if trx.created_by else '-',
        ]
        for trx in transactions
    ]
    period_label = _period_label(params)
    pdf_bytes = render_table_pdf(
        'Laporan Transaksi Stok',
        [f"Tenant: {tenant.name} ({tenant.code})", f"Periode: {period_label}",
         f"Jenis: {params.get('trx_type') or 'Semua'}"],
        ['Waktu', 'Jenis', 'Item', 'Dari', 'Ke', 'Qty', 'Alasan', 'Oleh'],
        rows,
        wide=True,
    )
    file_name = f"transaksi-{tenant.code}-{timezone.localdate():%Y%m%d}.pdf"
    send_document(
        setting.bot_token, setting.chat_id, file_name, pdf_bytes,
        caption=f"Laporan transaksi {tenant.name} ({period_label}), {len(rows)} baris",
    )

    create_audit_log(
        request=request, action=AuditLog.ACTION_SEND_TELEGRAM, entity_type='inventory_transactions',
        entity_id='telegram_export', tenant_id=tenant.id,
        diff={'count': len(rows), 'period': period_label, 'trxType': params.get('trx_type')},
    )
    return Response({'code': 'TELEGRAM_EXPORT_SENT', 'sent': True, 'count': len(rows)})
