import logging

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.exceptions import ApiError
from backend.core.models import AuditLog
from backend.core.pdf_reports import render_table_pdf
from backend.core.permissions import get_session_location_id, require_tenant_permission
from backend.core.telegram_service import get_export_target, send_document
from backend.core.utils import create_audit_log
from backend.locations.services import get_tenant_location
from .models import ChecklistRun
from .serializers import (
    ChecklistMonitoringQuerySerializer,
    ChecklistRunExportSerializer,
    ChecklistSubmitSerializer,
)
from .services import (
    ITEM_TYPE_LABELS,
    RESULT_LABELS,
    get_tenant_run,
    get_today_run,
    monitoring_report,
    serialize_run,
    submit_run,
    template_name_for,
)

logger = logging.getLogger('backend.checklists')


def _session_location(request, tenant):
    location_id = get_session_location_id(request)
    return get_tenant_location(tenant, location_id) if location_id else None


def _skipped_response():
    return Response({'code': 'TELEGRAM_EXPORT_SKIPPED', 'sent': False,
                     'message': 'Telegram checklist export is disabled for this tenant.'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def checklist_today(request):
    """Today's checklist run for the session tenant and location"""
    tenant = require_tenant_permission(request, 'view')
    run = get_today_run(tenant, request.user, _session_location(request, tenant))
    return Response(serialize_run(run))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checklist_submit(request):
    tenant = require_tenant_permission(request, 'view')
    serializer = ChecklistSubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    run = submit_run(request, tenant, data['run_id'], data['status'], data['items'])
    return Response({'code': 'CHECKLIST_SAVED', 'message': 'Checklist saved.', 'run': serialize_run(run)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def checklist_monitoring(request):
    """Checklist result tallies for a period"""
    tenant = require_tenant_permission(request, 'view')
    query = ChecklistMonitoringQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    params = query.validated_data
    return Response(monitoring_report(
        tenant,
        period=params.get('period'),
        item_type=params.get('item_type'),
        date_from=params.get('date_from'),
        date_to=params.get('date_to'),
    ))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checklist_today_export_telegram(request):
    """Send one run (default: today's latest) as PDF to the tenant chat"""
    tenant = require_tenant_permission(request, 'view')
    serializer = ChecklistRunExportSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    setting = get_export_target(tenant, 'send_on_checklist_export')
    if setting is None:
        return _skipped_response()

    run_id = serializer.validated_data.get('run_id')
    if run_id:
        run = get_tenant_run(tenant, run_id)
    else:
        run = (
            ChecklistRun.objects.select_related('template', 'location', 'submitted_by')
            .filter(template__name=template_name_for(tenant), run_date=timezone.localdate())
            .order_by('-updated_at')
            .first()
        )
        if run is None:
            raise ApiError(404, 'CHECKLIST_RUN_NOT_FOUND', 'No checklist run found for today.')

    payload = serialize_run(run)
    rows = [
        [
            index,
            line['title'],
            ITEM_TYPE_LABELS.get(line['item_type'], line['item_type']),
            RESULT_LABELS.get(line['result'], line['result']),
            line['condition_percent'] if line['item_type'] == 'ASSET' and line['condition_percent'] is not None else '-',
            (line['notes'] or '-').replace('\n', ' '),
        ]
        for index, line in enumerate(payload['items'], start=1)
    ]
    run_date = run.run_date.strftime('%d/%m/%Y')
    user = request.user
    pdf_bytes = render_table_pdf(
        tenant.name,
        [f"{user.display_name} - {user.username}", run.template.name, f"Tanggal: {run_date}",
         f"Lokasi: {payload['location']['name'] if payload['location'] else '-'}"],
        ['No', 'Item', 'Kategori', 'Status', 'Kondisi (%)', 'Catatan'],
        rows,
    )
    send_document(
        setting.bot_token, setting.chat_id, f"checklist-{run.run_date:%Y-%m-%d}.pdf", pdf_bytes,
        caption=f"Laporan checklist {run_date} - {tenant.name}",
    )

    create_audit_log(
        request=request, action=AuditLog.ACTION_SEND_TELEGRAM, entity_type='checklist_exports',
        entity_id=run.id, tenant_id=tenant.id,
        diff={'runId': str(run.id), 'chatId': setting.chat_id},
    )
    return Response({'code': 'TELEGRAM_EXPORT_SENT', 'sent': True, 'message': 'Checklist report sent to Telegram.'})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checklist_monitoring_export_telegram(request):
    """Send the monitoring report for a period as PDF to the tenant chat"""
    tenant = require_tenant_permission(request, 'view')
    query = ChecklistMonitoringQuerySerializer(data=request.data)
    query.is_valid(raise_exception=True)
    params = query.validated_data

    setting = get_export_target(tenant, 'send_on_checklist_export')
    if setting is None:
        return _skipped_response()

    report = monitoring_report(
        tenant,
        period=params.get('period'),
        item_type=params.get('item_type'),
        date_from=params.get('date_from'),
        date_to=params.get('date_to'),
    )
    rows = [
        [
            row['title'],
            ITEM_TYPE_LABELS.get(row['item_type'], row['item_type']),
            row['counts']['OK'],
            row['counts']['LOW'],
            row['counts']['OUT'],
            row['counts']['DAMAGED'],
            row['counts']['NA'],
            RESULT_LABELS.get(row['last_result'], '-'),
        ]
        for row in report['items']
    ]
    period_label = f"{report['date_from']} s/d {report['date_to']}"
    summary = report['summary']
    pdf_bytes = render_table_pdf(
        f"Monitoring Checklist - {tenant.name}",
        [f"Periode: {period_label} ({report['period']})", f"Jenis item: {report['item_type']}",
         f"Run: {summary['total_runs']} (terkirim {summary['submitted_runs']}, draft {summary['draft_runs']})"],
        ['Item', 'Kategori', 'Aman', 'Menipis', 'Habis', 'Rusak', 'Belum Dicek', 'Terakhir'],
        rows,
        wide=True,
    )
    send_document(
        setting.bot_token, setting.chat_id,
        f"monitoring-checklist-{tenant.code}-{report['date_from']}-{report['date_to']}.pdf", pdf_bytes,
        caption=f"Monitoring checklist {tenant.name} ({period_label})",
    )

    create_audit_log(
        request=request, action=AuditLog.ACTION_SEND_TELEGRAM, entity_type='checklist_exports',
        entity_id='monitoring', tenant_id=tenant.id,
        diff={'period': report['period'], 'itemType': report['item_type'],
              'from': report['date_from'], 'to': report['date_to'], 'runs': summary['total_runs']},
    )
    return Response({'code': 'TELEGRAM_EXPORT_SENT', 'sent': True, 'count': len(rows),
                     'message': 'Checklist monitoring report sent to Telegram.'})
