"""
Daily operational checklists.

Each tenant has one DAILY template named ``Checklist Harian Operasional - <code>``.
A run is created per template, date and location; its lines are built from the
tenant's active items (or three generic lines when the tenant has none). Line
titles are stored as ``<TYPE>::<title>`` and asset condition percentages are
kept inside the notes as ``Kondisi: N%``.
"""
import logging
import re
from collections import Counter, OrderedDict

from django.db import transaction
from django.utils import timezone

from backend.catalog.services import tenant_items
from backend.core.exceptions import ApiError
from backend.core.models import AuditLog
from backend.core.scoping import ITEM_TYPE_ASSET, ITEM_TYPE_CONSUMABLE, ITEM_TYPE_GAS, ITEM_TYPES
from backend.core.utils import PERIOD_DAILY, create_audit_log, resolve_period_range
from .models import ChecklistRun, ChecklistRunItem, ChecklistTemplate

logger = logging.getLogger('backend.checklists')

DEFAULT_TEMPLATE_NAME = 'Checklist Harian Operasional'
DEFAULT_TEMPLATE_ITEMS = [
    (ITEM_TYPE_CONSUMABLE, 'Barang habis beli lagi'),
    (ITEM_TYPE_GAS, 'Habis tapi isi ulang'),
    (ITEM_TYPE_ASSET, 'Tidak habis tapi bisa rusak'),
]
TITLE_DELIMITER = '::'

ASSET_KEYWORDS = ('asset', 'alat', 'kondisi', 'rusak')
GAS_KEYWORDS = ('gas', 'isi ulang')

CONDITION_PATTERN = re.compile(r'kondisi\s*[:=]\s*(\d{1,3})', re.IGNORECASE)
CONDITION_NOTE_PATTERN = re.compile(r'\s*\|?\s*kondisi\s*[:=]\s*\d{1,3}%?', re.IGNORECASE)

RESULT_ORDER = [
    ChecklistRunItem.RESULT_OK,
    ChecklistRunItem.RESULT_LOW,
    ChecklistRunItem.RESULT_OUT,
    ChecklistRunItem.RESULT_DAMAGED,
    ChecklistRunItem.RESULT_NA,
]
RESULT_LABELS = dict(ChecklistRunItem.RESULT_CHOICES)
ITEM_TYPE_LABELS = {
    ITEM_TYPE_ASSET: 'Tidak habis tapi bisa rusak',
    ITEM_TYPE_GAS: 'Habis tapi isi ulang',
    ITEM_TYPE_CONSUMABLE: 'Barang habis beli lagi',
}


# Title and note encoding

def detect_item_type(title):
    text = (title or '').lower()
    if any(keyword in text for keyword in ASSET_KEYWORDS):
        return ITEM_TYPE_ASSET
    if any(keyword in text for keyword in GAS_KEYWORDS):
        return ITEM_TYPE_GAS
    return ITEM_TYPE_CONSUMABLE


def encode_title(item_type, title):
    return f"{item_type}{TITLE_DELIMITER}{(title or '').strip()}"


def decode_title(raw_title):
    """Return ``(item_type, title)`` for a stored run line title"""
    head, sep, rest = (raw_title or '').partition(TITLE_DELIMITER)
    if sep and head in ITEM_TYPES:
        return head, rest.strip()
    return detect_item_type(raw_title), raw_title


def extract_condition_percent(notes):
    if not notes:
        return None
    match = CONDITION_PATTERN.search(notes)
    if not match:
        return None
    return max(0, min(100, int(match.group(1))))


def attach_condition_note(notes, condition_percent=None):
    clean = CONDITION_NOTE_PATTERN.sub('', (notes or '').strip()).strip()
    if condition_percent is None:
        return clean
    condition_text = f"Kondisi: {round(condition_percent)}%"
    return f"{clean} | {condition_text}" if clean else condition_text


def result_from_condition(condition_percent):
    if condition_percent >= 80:
        return ChecklistRunItem.RESULT_OK
    if condition_percent >= 50:
        return ChecklistRunItem.RESULT_LOW
    return ChecklistRunItem.RESULT_OUT


# Templates and runs

def template_name_for(tenant):
    return f"{DEFAULT_TEMPLATE_NAME} - {tenant.code}"


def ensure_template(tenant, user=None):
    template, created = ChecklistTemplate.objects.get_or_create(
        name=template_name_for(tenant),
        defaults={'schedule': ChecklistTemplate.SCHEDULE_DAILY, 'created_by': user},
    )
    if created:
        logger.info(f"Created checklist template {template.name}")
    return template


def expected_titles(tenant):
    items = tenant_items(tenant.id).filter(is_active=True).order_by('name')
    titles = [encode_title(item.item_type, item.display_name) for item in items]
    if not titles:
        titles = [encode_title(item_type, title) for item_type, title in DEFAULT_TEMPLATE_ITEMS]
    return sorted(titles)


def _needs_rebuild(run, titles):
    current = [line.title for line in run.items.all()]
    return len(current) != len(titles) or set(current) != set(titles)


def _rebuild_lines(run, titles):
    run.items.all().delete()
    ChecklistRunItem.objects.bulk_create([ChecklistRunItem(run=run, title=title) for title in titles])


def get_today_run(tenant, user, location=None):
    """
    Today's run for the tenant template and location.

    Created on first access; a DRAFT run whose lines no longer match the
    tenant's active items is rebuilt. SUBMITTED runs are left untouched.
    """
    template = ensure_template(tenant, user)
    titles = expected_titles(tenant)
    today = timezone.localdate()

    with transaction.atomic():
        # get_or_create re-reads the row when a concurrent request created it first
        run, created = ChecklistRun.objects.get_or_create(
            template=template, run_date=today, location=location,
            defaults={'status': ChecklistRun.STATUS_DRAFT, 'created_by': user},
        )
        run = ChecklistRun.objects.select_for_update().get(pk=run.pk)
        if created:
            _rebuild_lines(run, titles)
            logger.info(f"Created checklist run {run.id} for tenant {tenant.code}")
        elif run.status == ChecklistRun.STATUS_DRAFT and _needs_rebuild(run, titles):
            _rebuild_lines(run, titles)
            logger.info(f"Rebuilt checklist run {run.id} lines for tenant {tenant.code}")
    return run


def get_tenant_run(tenant, run_id):
    run = (
        ChecklistRun.objects.select_related('template', 'location', 'submitted_by', 'created_by')
        .filter(pk=run_id, template__name=template_name_for(tenant))
        .first()
    )
    if run is None:
        raise ApiError(404, 'CHECKLIST_RUN_NOT_FOUND', 'Checklist run not found.')
    return run


def serialize_line(line):
    item_type, title = decode_title(line.title)
    return {
        'id': str(line.id),
        'title': title,
        'item_type': item_type,
        'result': line.result,
        'notes': line.notes,
        'condition_percent': extract_condition_percent(line.notes),
    }


def serialize_run(run):
    lines = sorted((serialize_line(line) for line in run.items.all()), key=lambda row: row['title'].lower())
    return {
        'run_id': str(run.id),
        'template_name': run.template.name,
        'status': run.status,
        'run_date': run.run_date.isoformat(),
        'location': {'id': str(run.location.id), 'name': run.location.display_name} if run.location else None,
        'submitted_by': run.submitted_by.display_name if run.submitted_by else None,
        'submitted_at': run.submitted_at.isoformat() if run.submitted_at else None,
        'items': lines,
    }


def submit_run(request, tenant, run_id, run_status, items):
    """Save line results and notes; a SUBMITTED run can no longer change"""
    run = get_tenant_run(tenant, run_id)
    updated = 0
    with transaction.atomic():
        run = ChecklistRun.objects.select_for_update().get(pk=run.pk)
        if run.status == ChecklistRun.STATUS_SUBMITTED:
            raise ApiError(409, 'CHECKLIST_LOCKED', 'Checklist run has already been submitted.')

        lines = {str(line.id): line for line in run.items.all()}
        for incoming in items:
            line = lines.get(str(incoming['id']))
            if line is None:
                continue
            item_type, _ = decode_title(line.title)
            condition = incoming.get('condition_percent')
            if condition is not None:
                condition = max(0, min(100, condition))
            result = incoming['result']
            if item_type == ITEM_TYPE_ASSET and condition is not None:
                result = result_from_condition(condition)
            line.result = result
            line.notes = attach_condition_note(incoming.get('notes'), condition)
            line.save(update_fields=['result', 'notes'])
            updated += 1

        run.status = run_status
        fields = ['status', 'updated_at']
        if run_status == ChecklistRun.STATUS_SUBMITTED:
            run.submitted_by = request.user
            run.submitted_at = timezone.now()
            fields += ['submitted_by', 'submitted_at']
        run.save(update_fields=fields)

        create_audit_log(
            request=request, action=AuditLog.ACTION_SUBMIT, entity_type='checklist_runs',
            entity_id=run.id, tenant_id=tenant.id,
            diff={'status': run_status, 'updatedItems': updated},
        )

    logger.info(f"User {request.user.username} saved checklist run {run.id} as {run_status}")
    return run


# Monitoring

def _empty_counts():
    return OrderedDict((result, 0) for result in RESULT_ORDER)


def monitoring_report(tenant, period=None, item_type='ALL', date_from=None, date_to=None):
    """
    Result tallies per run and per checklist line over a date range.

    Defaults to today when neither a period nor dates are given.
    """
    start, end = resolve_period_range(period, date_from, date_to)
    if start is None:
        period = PERIOD_DAILY
        start, end = resolve_period_range(period)
    start_day, end_day = timezone.localtime(start).date(), timezone.localtime(end).date()
    item_type = item_type or 'ALL'

    runs = (
        ChecklistRun.objects.select_related('location', 'submitted_by')
        .prefetch_related('items')
        .filter(template__name=template_name_for(tenant), run_date__gte=start_day, run_date__lte=end_day)
        .order_by('-run_date', 'location__name')
    )

    totals = _empty_counts()
    per_item = OrderedDict()
    run_rows = []
    for run in runs:
        run_counts = _empty_counts()
        for line in run.items.all():
            line_type, title = decode_title(line.title)
            if item_type != 'ALL' and line_type != item_type:
                continue
            run_counts[line.result] += 1
            totals[line.result] += 1
            entry = per_item.setdefault((line_type, title), {
                'title': title,
                'item_type': line_type,
                'counts': _empty_counts(),
                'total': 0,
                'last_result': None,
                'last_condition_percent': None,
            })
            entry['counts'][line.result] += 1
            entry['total'] += 1
            if entry['last_result'] is None:
                entry['last_result'] = line.result
                entry['last_condition_percent'] = extract_condition_percent(line.notes)
        run_rows.append({
            'run_id': str(run.id),
            'run_date': run.run_date.isoformat(),
            'status': run.status,
            'location': run.location.display_name if run.location else None,
            'submitted_by': run.submitted_by.display_name if run.submitted_by else None,
            'counts': run_counts,
            'total': sum(run_counts.values()),
        })

    status_counts = Counter(row['status'] for row in run_rows)
    return {
        'period': period or 'CUSTOM',
        'item_type': item_type,
        'date_from': start_day.isoformat(),
        'date_to': end_day.isoformat(),
        'summary': {
            'total_runs': len(run_rows),
            'submitted_runs': status_counts.get(ChecklistRun.STATUS_SUBMITTED, 0),
            'draft_runs': status_counts.get(ChecklistRun.STATUS_DRAFT, 0),
            'results': totals,
        },
        'runs': run_rows,
        'items': sorted(per_item.values(), key=lambda row: (row['item_type'], row['title'].lower())),
    }
