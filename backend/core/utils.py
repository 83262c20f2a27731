"""Utility functions for audit logging and reporting periods"""
import logging
from datetime import datetime, time, timedelta

from django.db import transaction
from django.utils import timezone

from .models import AuditLog
from .exceptions import ApiError

logger = logging.getLogger(__name__)

REDACTED = '[REDACTED]'
SENSITIVE_KEY_PARTS = ('password', 'token', 'secret', 'apikey', 'api_key', 'bottoken', 'refresh', 'access')


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def is_sensitive_key(key):
    lowered = str(key).lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def redact_sensitive(value):
    """Recursively replace values stored under sensitive keys"""
    if isinstance(value, dict):
        return {
            key: REDACTED if is_sensitive_key(key) else redact_sensitive(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_sensitive(item) for item in value]
    return value


def _json_safe(value):
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def create_audit_log(request=None, action=None, entity_type=None, entity_id=None,
                     diff=None, user=None, tenant_id=None):
    """
    Create an audit log entry

    Args:
        request: DRF request (for actor and IP) - optional if user is provided
        action: Action type (CREATE, UPDATE, STATUS_UPDATE, ...)
        entity_type: Table-like name of the entity acted upon
        entity_id: ID of the entity (as string)
        diff: Dictionary of changes, sensitive keys are redacted
        user: Optional actor override (defaults to request.user)
        tenant_id: Tenant the change belongs to
    """
    if not action or not entity_type or not entity_id:
        logger.warning(
            f"Audit log creation skipped: missing required fields "
            f"(action={action}, entity_type={entity_type}, entity_id={entity_id})"
        )
        return None

    actor = user
    if actor is None and request is not None:
        actor = getattr(request, 'user', None)
    if actor is not None and not actor.is_authenticated:
        actor = None

    try:
        # Savepoint so a failed insert never poisons the caller's transaction
        with transaction.atomic():
            return AuditLog.objects.create(
                actor=actor,
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                diff=redact_sensitive(_json_safe(diff or {})),
                ip_address=get_client_ip(request) if request else None,
            )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


# Reporting periods

PERIOD_DAILY = 'DAILY'
PERIOD_WEEKLY = 'WEEKLY'
PERIOD_MONTHLY = 'MONTHLY'
PERIOD_CUSTOM = 'CUSTOM'
PERIODS = (PERIOD_DAILY, PERIOD_WEEKLY, PERIOD_MONTHLY, PERIOD_CUSTOM)


def start_of_day(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def end_of_day(day):
    return timezone.make_aware(datetime.combine(day, time.max))


def resolve_period_range(period=None, date_from=None, date_to=None):
    """
    Resolve a reporting window to aware datetimes.

    Explicit dates win over the period; a missing end defaults to today.
    WEEKLY is Monday to Sunday of the current week, MONTHLY is the calendar
    month. Returns (None, None) when nothing was requested.
    """
    today = timezone.localdate()

    if date_from or date_to:
        start_day = date_from or date_to
        end_day = date_to or today
        if start_day > end_day:
            raise ApiError(400, 'DATE_RANGE_INVALID', 'Start date must not be after end date.')
        return start_of_day(start_day), end_of_day(end_day)

    if period == PERIOD_DAILY:
        return start_of_day(today), end_of_day(today)
    if period == PERIOD_WEEKLY:
        monday = today - timedelta(days=today.weekday())
        return start_of_day(monday), end_of_day(monday + timedelta(days=6))
    if period == PERIOD_MONTHLY:
        first = today.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        return start_of_day(first), end_of_day(next_month - timedelta(days=1))
    return None, None


# Audit log rendering

def _paired_field(key):
    """Split ``oldName``/``newName`` (or ``old_name``/``new_name``) keys"""
    for prefix, side in (('old', 'before'), ('new', 'after')):
        if not key.startswith(prefix) or len(key) <= len(prefix):
            continue
        rest = key[len(prefix):]
        if rest[0] == '_' and len(rest) > 1:
            return side, rest[1:]
        if rest[0].isupper():
            return side, rest[0].lower() + rest[1:]
    return None, None


def normalize_diff(diff):
    """
    Flatten a stored diff into ``[{field, before, after}]`` rows.

    ``oldX``/``newX`` keys are paired, ``{before, after}`` values are
    unpacked and anything else is reported as a new value.
    """
    if not isinstance(diff, dict):
        return []
    diff = redact_sensitive(diff)
    rows = {}
    for key, value in diff.items():
        side, field = _paired_field(key)
        if side:
            row = rows.setdefault(field, {'field': field, 'before': None, 'after': None})
            row[side] = value
        elif isinstance(value, dict) and ('before' in value or 'after' in value):
            rows[key] = {'field': key, 'before': value.get('before'), 'after': value.get('after')}
        else:
            rows[key] = {'field': key, 'before': None, 'after': value}
    return list(rows.values())


def audit_summary(log):
    changes = normalize_diff(log.diff)
    first_field = changes[0]['field'] if changes else '-'
    return f"{log.entity_type} {log.action} ({first_field})"
