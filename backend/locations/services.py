"""Tenant-aware location queries and creation"""
import logging

from django.db import IntegrityError, transaction

from backend.core.exceptions import ApiError
from backend.core.scoping import (
    INACTIVE_LOCATION_MARKER,
    is_inactive_location_name,
    tenant_location_prefix,
    to_tenant_location_name,
)
from .models import Location

logger = logging.getLogger('backend.locations')

DEFAULT_LOCATION_NAME = 'Gudang Utama'


def tenant_locations(tenant, include_inactive=False):
    """Locations owned by the tenant, active ones only unless asked otherwise"""
    queryset = Location.objects.filter(name__startswith=tenant_location_prefix(tenant.code))
    if not include_inactive:
        queryset = queryset.exclude(name__contains=f"::{INACTIVE_LOCATION_MARKER}")
    return queryset


def active_locations(queryset=None):
    queryset = queryset if queryset is not None else Location.objects.all()
    return queryset.exclude(name__startswith=INACTIVE_LOCATION_MARKER).exclude(
        name__contains=f"::{INACTIVE_LOCATION_MARKER}"
    )


def get_tenant_location(tenant, location_id, require_active=True):
    """
    Fetch one location for a tenant.

    Raises 404 when it does not exist, 403 when another tenant owns it and
    400 when it is inactive and an active one is required.
    """
    location = Location.objects.filter(pk=location_id).first()
    if location is None:
        raise ApiError(404, 'LOCATION_NOT_FOUND', 'Location not found.')
    if not location.name.startswith(tenant_location_prefix(tenant.code)):
        raise ApiError(403, 'FORBIDDEN', 'Location does not belong to the active tenant.')
    if require_active and is_inactive_location_name(location.name):
        raise ApiError(400, 'LOCATION_INACTIVE', 'Location is inactive.')
    return location


def create_tenant_location(tenant, name, description=''):
    """Create a tenant location and zero stock rows for every tenant item"""
    from backend.inventory.services import ensure_stock_rows_for_location

    scoped_name = to_tenant_location_name(tenant.code, name)
    inactive_name = to_tenant_location_name(tenant.code, name, active=False)
    if Location.objects.filter(name__in=[scoped_name, inactive_name]).exists():
        raise ApiError(409, 'LOCATION_EXISTS', 'A location with this name already exists.')

    try:
        with transaction.atomic():
            location = Location.objects.create(name=scoped_name, description=description or '')
            ensure_stock_rows_for_location(tenant, location)
    except IntegrityError:
        raise ApiError(409, 'LOCATION_EXISTS', 'A location with this name already exists.')

    logger.info(f"Created location {location.name} for tenant {tenant.code}")
    return location


def ensure_default_location(tenant):
    """Create the default location when the tenant has none at all"""
    if tenant_locations(tenant, include_inactive=True).exists():
        return None
    logger.info(f"Tenant {tenant.code} has no locations, creating {DEFAULT_LOCATION_NAME}")
    return create_tenant_location(tenant, DEFAULT_LOCATION_NAME, 'Default storage location')


def set_location_active(location, tenant_code, active):
    location.name = to_tenant_location_name(tenant_code, location.name, active=active)
    location.save(update_fields=['name', 'updated_at'])
    return location
