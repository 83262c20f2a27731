"""
Role checks and tenant context resolution.

The active tenant and location live in the access token claims
``tenant_id`` and ``location_id``.
"""
import logging

from rest_framework.permissions import BasePermission

from backend.tenants.models import Tenant, TenantMembership
from .exceptions import ApiError
from .models import User

logger = logging.getLogger(__name__)

TENANT_CLAIM = 'tenant_id'
LOCATION_CLAIM = 'location_id'


class IsSuperAdmin(BasePermission):
    message = 'Super admin access required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role == User.ROLE_SUPER_ADMIN)


class IsAdminRole(BasePermission):
    message = 'Admin access required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role in User.ADMIN_ROLES)


def _claim(request, name):
    token = getattr(request, 'auth', None)
    if token is None:
        return None
    try:
        value = token.get(name)
    except AttributeError:
        return None
    return str(value) if value else None


def get_session_tenant_id(request):
    return _claim(request, TENANT_CLAIM)


def get_session_location_id(request):
    return _claim(request, LOCATION_CLAIM)


def require_tenant_id(request):
    tenant_id = get_session_tenant_id(request)
    if not tenant_id:
        raise ApiError(400, 'TENANT_CONTEXT_REQUIRED', 'No active tenant in the user session.')
    return tenant_id


def get_active_tenant(request, allow_inactive=False):
    """Return the session tenant, rejecting missing, deleted or inactive tenants"""
    tenant_id = require_tenant_id(request)
    tenant = Tenant.objects.filter(pk=tenant_id).first()
    if tenant is None or tenant.is_deleted or (not tenant.is_active and not allow_inactive):
        raise ApiError(403, 'TENANT_INACTIVE', 'Tenant is inactive or unavailable.')
    return tenant


def get_membership(user, tenant_id):
    return TenantMembership.objects.filter(user=user, tenant_id=tenant_id).first()


def require_tenant_permission(request, mode='view'):
    """
    Resolve the session tenant and check the caller may view or edit it.

    Super admins pass without a membership; everybody else needs a
    membership with ``can_view`` (or ``can_edit`` for writes).
    """
    tenant = get_active_tenant(request)
    user = request.user
    if user.role == User.ROLE_SUPER_ADMIN:
        return tenant

    membership = get_membership(user, tenant.id)
    if membership is None:
        logger.warning(f"User {user.username} has no membership in tenant {tenant.code}")
        raise ApiError(403, 'FORBIDDEN', 'You are not a member of this tenant.')

    allowed = membership.can_edit if mode == 'edit' else (membership.can_view or membership.can_edit)
    if not allowed:
        raise ApiError(403, 'FORBIDDEN', f"You do not have {mode} access for this tenant.")
    return tenant


def require_admin_role(user):
    if user.role not in User.ADMIN_ROLES:
        raise ApiError(403, 'FORBIDDEN', 'Admin access required.')
