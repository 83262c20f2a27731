import logging
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.permissions import get_session_location_id, require_tenant_permission
from .services import dashboard_summary, list_notifications, low_stock_rows

logger = logging.getLogger('backend.dashboard')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def summary(request):
    """Headline counters for the session tenant (cached)"""
    tenant = require_tenant_permission(request, 'view')
    return Response(dashboard_summary(tenant))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def low_stock(request):
    tenant = require_tenant_permission(request, 'view')
    return Response(low_stock_rows(tenant, get_session_location_id(request)))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications(request):
    tenant = require_tenant_permission(request, 'view')
    return Response(list_notifications(tenant, get_session_location_id(request)))
