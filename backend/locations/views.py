import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.models import AuditLog, User
from backend.core.permissions import get_session_tenant_id, require_tenant_permission
from backend.core.utils import create_audit_log
from .models import Location
from .serializers import LocationCreateSerializer, LocationSerializer
from .services import active_locations, create_tenant_location, ensure_default_location, tenant_locations

logger = logging.getLogger('backend.locations')


# Location views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def location_list_create(request):
    """List active locations of the session tenant or create a new one"""
    if request.method == 'GET':
        if request.user.role == User.ROLE_SUPER_ADMIN and not get_session_tenant_id(request):
            locations = active_locations(Location.objects.all())
            logger.debug("Super admin without tenant - returning every active location")
            return Response(LocationSerializer(locations, many=True).data)

        tenant = require_tenant_permission(request, 'view')
        ensure_default_location(tenant)
        locations = tenant_locations(tenant)
        return Response(LocationSerializer(locations, many=True).data)

    tenant = require_tenant_permission(request, 'edit')
    serializer = LocationCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    location = create_tenant_location(
        tenant, serializer.validated_data['name'], serializer.validated_data.get('description', '')
    )
    create_audit_log(
        request=request, action=AuditLog.ACTION_CREATE, entity_type='locations',
        entity_id=location.id, tenant_id=tenant.id,
        diff={'name': location.display_name, 'description': location.description},
    )
    logger.info(f"Location '{location.display_name}' created by {request.user.username}")
    return Response(LocationSerializer(location).data, status=status.HTTP_201_CREATED)
