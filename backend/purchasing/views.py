import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.permissions import IsAdminRole, require_tenant_permission
from backend.core.utils import resolve_period_range
from .models import PurchaseRequest
from .serializers import (
    PurchaseRequestBulkStatusSerializer,
    PurchaseRequestCreateSerializer,
    PurchaseRequestDetailSerializer,
    PurchaseRequestQuerySerializer,
    PurchaseRequestSerializer,
    PurchaseRequestStatusSerializer,
)
from .services import bulk_update_status, create_purchase_request, get_tenant_purchase_request, update_status

logger = logging.getLogger('backend.purchasing')


# Purchase request views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_request_list_create(request):
    """List tenant purchase requests or create a new one"""
    if request.method == 'GET':
        tenant = require_tenant_permission(request, 'view')
        query = PurchaseRequestQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        queryset = (
            PurchaseRequest.objects.filter(tenant=tenant)
            .select_related('tenant', 'requested_by', 'approved_by')
            .prefetch_related('items')
        )
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        start, end = resolve_period_range(params.get('period'), params.get('date_from'), params.get('date_to'))
        if start is not None:
            queryset = queryset.filter(created_at__gte=start, created_at__lte=end)

        serializer = PurchaseRequestSerializer(queryset.order_by('-created_at'), many=True)
        return Response(serializer.data)

    tenant = require_tenant_permission(request, 'edit')
    serializer = PurchaseRequestCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    purchase_request = create_purchase_request(
        request, tenant, serializer.validated_data.get('notes', ''), serializer.validated_data['items']
    )
    purchase_request = get_tenant_purchase_request(tenant, purchase_request.pk)
    return Response(PurchaseRequestDetailSerializer(purchase_request).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def purchase_request_detail(request, pk):
    tenant = require_tenant_permission(request, 'view')
    purchase_request = get_tenant_purchase_request(tenant, pk)
    return Response(PurchaseRequestDetailSerializer(purchase_request).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def purchase_request_status(request, pk):
    """Move a purchase request along its workflow"""
    tenant = require_tenant_permission(request, 'edit')
    serializer = PurchaseRequestStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    update_status(
        request, tenant, pk, serializer.validated_data['status'], serializer.validated_data.get('note', '')
    )
    purchase_request = get_tenant_purchase_request(tenant, pk)
    return Response({
        'code': 'PR_STATUS_UPDATED',
        'message': f"{purchase_request.pr_number} is now {purchase_request.status}.",
        'purchase_request': PurchaseRequestDetailSerializer(purchase_request).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def purchase_request_bulk_status(request):
    tenant = require_tenant_permission(request, 'edit')
    serializer = PurchaseRequestBulkStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    updated = bulk_update_status(request, tenant, data['ids'], data['status'], data.get('note', ''))
    return Response({
        'code': 'PR_BULK_STATUS_UPDATED',
        'count': len(updated),
        'status': data['status'],
        'ids': [str(pr.id) for pr in updated],
    })
