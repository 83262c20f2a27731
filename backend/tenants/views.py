import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.exceptions import ApiError
from backend.core.models import AuditLog
from backend.core.permissions import IsSuperAdmin
from backend.core.scoping import display_location_name, tenant_location_prefix, to_tenant_location_name
from backend.core.utils import create_audit_log
from backend.locations.models import Location
from backend.locations.serializers import LocationSerializer
from backend.locations.services import (
    DEFAULT_LOCATION_NAME,
    create_tenant_location,
    get_tenant_location,
    set_location_active,
    tenant_locations,
)
from .models import Tenant, TenantMembership, TenantTelegramSetting
from .serializers import (
    BulkTenantActionSerializer,
    BulkTenantUserActionSerializer,
    TelegramSettingSerializer,
    TenantCreateSerializer,
    TenantLocationCreateSerializer,
    TenantLocationUpdateSerializer,
    TenantMemberSerializer,
    TenantSerializer,
    TenantStatusSerializer,
    TenantUpdateSerializer,
    TenantUserCreateSerializer,
    TenantUserUpdateSerializer,
)

User = get_user_model()
logger = logging.getLogger('backend.tenants')

TENANT_STATUS_FILTERS = ('active', 'inactive', 'deleted', 'all')


def _get_tenant(pk, include_deleted=True):
    tenant = Tenant.objects.filter(pk=pk).first()
    if tenant is None or (tenant.is_deleted and not include_deleted):
        raise ApiError(404, 'TENANT_NOT_FOUND', 'Tenant not found.')
    return tenant


def _location_counts(tenants):
    """Count locations per tenant code in one pass over the prefixed names"""
    codes = {tenant.code for tenant in tenants}
    counts = dict.fromkeys(codes, 0)
    if not codes:
        return counts
    prefix_filter = Q()
    for code in codes:
        prefix_filter |= Q(name__startswith=tenant_location_prefix(code))
    for name in Location.objects.filter(prefix_filter).values_list('name', flat=True):
        code = name.split('::', 1)[0]
        if code in counts:
            counts[code] += 1
    return counts


def _tenant_detail_payload(tenant):
    memberships = TenantMembership.objects.select_related('user').filter(tenant=tenant).order_by('user__username')
    locations = tenant_locations(tenant, include_inactive=True)
    data = TenantSerializer(tenant, context={'location_counts': {tenant.code: locations.count()}}).data
    data['member_count'] = memberships.count()
    data['users'] = TenantMemberSerializer(memberships, many=True).data
    data['locations'] = LocationSerializer(locations, many=True).data
    return data


def _apply_tenant_action(tenant, action):
    """Apply one lifecycle action, returning the changed fields"""
    if action == 'activate':
        if tenant.is_deleted:
            raise ApiError(404, 'TENANT_NOT_FOUND', 'Tenant is deleted. Restore it first.')
        tenant.is_active = True
        return ['is_active']
    if action == 'deactivate':
        tenant.is_active = False
        return ['is_active']
    if action == 'delete':
        tenant.is_active = False
        tenant.deleted_at = tenant.deleted_at or timezone.now()
        return ['is_active', 'deleted_at']
    if action == 'restore':
        tenant.deleted_at = None
        return ['deleted_at']
    raise ApiError(400, 'VALIDATION_ERROR', f"Unknown action: {action}")


# Tenant views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_list_create(request):
    """List tenants or create a new tenant"""
    if request.method == 'GET':
        tenants = Tenant.objects.annotate(member_count=Count('memberships'))

        search = request.query_params.get('search', '').strip()
        if search:
            tenants = tenants.filter(Q(code__icontains=search) | Q(name__icontains=search))

        status_filter = request.query_params.get('status', 'all')
        if status_filter not in TENANT_STATUS_FILTERS:
            raise ApiError(400, 'VALIDATION_ERROR', 'Invalid status filter.',
                           details={'status': list(TENANT_STATUS_FILTERS)})
        if status_filter == 'active':
            tenants = tenants.filter(is_active=True, deleted_at__isnull=True)
        elif status_filter == 'inactive':
            tenants = tenants.filter(is_active=False, deleted_at__isnull=True)
        elif status_filter == 'deleted':
            tenants = tenants.filter(deleted_at__isnull=False)

        tenants = list(tenants.order_by('name'))
        serializer = TenantSerializer(tenants, many=True, context={'location_counts': _location_counts(tenants)})
        return Response(serializer.data)

    serializer = TenantCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    code = serializer.validated_data['code']
    name = serializer.validated_data['name'].strip()

    if Tenant.objects.filter(code=code).exists():
        raise ApiError(409, 'TENANT_EXISTS', f"Tenant with code '{code}' already exists.")

    with transaction.atomic():
        tenant = Tenant.objects.create(code=code, name=name, is_active=True)
        TenantTelegramSetting.objects.create(tenant=tenant, is_enabled=False)
        create_tenant_location(tenant, DEFAULT_LOCATION_NAME, 'Default storage location')

    create_audit_log(
        request=request, action=AuditLog.ACTION_CREATE, entity_type='tenants',
        entity_id=tenant.id, tenant_id=tenant.id, diff={'code': code, 'name': name},
    )
    logger.info(f"Tenant {code} created by {request.user.username}")
    return Response(_tenant_detail_payload(tenant), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_detail(request, pk):
    """Retrieve, rename or soft delete a tenant"""
    tenant = _get_tenant(pk)

    if request.method == 'GET':
        return Response(_tenant_detail_payload(tenant))

    if request.method == 'PATCH':
        serializer = TenantUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        old_name = tenant.name
        tenant.name = serializer.validated_data['name'].strip()
        tenant.save(update_fields=['name', 'updated_at'])
        create_audit_log(
            request=request, action=AuditLog.ACTION_UPDATE, entity_type='tenants',
            entity_id=tenant.id, tenant_id=tenant.id,
            diff={'oldName': old_name, 'newName': tenant.name},
        )
        return Response(_tenant_detail_payload(tenant))

    fields = _apply_tenant_action(tenant, 'delete')
    tenant.save(update_fields=fields + ['updated_at'])
    create_audit_log(
        request=request, action=AuditLog.ACTION_DELETE, entity_type='tenants',
        entity_id=tenant.id, tenant_id=tenant.id, diff={'code': tenant.code, 'softDelete': True},
    )
    logger.info(f"Tenant {tenant.code} soft deleted by {request.user.username}")
    return Response({'code': 'TENANT_DELETED', 'message': 'Tenant deleted.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_status(request, pk):
    serializer = TenantStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    tenant = _get_tenant(pk, include_deleted=False)
    previous = tenant.is_active
    tenant.is_active = serializer.validated_data['is_active']
    tenant.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(
        request=request, action=AuditLog.ACTION_STATUS_UPDATE, entity_type='tenants',
        entity_id=tenant.id, tenant_id=tenant.id,
        diff={'isActive': {'before': previous, 'after': tenant.is_active}},
    )
    return Response(TenantSerializer(tenant).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_restore(request, pk):
    """Undo a soft delete; the tenant stays inactive until reactivated"""
    tenant = _get_tenant(pk)
    fields = _apply_tenant_action(tenant, 'restore')
    tenant.save(update_fields=fields + ['updated_at'])
    create_audit_log(
        request=request, action=AuditLog.ACTION_UPDATE, entity_type='tenants',
        entity_id=tenant.id, tenant_id=tenant.id, diff={'restored': True},
    )
    return Response(TenantSerializer(tenant).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_reactivate(request, pk):
    tenant = _get_tenant(pk, include_deleted=False)
    fields = _apply_tenant_action(tenant, 'activate')
    tenant.save(update_fields=fields + ['updated_at'])
    create_audit_log(
        request=request, action=AuditLog.ACTION_STATUS_UPDATE, entity_type='tenants',
        entity_id=tenant.id, tenant_id=tenant.id, diff={'isActive': {'before': False, 'after': True}},
    )
    return Response(TenantSerializer(tenant).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_bulk_action(request):
    """Activate, deactivate, delete or restore several tenants at once"""
    serializer = BulkTenantActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    ids = list(dict.fromkeys(serializer.validated_data['ids']))
    action = serializer.validated_data['action']

    tenants = list(Tenant.objects.filter(pk__in=ids))
    if not tenants:
        raise ApiError(404, 'TENANT_NOT_FOUND', 'No tenants found for the given ids.')

    updated = []
    skipped = []
    with transaction.atomic():
        for tenant in tenants:
            if action == 'activate' and tenant.is_deleted:
                skipped.append(str(tenant.id))
                continue
            fields = _apply_tenant_action(tenant, action)
            tenant.save(update_fields=fields + ['updated_at'])
            updated.append(str(tenant.id))

    create_audit_log(
        request=request, action=AuditLog.ACTION_BULK_ACTION, entity_type='tenants',
        entity_id='bulk_action', diff={'action': action, 'ids': updated, 'skipped': skipped},
    )
    logger.info(f"Bulk tenant action {action} on {len(updated)} tenants by {request.user.username}")
    return Response({'code': 'TENANT_BULK_ACTION_COMPLETED', 'action': action,
                     'count': len(updated), 'updated': updated, 'skipped': skipped})


# Tenant user views
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_user_create(request, pk):
    """Create a user and add them to the tenant"""
    tenant = _get_tenant(pk, include_deleted=False)
    serializer = TenantUserCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if User.objects.filter(username__iexact=data['username']).exists():
        raise ApiError(409, 'USER_EXISTS', 'Username is already taken.')

    with transaction.atomic():
        user = User(
            username=data['username'],
            name=data['name'].strip(),
            email=data.get('email', ''),
            role=data['role'],
            is_active=True,
        )
        user.set_password(data['password'])
        user.save()
        membership = TenantMembership.objects.create(
            tenant=tenant,
            user=user,
            role=data['role'],
            position=data.get('position', ''),
            is_default=True,
            can_view=data['can_view'],
            can_edit=data['can_edit'],
        )

    create_audit_log(
        request=request, action=AuditLog.ACTION_CREATE, entity_type='tenant_memberships',
        entity_id=membership.id, tenant_id=tenant.id,
        diff={'username': user.username, 'role': membership.role, 'canEdit': membership.can_edit},
    )
    logger.info(f"User {user.username} added to tenant {tenant.code}")
    return Response(TenantMemberSerializer(membership).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_user_update(request, pk, user_id):
    tenant = _get_tenant(pk)
    membership = TenantMembership.objects.select_related('user').filter(tenant=tenant, user_id=user_id).first()
    if membership is None:
        raise ApiError(404, 'USER_NOT_FOUND', 'User is not a member of this tenant.')

    serializer = TenantUserUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    user = membership.user

    if 'is_active' in data and not data['is_active'] and user.pk == request.user.pk:
        raise ApiError(400, 'USER_SELF_DEACTIVATE', 'You cannot deactivate your own account.')

    changes = {}
    user_fields = []
    for field in ('name', 'email', 'is_active'):
        if field in data and getattr(user, field) != data[field]:
            changes[field] = {'before': getattr(user, field), 'after': data[field]}
            setattr(user, field, data[field])
            user_fields.append(field)
    if data.get('password'):
        user.set_password(data['password'])
        user_fields.append('password')
        changes['password'] = 'changed'

    membership_fields = []
    for field in ('role', 'position', 'can_view', 'can_edit'):
        if field in data and getattr(membership, field) != data[field]:
            changes[field] = {'before': getattr(membership, field), 'after': data[field]}
            setattr(membership, field, data[field])
            membership_fields.append(field)
    if 'role' in membership_fields:
        user.role = membership.role
        user_fields.append('role')

    with transaction.atomic():
        if user_fields:
            user.save(update_fields=user_fields + ['updated_at'])
        if membership_fields:
            membership.save(update_fields=membership_fields + ['updated_at'])

    if changes:
        create_audit_log(
            request=request, action=AuditLog.ACTION_UPDATE, entity_type='tenant_memberships',
            entity_id=membership.id, tenant_id=tenant.id, diff=changes,
        )
    return Response(TenantMemberSerializer(membership).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_user_bulk_action(request, pk):
    """Activate, deactivate or remove several tenant members"""
    tenant = _get_tenant(pk)
    serializer = BulkTenantUserActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user_ids = list(dict.fromkeys(serializer.validated_data['user_ids']))
    action = serializer.validated_data['action']

    memberships = list(
        TenantMembership.objects.select_related('user').filter(tenant=tenant, user_id__in=user_ids)
    )
    if not memberships:
        raise ApiError(404, 'USER_NOT_FOUND', 'No tenant members found for the given ids.')

    updated = []
    skipped = []
    with transaction.atomic():
        for membership in memberships:
            user = membership.user
            if user.pk == request.user.pk:
                skipped.append(str(user.id))
                continue
            if action == 'remove':
                membership.delete()
            else:
                user.is_active = action == 'activate'
                user.save(update_fields=['is_active', 'updated_at'])
            updated.append(str(user.id))

    create_audit_log(
        request=request, action=AuditLog.ACTION_BULK_ACTION, entity_type='tenant_memberships',
        entity_id='bulk_action', tenant_id=tenant.id,
        diff={'action': action, 'userIds': updated, 'skipped': skipped},
    )
    return Response({'code': 'TENANT_USERS_BULK_ACTION_COMPLETED', 'action': action,
                     'count': len(updated), 'updated': updated, 'skipped': skipped})


# Tenant location views
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_location_create(request, pk):
    tenant = _get_tenant(pk, include_deleted=False)
    serializer = TenantLocationCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    location = create_tenant_location(
        tenant, serializer.validated_data['name'], serializer.validated_data.get('description', '')
    )
    create_audit_log(
        request=request, action=AuditLog.ACTION_CREATE, entity_type='locations',
        entity_id=location.id, tenant_id=tenant.id, diff={'name': location.display_name},
    )
    return Response(LocationSerializer(location).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_location_update(request, pk, location_id):
    """Rename, describe or (de)activate a tenant location"""
    tenant = _get_tenant(pk)
    location = get_tenant_location(tenant, location_id, require_active=False)
    serializer = TenantLocationUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    changes = {}
    if 'name' in data and data['name'].strip() != location.display_name:
        new_name = to_tenant_location_name(tenant.code, data['name'], active=location.is_active)
        if Location.objects.filter(name__in=[
            to_tenant_location_name(tenant.code, data['name'], active=True),
            to_tenant_location_name(tenant.code, data['name'], active=False),
        ]).exclude(pk=location.pk).exists():
            raise ApiError(409, 'LOCATION_EXISTS', 'A location with this name already exists.')
        changes['name'] = {'before': location.display_name, 'after': display_location_name(new_name)}
        location.name = new_name
    if 'description' in data and data['description'] != location.description:
        changes['description'] = {'before': location.description, 'after': data['description']}
        location.description = data['description']

    with transaction.atomic():
        location.save(update_fields=['name', 'description', 'updated_at'])
        if 'is_active' in data and data['is_active'] != location.is_active:
            changes['isActive'] = {'before': location.is_active, 'after': data['is_active']}
            set_location_active(location, tenant.code, data['is_active'])

    if changes:
        create_audit_log(
            request=request, action=AuditLog.ACTION_UPDATE, entity_type='locations',
            entity_id=location.id, tenant_id=tenant.id, diff=changes,
        )
    return Response(LocationSerializer(location).data)


# Telegram settings
@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_telegram(request, pk):
    """Read or replace the tenant Telegram integration settings"""
    tenant = _get_tenant(pk)
    setting, _ = TenantTelegramSetting.objects.get_or_create(tenant=tenant)

    if request.method == 'GET':
        return Response(TelegramSettingSerializer(setting).data)

    serializer = TelegramSettingSerializer(setting, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()

    create_audit_log(
        request=request, action=AuditLog.ACTION_UPDATE, entity_type='tenant_telegram_settings',
        entity_id=setting.id, tenant_id=tenant.id, diff=dict(request.data),
    )
    logger.info(f"Telegram settings for {tenant.code} updated (enabled={setting.is_enabled})")
    return Response(TelegramSettingSerializer(setting).data)
