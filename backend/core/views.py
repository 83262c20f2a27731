import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from backend.locations.models import Location
from backend.locations.services import get_tenant_location
from backend.tenants.models import Tenant, TenantMembership
from .exceptions import ApiError
from .models import AuditLog
from .permissions import (
    IsAdminRole,
    LOCATION_CLAIM,
    TENANT_CLAIM,
    get_session_location_id,
    get_session_tenant_id,
    require_tenant_id,
    require_tenant_permission,
)
from .serializers import (
    AuditLogQuerySerializer,
    AuditLogSerializer,
    ChangePasswordSerializer,
    LoginSerializer,
    SelectLocationSerializer,
    SelectTenantSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserStatusSerializer,
)
from .utils import create_audit_log, resolve_period_range, start_of_day

User = get_user_model()
logger = logging.getLogger('backend.core')

AUDIT_DEFAULT_RANGE_DAYS = 7


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        return token


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Refresh serializer that rejects revoked tokens and inactive or deleted users"""
    def validate(self, attrs):
        try:
            refresh = self.token_class(attrs['refresh'])
        except TokenError:
            raise ApiError(401, 'AUTH_REFRESH_INVALID', 'Refresh token is invalid or expired.')

        user_id = refresh.payload.get(jwt_settings.USER_ID_CLAIM)
        user = User.objects.filter(pk=user_id).first() if user_id else None
        if user is None or not user.is_active:
            raise ApiError(401, 'AUTH_REFRESH_INVALID', 'Refresh token is invalid. User is unavailable.')

        try:
            data = super().validate(attrs)
        except (InvalidToken, TokenError, AuthenticationFailed, ObjectDoesNotExist):
            raise ApiError(401, 'AUTH_REFRESH_INVALID', 'Refresh token is invalid or expired.')
        self.user = user
        return data


def issue_tokens(user, tenant_id=None, location_id=None):
    """Refresh token carrying the session tenant and location claims"""
    refresh = CustomTokenObtainPairSerializer.get_token(user)
    refresh[TENANT_CLAIM] = str(tenant_id) if tenant_id else None
    refresh[LOCATION_CLAIM] = str(location_id) if location_id else None
    return refresh


def get_default_membership(user):
    return (
        TenantMembership.objects.select_related('tenant')
        .filter(user=user, tenant__is_active=True, tenant__deleted_at__isnull=True)
        .order_by('-is_default', 'created_at')
        .first()
    )


def serialize_tenant(tenant, membership=None):
    if tenant is None:
        return None
    data = {'id': str(tenant.id), 'code': tenant.code, 'name': tenant.name, 'is_active': tenant.is_active}
    if membership is not None:
        data.update({
            'role': membership.role,
            'position': membership.position,
            'is_default': membership.is_default,
            'can_view': membership.can_view,
            'can_edit': membership.can_edit,
        })
    return data


def set_refresh_cookie(response, refresh):
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        str(refresh),
        max_age=int(jwt_settings.REFRESH_TOKEN_LIFETIME.total_seconds()),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite='Lax',
        path='/api/v1/auth/',
    )
    return response


def session_response(user, refresh, tenant=None, membership=None, response_status=status.HTTP_200_OK):
    response = Response({
        'access': str(refresh.access_token),
        'refresh': str(refresh),
        'user': UserSerializer(user).data,
        'tenant': serialize_tenant(tenant, membership),
    }, status=response_status)
    return set_refresh_cookie(response, refresh)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    return Response({'status': 'ok', 'service': settings.APP_NAME})


# Auth views
@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    """Password login returning a tenant-scoped token pair"""
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = authenticate(
        request,
        username=serializer.validated_data['username'].strip(),
        password=serializer.validated_data['password'],
    )
    if user is None or not user.is_active:
        logger.warning(f"Failed login for {serializer.validated_data['username']}")
        raise ApiError(401, 'AUTH_INVALID', 'Invalid username or password.')

    membership = get_default_membership(user)
    tenant = membership.tenant if membership else None
    refresh = issue_tokens(user, tenant_id=tenant.id if tenant else None)

    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    create_audit_log(
        request=request, user=user, action=AuditLog.ACTION_LOGIN, entity_type='users',
        entity_id=user.id, tenant_id=tenant.id if tenant else None,
        diff={'username': user.username},
    )
    logger.info(f"User {user.username} logged in (tenant={tenant.code if tenant else '-'})")
    return session_response(user, refresh, tenant, membership)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def refresh_session(request):
    """Rotate a refresh token taken from the body or the httpOnly cookie"""
    raw_token = request.data.get('refresh') or request.COOKIES.get(settings.REFRESH_COOKIE_NAME)
    if not raw_token:
        raise ApiError(401, 'AUTH_REFRESH_REQUIRED', 'Refresh token is required.')

    serializer = CustomTokenRefreshSerializer(data={'refresh': raw_token})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    response = Response({'access': data['access'], 'refresh': data.get('refresh', raw_token)})
    if data.get('refresh'):
        set_refresh_cookie(response, data['refresh'])
    return response


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def logout(request):
    """Revoke the presented refresh token and clear the cookie"""
    raw_token = request.data.get('refresh') or request.COOKIES.get(settings.REFRESH_COOKIE_NAME)
    if raw_token:
        try:
            RefreshToken(raw_token).blacklist()
        except TokenError:
            logger.info("Logout with an already invalid refresh token")

    response = Response({'code': 'LOGOUT_SUCCESS', 'message': 'Logged out.'})
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, path='/api/v1/auth/')
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with default and active tenant context"""
    user = request.user
    default_membership = get_default_membership(user)

    active_tenant = None
    active_membership = None
    tenant_id = get_session_tenant_id(request)
    if tenant_id:
        active_tenant = Tenant.objects.filter(pk=tenant_id).first()
        active_membership = TenantMembership.objects.filter(user=user, tenant_id=tenant_id).first()

    active_location = None
    location_id = get_session_location_id(request)
    if location_id and active_tenant:
        location = Location.objects.filter(pk=location_id).first()
        if location:
            active_location = {'id': str(location.id), 'name': location.display_name}

    return Response({
        'user': UserSerializer(user).data,
        'default_tenant': serialize_tenant(
            default_membership.tenant if default_membership else None, default_membership
        ),
        'active_tenant': serialize_tenant(active_tenant, active_membership),
        'active_location': active_location,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_tenants(request):
    """Tenants the current user can switch to"""
    user = request.user
    if user.role == User.ROLE_SUPER_ADMIN:
        tenants = Tenant.objects.filter(is_active=True, deleted_at__isnull=True)
        return Response([serialize_tenant(tenant) for tenant in tenants])

    memberships = (
        TenantMembership.objects.select_related('tenant')
        .filter(user=user, tenant__is_active=True, tenant__deleted_at__isnull=True)
        .order_by('-is_default', 'created_at')
    )
    return Response([serialize_tenant(m.tenant, m) for m in memberships])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def select_tenant(request):
    """Issue a new token pair scoped to another tenant"""
    serializer = SelectTenantSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    tenant_id = serializer.validated_data['tenant_id']
    user = request.user

    tenant = Tenant.objects.filter(pk=tenant_id, is_active=True, deleted_at__isnull=True).first()
    membership = None
    if tenant is not None and user.role != User.ROLE_SUPER_ADMIN:
        membership = TenantMembership.objects.filter(user=user, tenant=tenant).first()
    if tenant is None or (membership is None and user.role != User.ROLE_SUPER_ADMIN):
        raise ApiError(403, 'FORBIDDEN', 'You do not have access to this tenant.')

    refresh = issue_tokens(user, tenant_id=tenant.id)
    logger.info(f"User {user.username} switched to tenant {tenant.code}")
    return session_response(user, refresh, tenant, membership)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def select_location(request):
    """Issue a new token pair with an active location (or none)"""
    serializer = SelectLocationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    location_id = serializer.validated_data['location_id']

    tenant = require_tenant_permission(request, 'view')
    location = get_tenant_location(tenant, location_id) if location_id else None

    refresh = issue_tokens(request.user, tenant_id=tenant.id, location_id=location.id if location else None)
    response = session_response(request.user, refresh, tenant)
    response.data['location'] = (
        {'id': str(location.id), 'name': location.display_name} if location else None
    )
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    """Change own password and revoke every outstanding refresh token"""
    serializer = ChangePasswordSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = request.user

    if not user.check_password(serializer.validated_data['current_password']):
        raise ApiError(400, 'PASSWORD_INVALID', 'Current password is incorrect.')

    with transaction.atomic():
        user.set_password(serializer.validated_data['new_password'])
        user.save(update_fields=['password', 'updated_at'])
        for token in OutstandingToken.objects.filter(user=user):
            BlacklistedToken.objects.get_or_create(token=token)

    create_audit_log(
        request=request, action=AuditLog.ACTION_CHANGE_PASSWORD, entity_type='users',
        entity_id=user.id, tenant_id=get_session_tenant_id(request),
        diff={'passwordChanged': True},
    )
    logger.info(f"User {user.username} changed their password")
    return Response({'code': 'PASSWORD_CHANGED', 'message': 'Password changed. Please log in again.'})


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list_create(request):
    """List users or create a new user"""
    user = request.user
    if request.method == 'GET':
        users = User.objects.all()
        if user.role != User.ROLE_SUPER_ADMIN:
            users = users.filter(memberships__tenant_id=require_tenant_id(request))

        search = request.query_params.get('search', '').strip()
        if search:
            users = users.filter(Q(username__icontains=search) | Q(name__icontains=search) | Q(email__icontains=search))
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        is_active = request.query_params.get('is_active')
        if is_active in ('true', 'false'):
            users = users.filter(is_active=is_active == 'true')

        serializer = UserSerializer(users.distinct().order_by('username'), many=True)
        return Response(serializer.data)

    serializer = UserCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if user.role != User.ROLE_SUPER_ADMIN and data.get('role') in (User.ROLE_SUPER_ADMIN, User.ROLE_ADMIN):
        raise ApiError(403, 'FORBIDDEN', 'Only a super admin can create admin accounts.')
    if User.objects.filter(username__iexact=data['username']).exists():
        raise ApiError(409, 'USER_EXISTS', 'Username is already taken.')

    tenant_id = get_session_tenant_id(request)
    if user.role != User.ROLE_SUPER_ADMIN:
        tenant_id = require_tenant_id(request)

    with transaction.atomic():
        new_user = serializer.save()
        if tenant_id:
            tenant_roles = dict(TenantMembership.TENANT_ROLE_CHOICES)
            TenantMembership.objects.create(
                tenant_id=tenant_id,
                user=new_user,
                role=new_user.role if new_user.role in tenant_roles else 'STAFF',
                is_default=True,
                can_view=True,
                can_edit=new_user.role in User.ADMIN_ROLES,
            )

    create_audit_log(
        request=request, action=AuditLog.ACTION_CREATE, entity_type='users',
        entity_id=new_user.id, tenant_id=tenant_id,
        diff={'username': new_user.username, 'role': new_user.role},
    )
    logger.info(f"User {user.username} created user {new_user.username}")
    return Response(UserSerializer(new_user).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_status(request, pk):
    """Activate or deactivate a user"""
    serializer = UserStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    is_active = serializer.validated_data['is_active']

    users = User.objects.all()
    if request.user.role != User.ROLE_SUPER_ADMIN:
        users = users.filter(memberships__tenant_id=require_tenant_id(request))
    target = users.filter(pk=pk).first()
    if target is None:
        raise ApiError(404, 'USER_NOT_FOUND', 'User not found.')
    if target.pk == request.user.pk and not is_active:
        raise ApiError(400, 'USER_SELF_DEACTIVATE', 'You cannot deactivate your own account.')

    previous = target.is_active
    target.is_active = is_active
    target.save(update_fields=['is_active', 'updated_at'])

    create_audit_log(
        request=request, action=AuditLog.ACTION_STATUS_UPDATE, entity_type='users',
        entity_id=target.id, tenant_id=get_session_tenant_id(request),
        diff={'isActive': {'before': previous, 'after': is_active}},
    )
    return Response({'code': 'USER_STATUS_UPDATED', 'user': UserSerializer(target).data})


# AuditLog views
def _audit_scope(request, requested_tenant_id=None):
    """Tenant filter for audit queries; None means every tenant"""
    user = request.user
    if user.role == User.ROLE_SUPER_ADMIN:
        return str(requested_tenant_id) if requested_tenant_id else None
    if user.role in (User.ROLE_ADMIN, User.ROLE_TENANT_ADMIN):
        return require_tenant_id(request)
    raise ApiError(403, 'FORBIDDEN', 'You do not have access to audit logs.')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering and pagination"""
    query = AuditLogQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    params = query.validated_data

    tenant_id = _audit_scope(request, params.get('tenant_id'))
    queryset = AuditLog.objects.select_related('actor', 'tenant')
    if tenant_id:
        queryset = queryset.filter(tenant_id=tenant_id)

    if params.get('entity_type'):
        queryset = queryset.filter(entity_type=params['entity_type'])
    if params.get('action'):
        queryset = queryset.filter(action=params['action'])
    if params.get('actor_id'):
        queryset = queryset.filter(actor_id=params['actor_id'])
    search = (params.get('search') or '').strip()
    if search:
        queryset = queryset.filter(
            Q(entity_type__icontains=search)
            | Q(entity_id__icontains=search)
            | Q(action__icontains=search)
            | Q(actor__username__icontains=search)
        )

    start, end = resolve_period_range(None, params.get('date_from'), params.get('date_to'))
    if start is None:
        end = timezone.now()
        start = start_of_day(timezone.localdate() - timedelta(days=AUDIT_DEFAULT_RANGE_DAYS - 1))
    queryset = queryset.filter(created_at__gte=start, created_at__lte=end)

    ordering = 'created_at' if params['sort'] == 'created_at:asc' else '-created_at'
    queryset = queryset.order_by(ordering)

    paginator = Paginator(queryset, params['page_size'])
    page_obj = paginator.get_page(params['page'])
    serializer = AuditLogSerializer(page_obj, many=True)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'page': page_obj.number,
        'page_size': params['page_size'],
        'total_pages': paginator.num_pages,
        'date_from': start.isoformat(),
        'date_to': end.isoformat(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    tenant_id = _audit_scope(request)
    queryset = AuditLog.objects.select_related('actor', 'tenant')
    if tenant_id:
        queryset = queryset.filter(tenant_id=tenant_id)
    audit_log = queryset.filter(pk=pk).first()
    if audit_log is None:
        raise ApiError(404, 'AUDIT_LOG_NOT_FOUND', 'Audit log not found.')
    return Response(AuditLogSerializer(audit_log).data)
