from django.urls import path
from .views import (
    login, refresh_session, logout, user_me, user_tenants,
    select_tenant, select_location, change_password,
    user_list_create, user_status,
    audit_log_list, audit_log_detail,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', login, name='auth-login'),
    path('auth/refresh/', refresh_session, name='auth-refresh'),
    path('auth/logout/', logout, name='auth-logout'),
    path('auth/me/', user_me, name='auth-me'),
    path('auth/tenants/', user_tenants, name='auth-tenants'),
    path('auth/tenant/select/', select_tenant, name='auth-select-tenant'),
    path('auth/location/select/', select_location, name='auth-select-location'),
    path('auth/change-password/', change_password, name='auth-change-password'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/<uuid:pk>/status/', user_status, name='user-status'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<uuid:pk>/', audit_log_detail, name='audit-log-detail'),
]
