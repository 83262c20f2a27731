from django.urls import path
from .views import (
    tenant_list_create, tenant_detail, tenant_status, tenant_restore, tenant_reactivate,
    tenant_bulk_action, tenant_user_create, tenant_user_update, tenant_user_bulk_action,
    tenant_location_create, tenant_location_update, tenant_telegram,
)

urlpatterns = [
    # Tenant endpoints
    path('tenants/', tenant_list_create, name='tenant-list-create'),
    path('tenants/bulk-action/', tenant_bulk_action, name='tenant-bulk-action'),
    path('tenants/<uuid:pk>/', tenant_detail, name='tenant-detail'),
    path('tenants/<uuid:pk>/status/', tenant_status, name='tenant-status'),
    path('tenants/<uuid:pk>/restore/', tenant_restore, name='tenant-restore'),
    path('tenants/<uuid:pk>/reactivate/', tenant_reactivate, name='tenant-reactivate'),

    # Tenant user endpoints
    path('tenants/<uuid:pk>/users/', tenant_user_create, name='tenant-user-create'),
    path('tenants/<uuid:pk>/users/bulk-action/', tenant_user_bulk_action, name='tenant-user-bulk-action'),
    path('tenants/<uuid:pk>/users/<uuid:user_id>/', tenant_user_update, name='tenant-user-update'),

    # Tenant location endpoints
    path('tenants/<uuid:pk>/locations/', tenant_location_create, name='tenant-location-create'),
    path('tenants/<uuid:pk>/locations/<uuid:location_id>/', tenant_location_update, name='tenant-location-update'),

    # Telegram settings
    path('tenants/<uuid:pk>/telegram/', tenant_telegram, name='tenant-telegram'),
]
