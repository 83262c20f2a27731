"""
URL configuration for the tenant inventory backend.

Every API module is mounted under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include
from backend.core.views import health

admin.site.site_header = "Tenant Inventory Admin Panel"
admin.site.site_title = "Tenant Inventory Admin Portal"
admin.site.index_title = "Inventory, checklists and purchase requests"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health, name='health'),
    path('api/v1/health/', health, name='api-health'),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.tenants.urls')),
    path('api/v1/', include('backend.locations.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.inventory.urls')),
    path('api/v1/', include('backend.checklists.urls')),
    path('api/v1/', include('backend.purchasing.urls')),
    path('api/v1/', include('backend.dashboard.urls')),
]

handler404 = 'backend.core.exceptions.not_found_view'
handler500 = 'backend.core.exceptions.server_error_view'
