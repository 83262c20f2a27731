from django.urls import path
from .views import (
    purchase_request_list_create, purchase_request_detail,
    purchase_request_status, purchase_request_bulk_status,
)

urlpatterns = [
    path('purchase-requests/', purchase_request_list_create, name='purchase-request-list-create'),
    path('purchase-requests/bulk-status/', purchase_request_bulk_status, name='purchase-request-bulk-status'),
    path('purchase-requests/<uuid:pk>/', purchase_request_detail, name='purchase-request-detail'),
    path('purchase-requests/<uuid:pk>/status/', purchase_request_status, name='purchase-request-status'),
]
