from django.urls import path
from .views import (
    category_list_create, category_detail, category_status, category_bulk_action,
    item_list_create, item_detail, item_bulk_action,
)

urlpatterns = [
    # Category endpoints
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/bulk-action/', category_bulk_action, name='category-bulk-action'),
    path('categories/<uuid:pk>/', category_detail, name='category-detail'),
    path('categories/<uuid:pk>/status/', category_status, name='category-status'),

    # Item endpoints
    path('items/', item_list_create, name='item-list-create'),
    path('items/bulk-action/', item_bulk_action, name='item-bulk-action'),
    path('items/<uuid:pk>/', item_detail, name='item-detail'),
]
