import logging

from django.db import transaction
from django.db.models import Count
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.exceptions import ApiError
from backend.core.models import AuditLog
from backend.core.permissions import require_tenant_permission
from backend.core.scoping import to_category_name, to_tenant_scoped_item_name
from backend.core.utils import create_audit_log
from backend.inventory.services import ensure_stock_rows_for_item
from .filters import CategoryFilter, ItemFilter
from .models import Category, Item
from .serializers import (
    CategoryBulkActionSerializer,
    CategorySerializer,
    CategoryStatusSerializer,
    CategoryWriteSerializer,
    ItemBulkActionSerializer,
    ItemCreateSerializer,
    ItemSerializer,
    ItemUpdateSerializer,
)
from .services import get_tenant_category, tenant_categories, tenant_items

logger = logging.getLogger('backend.catalog')


def _tenant_category_or_404(tenant, pk):
    category = tenant_categories(tenant.id).annotate(annotated_item_count=Count('items')).filter(pk=pk).first()
    if category is None:
        raise ApiError(404, 'CATEGORY_NOT_FOUND', 'Category not found.')
    return category


def _tenant_item_or_404(tenant, pk):
    item = tenant_items(tenant.id).select_related('category').filter(pk=pk).first()
    if item is None:
        raise ApiError(404, 'ITEM_NOT_FOUND', 'Item not found.')
    return item


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def category_list_create(request):
    """List tenant categories or create a new category"""
    if request.method == 'GET':
        tenant = require_tenant_permission(request, 'view')
        queryset = tenant_categories(tenant.id).annotate(annotated_item_count=Count('items'))
        filterset = CategoryFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            raise ApiError(400, 'VALIDATION_ERROR', 'Invalid filters.', details=filterset.errors)
        return Response(CategorySerializer(filterset.qs, many=True).data)

    tenant = require_tenant_permission(request, 'edit')
    serializer = CategoryWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    scoped_name = to_category_name(data['type'], data['name'], tenant.id)
    if Category.objects.filter(name=scoped_name).exists():
        raise ApiError(409, 'CATEGORY_EXISTS', f"Category '{data['name']}' already exists.")

    category = Category.objects.create(name=scoped_name, is_active=data.get('is_active', True))
    create_audit_log(
        request=request, action=AuditLog.ACTION_CREATE, entity_type='categories',
        entity_id=category.id, tenant_id=tenant.id,
        diff={'name': data['name'], 'type': data['type']},
    )
    logger.info(f"Category '{category.name}' created by {request.user.username}")
    return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def category_detail(request, pk):
    """Retrieve, rename/retype or delete a category"""
    if request.method == 'GET':
        tenant = require_tenant_permission(request, 'view')
        return Response(CategorySerializer(_tenant_category_or_404(tenant, pk)).data)

    tenant = require_tenant_permission(request, 'edit')
    category = _tenant_category_or_404(tenant, pk)

    if request.method == 'DELETE':
        if category.annotated_item_count:
            raise ApiError(
                409, 'CATEGORY_IN_USE', 'Category is used by items and cannot be deleted.',
                details={'itemCount': category.annotated_item_count},
            )
        display_name = category.display_name
        category.delete()
        create_audit_log(
            request=request, action=AuditLog.ACTION_DELETE, entity_type='categories',
            entity_id=pk, tenant_id=tenant.id, diff={'name': display_name},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = CategoryWriteSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    old_name, old_type = category.display_name, category.item_type
    new_name = data.get('name', old_name)
    new_type = data.get('type', old_type)
    scoped_name = to_category_name(new_type, new_name, tenant.id)
    if Category.objects.filter(name=scoped_name).exclude(pk=category.pk).exists():
        raise ApiError(409, 'CATEGORY_EXISTS', f"Category '{new_name}' already exists.")

    category.name = scoped_name
    if 'is_active' in request.data:
        category.is_active = data['is_active']
    category.save(update_fields=['name', 'is_active', 'updated_at'])

    create_audit_log(
        request=request, action=AuditLog.ACTION_UPDATE, entity_type='categories',
        entity_id=category.id, tenant_id=tenant.id,
        diff={'oldName': old_name, 'newName': new_name, 'oldType': old_type, 'newType': new_type},
    )
    return Response(CategorySerializer(category).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def category_status(request, pk):
    tenant = require_tenant_permission(request, 'edit')
    category = _tenant_category_or_404(tenant, pk)
    serializer = CategoryStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    previous = category.is_active
    category.is_active = serializer.validated_data['is_active']
    category.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(
        request=request, action=AuditLog.ACTION_STATUS_UPDATE, entity_type='categories',
        entity_id=category.id, tenant_id=tenant.id,
        diff={'isActive': {'before': previous, 'after': category.is_active}},
    )
    return Response(CategorySerializer(category).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def category_bulk_action(request):
    """Activate, deactivate or delete several categories; in-use ones are not deleted"""
    tenant = require_tenant_permission(request, 'edit')
    serializer = CategoryBulkActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    action = serializer.validated_data['action']
    ids = list(dict.fromkeys(serializer.validated_data['ids']))

    categories = list(
        tenant_categories(tenant.id).annotate(annotated_item_count=Count('items')).filter(pk__in=ids)
    )
    if not categories:
        raise ApiError(404, 'CATEGORY_NOT_FOUND', 'No categories found for the given ids.')

    updated = []
    skipped = []
    with transaction.atomic():
        for category in categories:
            if action == 'delete':
                if category.annotated_item_count:
                    skipped.append({'id': str(category.id), 'name': category.display_name, 'reason': 'CATEGORY_IN_USE'})
                    continue
                category.delete()
            else:
                category.is_active = action == 'activate'
                category.save(update_fields=['is_active', 'updated_at'])
            updated.append(str(category.id))

    create_audit_log(
        request=request, action=AuditLog.ACTION_BULK_ACTION, entity_type='categories',
        entity_id='bulk_action', tenant_id=tenant.id,
        diff={'action': action, 'ids': updated, 'skipped': [row['id'] for row in skipped]},
    )
    return Response({'code': 'CATEGORY_BULK_ACTION_COMPLETED', 'action': action,
                     'count': len(updated), 'updated': updated, 'skipped': skipped})


# Item views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def item_list_create(request):
    """List tenant items or create a new item"""
    if request.method == 'GET':
        tenant = require_tenant_permission(request, 'view')
        queryset = tenant_items(tenant.id).select_related('category')
        filterset = ItemFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            raise ApiError(400, 'VALIDATION_ERROR', 'Invalid filters.', details=filterset.errors)
        return Response(ItemSerializer(filterset.qs, many=True).data)

    tenant = require_tenant_permission(request, 'edit')
    serializer = ItemCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if Item.objects.filter(sku__iexact=data['sku']).exists():
        raise ApiError(409, 'ITEM_EXISTS', f"Item with SKU '{data['sku']}' already exists.")
    scoped_name = to_tenant_scoped_item_name(data['name'], tenant.id)
    if Item.objects.filter(name=scoped_name).exists():
        raise ApiError(409, 'ITEM_EXISTS', f"Item '{data['name']}' already exists.")
    category = get_tenant_category(tenant.id, data['category_id'], status_code=400)

    with transaction.atomic():
        item = Item.objects.create(
            name=scoped_name,
            sku=data['sku'],
            category=category,
            item_type=data.get('type') or category.item_type,
            unit=data['unit'].strip(),
            min_stock=data['min_stock'],
            reorder_qty=data['reorder_qty'],
            is_active=data.get('is_active', True),
        )
        ensure_stock_rows_for_item(tenant, item)

    create_audit_log(
        request=request, action=AuditLog.ACTION_CREATE, entity_type='items',
        entity_id=item.id, tenant_id=tenant.id,
        diff={'name': data['name'], 'sku': item.sku, 'categoryId': str(category.id), 'type': item.item_type},
    )
    logger.info(f"Item '{item.name}' created by {request.user.username}")
    return Response(ItemSerializer(item).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def item_detail(request, pk):
    """Retrieve or update an item"""
    if request.method == 'GET':
        tenant = require_tenant_permission(request, 'view')
        return Response(ItemSerializer(_tenant_item_or_404(tenant, pk)).data)

    tenant = require_tenant_permission(request, 'edit')
    item = _tenant_item_or_404(tenant, pk)
    serializer = ItemUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    changes = {}
    if 'name' in data and data['name'] != item.display_name:
        scoped_name = to_tenant_scoped_item_name(data['name'], tenant.id)
        if Item.objects.filter(name=scoped_name).exclude(pk=item.pk).exists():
            raise ApiError(409, 'ITEM_EXISTS', f"Item '{data['name']}' already exists.")
        changes['name'] = {'before': item.display_name, 'after': data['name']}
        item.name = scoped_name
    if 'category_id' in data and data['category_id'] != item.category_id:
        category = get_tenant_category(tenant.id, data['category_id'], status_code=400)
        changes['categoryId'] = {'before': str(item.category_id), 'after': str(category.id)}
        item.category = category

    field_map = {'type': 'item_type', 'unit': 'unit', 'min_stock': 'min_stock',
                 'reorder_qty': 'reorder_qty', 'is_active': 'is_active'}
    for key, field in field_map.items():
        if key in data and getattr(item, field) != data[key]:
            changes[field] = {'before': getattr(item, field), 'after': data[key]}
            setattr(item, field, data[key])

    if changes:
        item.save()
        create_audit_log(
            request=request, action=AuditLog.ACTION_UPDATE, entity_type='items',
            entity_id=item.id, tenant_id=tenant.id, diff=changes,
        )
    return Response(ItemSerializer(item).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_bulk_action(request):
    """Bulk activate, deactivate, delete or re-categorise items"""
    tenant = require_tenant_permission(request, 'edit')
    serializer = ItemBulkActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    action = serializer.validated_data['action']
    ids = list(dict.fromkeys(serializer.validated_data['ids']))

    items = list(
        tenant_items(tenant.id).annotate(transaction_count=Count('transactions')).filter(pk__in=ids)
    )
    if not items:
        raise ApiError(404, 'ITEM_NOT_FOUND', 'No items found for the given ids.')

    category = None
    if action == 'set_category':
        category = get_tenant_category(tenant.id, serializer.validated_data['category_id'], status_code=400)

    updated = []
    skipped = []
    with transaction.atomic():
        for item in items:
            if action == 'delete':
                if item.transaction_count:
                    skipped.append({'id': str(item.id), 'name': item.display_name, 'reason': 'ITEM_HAS_TRANSACTIONS'})
                    continue
                item.delete()
            elif action == 'set_category':
                item.category = category
                item.save(update_fields=['category', 'updated_at'])
            else:
                item.is_active = action == 'activate'
                item.save(update_fields=['is_active', 'updated_at'])
            updated.append(str(item.id))

    diff = {'action': action, 'ids': updated, 'skipped': [row['id'] for row in skipped]}
    if category is not None:
        diff['categoryId'] = str(category.id)
    create_audit_log(
        request=request, action=AuditLog.ACTION_BULK_ACTION, entity_type='items',
        entity_id='bulk_action', tenant_id=tenant.id, diff=diff,
    )
    logger.info(f"Bulk item action {action} on {len(updated)} items by {request.user.username}")
    return Response({'code': 'ITEM_BULK_ACTION_COMPLETED', 'action': action,
                     'count': len(updated), 'updated': updated, 'skipped': skipped})
