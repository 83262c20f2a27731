"""Tenant-scoped item and category lookups"""
from django.db.models import Case, CharField, F, Value, When
from django.db.models.functions import Left, StrIndex

from backend.core.exceptions import ApiError
from backend.core.scoping import ITEM_TENANT_MARKER, is_item_owned_by_tenant, tenant_item_suffix
from .models import Category, Item


def scoped_display_name(field='name'):
    """Database expression for a scoped name with its tenant suffix cut off"""
    return Case(
        When(**{f'{field}__contains': ITEM_TENANT_MARKER},
             then=Left(field, StrIndex(field, Value(ITEM_TENANT_MARKER)) - 1)),
        default=F(field),
        output_field=CharField(),
    )


def tenant_items(tenant_id):
    if not tenant_id:
        return Item.objects.all()
    return Item.objects.filter(name__endswith=tenant_item_suffix(tenant_id))


def tenant_categories(tenant_id):
    if not tenant_id:
        return Category.objects.all()
    return Category.objects.filter(name__endswith=tenant_item_suffix(tenant_id))


def get_tenant_item(tenant_id, item_id, require_active=True):
    """
    Fetch an item for a tenant.

    404 ITEM_NOT_FOUND when missing, 403 when another tenant owns it,
    400 ITEM_INACTIVE when inactive and an active item is required.
    """
    item = Item.objects.select_related('category').filter(pk=item_id).first()
    if item is None:
        raise ApiError(404, 'ITEM_NOT_FOUND', 'Item not found.')
    if not is_item_owned_by_tenant(item.name, tenant_id):
        raise ApiError(403, 'FORBIDDEN', 'Item does not belong to the active tenant.')
    if require_active and not item.is_active:
        raise ApiError(400, 'ITEM_INACTIVE', 'Item is inactive.')
    return item


def get_tenant_category(tenant_id, category_id, status_code=404):
    category = Category.objects.filter(pk=category_id).first()
    if category is None or not is_item_owned_by_tenant(category.name, tenant_id):
        raise ApiError(status_code, 'CATEGORY_NOT_FOUND', 'Category not found.')
    return category
