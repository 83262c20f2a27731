import uuid

from django.core.validators import MinValueValidator
from django.db import models

from backend.core.scoping import (
    category_type_from_name,
    display_category_name,
    from_tenant_scoped_item_name,
    ITEM_TYPE_ASSET,
    ITEM_TYPE_CONSUMABLE,
    ITEM_TYPE_GAS,
)

ITEM_TYPE_CHOICES = [
    (ITEM_TYPE_CONSUMABLE, 'Consumable'),
    (ITEM_TYPE_ASSET, 'Asset'),
    (ITEM_TYPE_GAS, 'Gas / Refill'),
]


class Category(models.Model):
    """Item category, stored as ``<TYPE> - <name>`` plus the tenant suffix"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def display_name(self):
        return display_category_name(self.name)

    @property
    def item_type(self):
        return category_type_from_name(self.name)

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'Categories'
        ordering = ['name']


class Item(models.Model):
    """Stock keeping item. The name carries the owning tenant suffix."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    sku = models.CharField(max_length=100, unique=True)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='items')
    item_type = models.CharField(max_length=20, choices=ITEM_TYPE_CHOICES, default=ITEM_TYPE_CONSUMABLE)
    unit = models.CharField(max_length=30)
    min_stock = models.DecimalField(max_digits=12, decimal_places=3, default=0, validators=[MinValueValidator(0)])
    reorder_qty = models.DecimalField(max_digits=12, decimal_places=3, default=0, validators=[MinValueValidator(0)])
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def display_name(self):
        return from_tenant_scoped_item_name(self.name)

    class Meta:
        db_table = 'items'
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active'], name='idx_item_active'),
            models.Index(fields=['item_type'], name='idx_item_type'),
        ]
