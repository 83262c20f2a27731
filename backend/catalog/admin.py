from django.contrib import admin
from .models import Category, Item


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'item_type', 'unit', 'min_stock', 'is_active']
    list_filter = ['item_type', 'is_active', 'category']
    search_fields = ['name', 'sku']
    ordering = ['name']
    raw_id_fields = ['category']
