from django.contrib import admin
from .models import Stock, InventoryTransaction


@admin.register(Stock)
class StockAdmin(admin.ModelAdmin):
    list_display = ['item', 'location', 'qty', 'updated_at']
    search_fields = ['item__name', 'item__sku', 'location__name']
    raw_id_fields = ['item', 'location']


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    list_display = ['trx_type', 'item', 'from_location', 'to_location', 'qty', 'created_by', 'created_at']
    list_filter = ['trx_type', 'created_at']
    search_fields = ['item__name', 'reason']
    raw_id_fields = ['item', 'from_location', 'to_location', 'created_by']
    readonly_fields = ['created_at']
