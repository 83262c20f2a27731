from django.contrib import admin
from .models import PurchaseRequest, PurchaseRequestItem, PurchaseRequestStatusHistory


class PurchaseRequestItemInline(admin.TabularInline):
    model = PurchaseRequestItem
    extra = 0
    raw_id_fields = ['item']


class PurchaseRequestStatusHistoryInline(admin.TabularInline):
    model = PurchaseRequestStatusHistory
    extra = 0
    readonly_fields = ['status', 'note', 'changed_by', 'created_at']


@admin.register(PurchaseRequest)
class PurchaseRequestAdmin(admin.ModelAdmin):
    list_display = ['pr_number', 'tenant', 'status', 'requested_by', 'approved_by', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['pr_number', 'notes']
    inlines = [PurchaseRequestItemInline, PurchaseRequestStatusHistoryInline]
