from django.contrib import admin
from .models import Tenant, TenantMembership, TenantTelegramSetting


class TenantMembershipInline(admin.TabularInline):
    model = TenantMembership
    extra = 0
    fields = ['user', 'role', 'position', 'is_default', 'can_view', 'can_edit']
    raw_id_fields = ['user']


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'is_active', 'deleted_at', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['code', 'name']
    ordering = ['name']
    inlines = [TenantMembershipInline]


@admin.register(TenantMembership)
class TenantMembershipAdmin(admin.ModelAdmin):
    list_display = ['user', 'tenant', 'role', 'is_default', 'can_view', 'can_edit']
    list_filter = ['role', 'is_default', 'can_edit']
    search_fields = ['user__username', 'tenant__code']


@admin.register(TenantTelegramSetting)
class TenantTelegramSettingAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'is_enabled', 'chat_id', 'send_on_checklist_export', 'send_on_transaction_export']
    list_filter = ['is_enabled']
    exclude = ['bot_token']
