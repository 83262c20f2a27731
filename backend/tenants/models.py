import uuid

from django.conf import settings
from django.db import models


class Tenant(models.Model):
    """Operational site or org unit owning items, locations and requests"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    class Meta:
        db_table = 'tenants'
        ordering = ['name']


class TenantMembership(models.Model):
    """Link between a user and a tenant with per-tenant role and flags"""
    TENANT_ROLE_CHOICES = [
        ('TENANT_ADMIN', 'Tenant Admin'),
        ('KOORD_DAPUR', 'Koordinator Dapur'),
        ('KOORD_KEBERSIHAN', 'Koordinator Kebersihan'),
        ('KOORD_LAPANGAN', 'Koordinator Lapangan'),
        ('STAFF', 'Staff'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='memberships')
    role = models.CharField(max_length=30, choices=TENANT_ROLE_CHOICES, default='STAFF')
    position = models.CharField(max_length=100, blank=True)
    is_default = models.BooleanField(default=False)
    can_view = models.BooleanField(default=True)
    can_edit = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user} @ {self.tenant.code}"

    class Meta:
        db_table = 'tenant_memberships'
        ordering = ['-is_default', 'created_at']
        unique_together = [['tenant', 'user']]


class TenantTelegramSetting(models.Model):
    """Per-tenant Telegram bot used for PDF report delivery"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.OneToOneField(Tenant, on_delete=models.CASCADE, related_name='telegram_setting')
    is_enabled = models.BooleanField(default=False)
    bot_token = models.CharField(max_length=255, blank=True)
    chat_id = models.CharField(max_length=100, blank=True)
    send_on_checklist_export = models.BooleanField(default=True)
    send_on_transaction_export = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Telegram settings for {self.tenant.code}"

    @property
    def is_configured(self):
        return bool(self.is_enabled and self.bot_token and self.chat_id)

    class Meta:
        db_table = 'tenant_telegram_settings'
