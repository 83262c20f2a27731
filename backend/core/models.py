import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Application user with a global role"""
    ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
    ROLE_ADMIN = 'ADMIN'
    ROLE_TENANT_ADMIN = 'TENANT_ADMIN'
    ROLE_KOORD_DAPUR = 'KOORD_DAPUR'
    ROLE_KOORD_KEBERSIHAN = 'KOORD_KEBERSIHAN'
    ROLE_KOORD_LAPANGAN = 'KOORD_LAPANGAN'
    ROLE_STAFF = 'STAFF'

    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Admin'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_TENANT_ADMIN, 'Tenant Admin'),
        (ROLE_KOORD_DAPUR, 'Koordinator Dapur'),
        (ROLE_KOORD_KEBERSIHAN, 'Koordinator Kebersihan'),
        (ROLE_KOORD_LAPANGAN, 'Koordinator Lapangan'),
        (ROLE_STAFF, 'Staff'),
    ]

    ADMIN_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_TENANT_ADMIN)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default=ROLE_STAFF)
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        ordering = ['username']

    def __str__(self):
        return self.name or self.username

    @property
    def is_super_admin(self):
        return self.role == self.ROLE_SUPER_ADMIN

    @property
    def is_admin_role(self):
        return self.role in self.ADMIN_ROLES

    @property
    def display_name(self):
        return self.name or self.username


class AuditLog(models.Model):
    """Audit trail of mutations, scoped to a tenant when one is known"""
    ACTION_CREATE = 'CREATE'
    ACTION_UPDATE = 'UPDATE'
    ACTION_DELETE = 'DELETE'
    ACTION_STATUS_UPDATE = 'STATUS_UPDATE'
    ACTION_BULK_ACTION = 'BULK_ACTION'
    ACTION_BULK_ADJUST = 'BULK_ADJUST'
    ACTION_SUBMIT = 'SUBMIT'
    ACTION_SEND_TELEGRAM = 'SEND_TELEGRAM'
    ACTION_LOGIN = 'LOGIN'
    ACTION_CHANGE_PASSWORD = 'CHANGE_PASSWORD'

    ACTION_CHOICES = [
        (ACTION_CREATE, 'Create'),
        (ACTION_UPDATE, 'Update'),
        (ACTION_DELETE, 'Delete'),
        (ACTION_STATUS_UPDATE, 'Status Update'),
        (ACTION_BULK_ACTION, 'Bulk Action'),
        (ACTION_BULK_ADJUST, 'Bulk Stock Adjustment'),
        (ACTION_SUBMIT, 'Submit'),
        (ACTION_SEND_TELEGRAM, 'Sent to Telegram'),
        (ACTION_LOGIN, 'Login'),
        (ACTION_CHANGE_PASSWORD, 'Password Changed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    entity_type = models.CharField(max_length=100)
    entity_id = models.CharField(max_length=100)
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    diff = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['tenant', '-created_at'], name='idx_audit_tenant_created'),
            models.Index(fields=['entity_type'], name='idx_audit_entity_type'),
            models.Index(fields=['action'], name='idx_audit_action'),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.action} ({self.entity_id})"
