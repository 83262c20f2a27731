import uuid

from django.conf import settings
from django.db import models


class PurchaseRequest(models.Model):
    """Purchase request raised by tenant staff and approved by admins"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_SUBMITTED = 'SUBMITTED'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_ORDERED = 'ORDERED'
    STATUS_RECEIVED = 'RECEIVED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_ORDERED, 'Ordered'),
        (STATUS_RECEIVED, 'Received'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    ALLOWED_TRANSITIONS = {
        STATUS_DRAFT: (STATUS_SUBMITTED, STATUS_CANCELLED),
        STATUS_SUBMITTED: (STATUS_APPROVED, STATUS_REJECTED, STATUS_CANCELLED),
        STATUS_APPROVED: (STATUS_ORDERED, STATUS_CANCELLED),
        STATUS_ORDERED: (STATUS_RECEIVED,),
        STATUS_REJECTED: (),
        STATUS_RECEIVED: (),
        STATUS_CANCELLED: (),
    }

    ACTIVE_STATUSES = (STATUS_SUBMITTED, STATUS_APPROVED, STATUS_ORDERED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pr_number = models.CharField(max_length=50, unique=True)
    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='purchase_requests')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    notes = models.TextField(blank=True)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='purchase_requests'
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_purchase_requests'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.pr_number

    def can_transition_to(self, status):
        return status in self.ALLOWED_TRANSITIONS.get(self.status, ())

    def get_total(self):
        """Sum of qty x unit price over all lines"""
        return sum((item.get_line_total() for item in self.items.all()), 0)

    class Meta:
        db_table = 'purchase_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='idx_pr_tenant_status'),
            models.Index(fields=['-created_at'], name='idx_pr_created'),
        ]


class PurchaseRequestItem(models.Model):
    """Purchase request line; item link is optional for free-text lines"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    purchase_request = models.ForeignKey(PurchaseRequest, on_delete=models.CASCADE, related_name='items')
    item = models.ForeignKey(
        'catalog.Item', on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_request_items'
    )
    item_name = models.CharField(max_length=255)
    qty = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    def get_line_total(self):
        return self.qty * self.unit_price

    class Meta:
        db_table = 'purchase_request_items'
        ordering = ['item_name']


class PurchaseRequestStatusHistory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    purchase_request = models.ForeignKey(PurchaseRequest, on_delete=models.CASCADE, related_name='history')
    status = models.CharField(max_length=20, choices=PurchaseRequest.STATUS_CHOICES)
    note = models.CharField(max_length=255, blank=True)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='purchase_request_changes'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'purchase_request_status_history'
        ordering = ['created_at']
        verbose_name_plural = 'Purchase request status history'
