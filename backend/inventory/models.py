import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q


class Stock(models.Model):
    """Quantity of one item at one location; never negative"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey('catalog.Item', on_delete=models.CASCADE, related_name='stocks')
    location = models.ForeignKey('locations.Location', on_delete=models.CASCADE, related_name='stocks')
    qty = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.item.name} @ {self.location.name}: {self.qty}"

    class Meta:
        db_table = 'stocks'
        unique_together = [['item', 'location']]
        constraints = [
            models.CheckConstraint(check=Q(qty__gte=0), name='stock_qty_non_negative'),
        ]
        indexes = [
            models.Index(fields=['location', 'item'], name='idx_stock_location_item'),
        ]


class InventoryTransaction(models.Model):
    """Stock movement record"""
    TYPE_IN = 'IN'
    TYPE_OUT = 'OUT'
    TYPE_TRANSFER = 'TRANSFER'
    TYPE_ADJUST = 'ADJUST'

    TYPE_CHOICES = [
        (TYPE_IN, 'Stock In'),
        (TYPE_OUT, 'Stock Out'),
        (TYPE_TRANSFER, 'Transfer'),
        (TYPE_ADJUST, 'Adjustment'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    trx_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    item = models.ForeignKey('catalog.Item', on_delete=models.PROTECT, related_name='transactions')
    from_location = models.ForeignKey(
        'locations.Location', on_delete=models.PROTECT, null=True, blank=True, related_name='outgoing_transactions'
    )
    to_location = models.ForeignKey(
        'locations.Location', on_delete=models.PROTECT, null=True, blank=True, related_name='incoming_transactions'
    )
    qty = models.DecimalField(max_digits=12, decimal_places=3)
    reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='inventory_transactions'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.trx_type} {self.qty} x {self.item.name}"

    class Meta:
        db_table = 'inventory_transactions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_trx_created'),
            models.Index(fields=['trx_type'], name='idx_trx_type'),
        ]
