"""
Cache invalidation signals
Automatically invalidate dashboard aggregates when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .cache_utils import bump_dashboard_version

logger = logging.getLogger(__name__)

DASHBOARD_SOURCE_MODELS = {'Stock', 'Item', 'ChecklistRun', 'PurchaseRequest'}


@receiver([post_save, post_delete])
def invalidate_dashboard_cache(sender, instance, **kwargs):
    """Invalidate dashboard aggregates when stock, items, runs or requests change"""
    if sender.__name__ not in DASHBOARD_SOURCE_MODELS:
        return
    # After commit so a concurrent read cannot re-cache stale data
    transaction.on_commit(bump_dashboard_version)
