"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import (
    invalidate_dashboard_cache,
    invalidate_blacklist_cache,
    invalidate_drivers_cache,
)

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals for bulk operations.
    Invalidate manually after the block.
    """
    previous = is_suspended()
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = previous


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete], sender='orders.Order')
@receiver([post_save, post_delete], sender='orders.OrderItem')
def invalidate_orders_cache(sender, instance, **kwargs):
    """Dashboard figures are derived from orders"""
    if is_suspended():
        return
    invalidate_dashboard_cache()


@receiver([post_save, post_delete], sender='orders.BlacklistPhone')
def invalidate_blacklist(sender, instance, **kwargs):
    if is_suspended():
        return
    invalidate_blacklist_cache()


@receiver([post_save, post_delete], sender='drivers.Driver')
def invalidate_drivers(sender, instance, **kwargs):
    if is_suspended():
        return
    invalidate_drivers_cache()
    invalidate_dashboard_cache()
