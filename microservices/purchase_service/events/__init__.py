"""
Purchase Service Events Module

Exports all event-related functionality for purchase service
"""

from .models import (
    PurchaseSettledEvent,
    InventoryReleasedEvent,
    ReconciliationRequiredEvent,
)

from .publishers import (
    publish_purchase_settled,
    publish_inventory_released,
    publish_reconciliation_required,
)

__all__ = [
    # Event Models
    "PurchaseSettledEvent",
    "InventoryReleasedEvent",
    "ReconciliationRequiredEvent",
    # Publishers
    "publish_purchase_settled",
    "publish_inventory_released",
    "publish_reconciliation_required",
]
