"""
Purchase Service Event Publishers

Functions to publish events from purchase service
"""

import logging
from typing import Optional, Dict, Any

from core.nats_client import Event, EventType, ServiceSource
from .models import (
    PurchaseSettledEvent,
    InventoryReleasedEvent,
    ReconciliationRequiredEvent,
)

logger = logging.getLogger(__name__)


async def publish_purchase_settled(
    event_bus,
    order_id: str,
    idempotency_key: str,
    buyer_id: str,
    buyer_name: str,
    company_name: str,
    product_name: str,
    quantity: int,
    remaining_stock: Optional[int] = None,
) -> bool:
    """Publish purchase.settled event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping purchase.settled event")
        return False

    try:
        event_data = PurchaseSettledEvent(
            order_id=order_id,
            idempotency_key=idempotency_key,
            buyer_id=buyer_id,
            buyer_name=buyer_name,
            company_name=company_name,
            product_name=product_name,
            quantity=quantity,
            remaining_stock=remaining_stock,
        )

        event = Event(
            event_type=EventType.PURCHASE_SETTLED,
            source=ServiceSource.PURCHASE_SERVICE,
            data=event_data.model_dump(mode='json'),
            subject=order_id,
        )

        published = await event_bus.publish_event(event)
        if published is False:
            logger.warning(f"purchase.settled event for order {order_id} was not accepted")
            return False
        logger.info(f"Published purchase.settled event for order {order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish purchase.settled event: {e}")
        return False


async def publish_inventory_released(
    event_bus,
    idempotency_key: str,
    company_name: str,
    product_name: str,
    quantity: int,
    reason: str,
    stock_after: Optional[int] = None,
) -> bool:
    """Publish inventory.released event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping inventory.released event")
        return False

    try:
        event_data = InventoryReleasedEvent(
            idempotency_key=idempotency_key,
            company_name=company_name,
            product_name=product_name,
            quantity=quantity,
            stock_after=stock_after,
            reason=reason,
        )

        event = Event(
            event_type=EventType.INVENTORY_RELEASED,
            source=ServiceSource.PURCHASE_SERVICE,
            data=event_data.model_dump(mode='json'),
            subject=f"{company_name}/{product_name}",
        )

        published = await event_bus.publish_event(event)
        if published is False:
            logger.warning(f"inventory.released event for {idempotency_key} was not accepted")
            return False
        logger.info(f"Published inventory.released event for {idempotency_key}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish inventory.released event: {e}")
        return False


async def publish_reconciliation_required(
    event_bus,
    idempotency_key: str,
    company_name: str,
    product_name: str,
    quantity: int,
    reason: str,
    reconciliation_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> bool:
    """Publish purchase.reconciliation_required event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping purchase.reconciliation_required event")
        return False

    try:
        event_data = ReconciliationRequiredEvent(
            reconciliation_id=reconciliation_id,
            idempotency_key=idempotency_key,
            company_name=company_name,
            product_name=product_name,
            quantity=quantity,
            reason=reason,
            details=details or {},
        )

        event = Event(
            event_type=EventType.PURCHASE_RECONCILIATION_REQUIRED,
            source=ServiceSource.PURCHASE_SERVICE,
            data=event_data.model_dump(mode='json'),
            subject=idempotency_key,
        )

        published = await event_bus.publish_event(event)
        if published is False:
            logger.warning(f"purchase.reconciliation_required event for {idempotency_key} was not accepted")
            return False
        logger.info(f"Published purchase.reconciliation_required event for {idempotency_key}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish purchase.reconciliation_required event: {e}")
        return False
