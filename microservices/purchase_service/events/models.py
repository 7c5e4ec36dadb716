"""
Purchase Service Event Models

Pydantic models for events published by purchase service
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime


class PurchaseSettledEvent(BaseModel):
    """Event published when a purchase is recorded"""
    order_id: str
    idempotency_key: str
    buyer_id: str
    buyer_name: str
    company_name: str
    product_name: str
    quantity: int
    remaining_stock: Optional[int] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class InventoryReleasedEvent(BaseModel):
    """Event published when a reservation is given back"""
    idempotency_key: str
    company_name: str
    product_name: str
    quantity: int
    stock_after: Optional[int] = None
    reason: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ReconciliationRequiredEvent(BaseModel):
    """Event published when stock may be lost until reconciled"""
    reconciliation_id: Optional[str] = None
    idempotency_key: str
    company_name: str
    product_name: str
    quantity: int
    reason: str
    details: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)
