"""
Purchase Service Data Models

Pydantic models for purchase settlement: buyers, products, orders,
ledger/store outcomes and the request/response envelope of settle_purchase.
"""

import uuid

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ReserveOutcome(str, Enum):
    """Result of a conditional decrement against the ledger"""
    RESERVED = "reserved"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"


class RecordOutcome(str, Enum):
    """Result of an idempotent order insert"""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class PurchaseState(str, Enum):
    """Settlement state machine"""
    PENDING = "pending"
    RESERVED = "reserved"
    RECORDED = "recorded"
    REJECTED = "rejected"
    COMPENSATION_NEEDED = "compensation_needed"


class PurchaseOutcome(str, Enum):
    """Outcome taxonomy returned to callers"""
    SUCCESS = "success"
    INVALID_REQUEST = "invalid_request"
    BUYER_NOT_FOUND = "buyer_not_found"
    PRODUCT_NOT_FOUND = "product_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    TRANSIENT_FAILURE = "transient_failure"
    COMPENSATION_FAILURE = "compensation_failure"


class ReconciliationReason(str, Enum):
    """Why a reservation could not be settled or rolled back"""
    RELEASE_FAILED = "release_failed"
    RESERVE_OUTCOME_UNKNOWN = "reserve_outcome_unknown"


# Core Models

class Buyer(BaseModel):
    """Resolved buyer (read-only)"""
    model_config = ConfigDict(frozen=True)

    buyer_id: str
    name: str


class ProductKey(BaseModel):
    """Product name, optionally scoped to its owning company"""
    model_config = ConfigDict(frozen=True)

    company_name: Optional[str] = None
    product_name: str

    @property
    def is_scoped(self) -> bool:
        return bool(self.company_name)

    def __str__(self) -> str:
        if self.company_name:
            return f"{self.company_name}/{self.product_name}"
        return self.product_name


class Product(BaseModel):
    """Catalog product as seen by the purchase path"""
    company_name: str
    name: str
    quantity: int = Field(..., ge=0)
    price: Decimal = Decimal("0")
    rank: int = 0
    image: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> ProductKey:
        return ProductKey(company_name=self.company_name, product_name=self.name)


def new_order_id() -> str:
    """New order id, assigned before the insert"""
    return f"ord_{uuid.uuid4().hex[:16]}"


class Order(BaseModel):
    """Settled purchase (immutable, append-only)"""
    model_config = ConfigDict(frozen=True)

    order_id: str
    idempotency_key: str
    product_name: str
    company_name: str
    quantity: int = Field(..., gt=0)
    buyer_id: str
    buyer_name: str
    created_at: datetime

    def matches(self, buyer_id: str, key: ProductKey, quantity: int) -> bool:
        """True when this order was placed with the given arguments"""
        if self.buyer_id != buyer_id or self.quantity != quantity:
            return False
        if self.product_name != key.product_name:
            return False
        return not key.company_name or self.company_name == key.company_name


class ReservationResult(BaseModel):
    """Outcome of InventoryLedger.reserve"""
    outcome: ReserveOutcome
    remaining: Optional[int] = None
    available: Optional[int] = None

    @property
    def reserved(self) -> bool:
        return self.outcome == ReserveOutcome.RESERVED


class RecordResult(BaseModel):
    """Outcome of OrderStore.record_if_absent"""
    outcome: RecordOutcome
    order: Order

    @property
    def created(self) -> bool:
        return self.outcome == RecordOutcome.CREATED


class ReconciliationRecord(BaseModel):
    """Reservation that needs operator or automated reconciliation"""
    reconciliation_id: str
    idempotency_key: str
    company_name: str
    product_name: str
    quantity: int
    reason: ReconciliationReason
    details: Dict[str, Any] = {}
    created_at: datetime
    resolved_at: Optional[datetime] = None


# Request Models

class PurchaseRequest(BaseModel):
    """Settle purchase request"""
    buyer_id: str = Field(..., description="Buyer placing the order")
    product_name: str = Field(..., description="Product name")
    company_name: Optional[str] = Field(None, description="Company owning the product")
    quantity: StrictInt = Field(..., description="Units to purchase (positive integer)")
    idempotency_key: str = Field(..., description="Client token identifying this purchase attempt")

    @field_validator('buyer_id', 'product_name', 'idempotency_key', 'company_name', mode='before')
    @classmethod
    def strip_identifiers(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @property
    def product_key(self) -> ProductKey:
        return ProductKey(company_name=self.company_name or None, product_name=self.product_name)


class PurchaseBody(BaseModel):
    """HTTP body for POST /api/v1/purchase (key may come from a header instead)"""
    buyer_id: str
    product_name: str
    company_name: Optional[str] = None
    quantity: StrictInt
    idempotency_key: Optional[str] = None


class ResolveReconciliationRequest(BaseModel):
    """Operator note when closing a reconciliation record"""
    note: Optional[str] = Field(None, description="How the anomaly was resolved")


# Response Models

class PurchaseResponse(BaseModel):
    """Result of settle_purchase"""
    success: bool
    outcome: PurchaseOutcome
    state: PurchaseState
    order: Optional[Order] = None
    message: str
    error_code: Optional[str] = None
    replayed: bool = False


class StockResponse(BaseModel):
    """Live stock for a product"""
    company_name: str
    product_name: str
    quantity: int


class ReconciliationListResponse(BaseModel):
    """Open reconciliation records"""
    records: List[ReconciliationRecord]
    count: int

