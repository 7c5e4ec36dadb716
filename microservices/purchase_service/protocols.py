"""
Purchase Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from .models import (
    Buyer,
    Order,
    Product,
    ProductKey,
    ReconciliationReason,
    ReconciliationRecord,
    RecordResult,
    ReservationResult,
)


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class PurchaseServiceError(Exception):
    """Base exception for purchase service errors"""
    pass


class TransientFailureError(PurchaseServiceError):
    """Infrastructure failure; retrying the whole purchase is safe"""
    pass


class TransientStoreError(TransientFailureError):
    """Store unreachable or dropped the connection"""
    pass


class StoreOutcomeUnknownError(TransientStoreError):
    """Connection lost while a write was in flight; it may have committed"""
    pass


class StoreTimeoutError(StoreOutcomeUnknownError):
    """Store call exceeded its time budget; the write may or may not have committed"""
    pass


class ResolverUnavailableError(TransientFailureError):
    """Identity or catalog lookup could not be answered"""
    pass


class AmbiguousProductError(PurchaseServiceError):
    """Unscoped product name matches products of several companies"""

    def __init__(self, product_name: str, companies: List[str]):
        self.product_name = product_name
        self.companies = companies
        super().__init__(
            f"Product name '{product_name}' is carried by more than one company; "
            f"company_name is required"
        )


class ReconciliationNotFoundError(PurchaseServiceError):
    """Reconciliation record not found"""
    pass


class ReconciliationUnavailableError(PurchaseServiceError):
    """No reconciliation store is configured"""
    pass


# ============================================================================
# Store Protocols
# ============================================================================

@runtime_checkable
class InventoryLedgerProtocol(Protocol):
    """
    Interface for the inventory ledger.

    The only writer of product quantities. ``reserve`` must be a single
    atomic conditional write against the store.
    """

    async def reserve(self, product_key: ProductKey, quantity: int) -> ReservationResult:
        """Decrement stock by quantity only if at least quantity is available"""
        ...

    async def release(self, product_key: ProductKey, quantity: int) -> Optional[int]:
        """Give quantity back; returns the new stock or None if the product is gone"""
        ...

    async def get_stock(self, product_key: ProductKey) -> Optional[int]:
        """Current stock, read straight from the store"""
        ...


@runtime_checkable
class OrderStoreProtocol(Protocol):
    """Interface for the append-only order store"""

    async def record_if_absent(self, idempotency_key: str, order_fields: Dict[str, Any]) -> RecordResult:
        """Insert the order unless one exists for idempotency_key"""
        ...

    async def get_order_by_idempotency_key(self, idempotency_key: str) -> Optional[Order]:
        """Get order by idempotency key"""
        ...


@runtime_checkable
class ReconciliationStoreProtocol(Protocol):
    """Interface for the reconciliation record store"""

    async def record(
        self,
        idempotency_key: str,
        product_key: ProductKey,
        quantity: int,
        reason: ReconciliationReason,
        details: Optional[Dict[str, Any]] = None,
    ) -> ReconciliationRecord:
        """Persist a reconciliation-required anomaly"""
        ...

    async def list_open(self, limit: int = 100) -> List[ReconciliationRecord]:
        """Records not yet resolved, oldest first"""
        ...

    async def resolve(self, reconciliation_id: str, note: Optional[str] = None) -> ReconciliationRecord:
        """Mark a record resolved"""
        ...


# ============================================================================
# Resolver Protocols
# ============================================================================

@runtime_checkable
class IdentityResolverProtocol(Protocol):
    """Interface for buyer lookup (account_service)"""

    async def resolve_buyer(self, buyer_id: str) -> Optional[Buyer]:
        """Resolve buyer; None when the buyer does not exist"""
        ...


@runtime_checkable
class CatalogResolverProtocol(Protocol):
    """Interface for product lookup"""

    async def resolve_product(self, product_key: ProductKey) -> Optional[Product]:
        """Resolve product; None when it does not exist"""
        ...


# ============================================================================
# Event Bus Protocol
# ============================================================================

@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event"""
        ...
