"""
Purchase Service Business Logic

PurchaseCoordinator sequences validation, lookups, reservation and order
recording as one unit of work and owns the rollback policy.

State machine:
    PENDING -> RESERVED -> RECORDED            (success)
    PENDING -> REJECTED                        (no side effects)
    PENDING -> RESERVED -> REJECTED            (reservation released)
    PENDING -> RESERVED -> COMPENSATION_NEEDED (flagged for reconciliation)
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .models import (
    Buyer,
    Order,
    Product,
    ProductKey,
    PurchaseOutcome,
    PurchaseRequest,
    PurchaseResponse,
    PurchaseState,
    ReconciliationReason,
    ReconciliationRecord,
    RecordOutcome,
    ReserveOutcome,
    new_order_id,
)
from .protocols import (
    AmbiguousProductError,
    CatalogResolverProtocol,
    EventBusProtocol,
    IdentityResolverProtocol,
    InventoryLedgerProtocol,
    OrderStoreProtocol,
    ReconciliationStoreProtocol,
    ReconciliationUnavailableError,
    StoreOutcomeUnknownError,
    StoreTimeoutError,
    TransientFailureError,
)
from .events.publishers import (
    publish_inventory_released,
    publish_purchase_settled,
    publish_reconciliation_required,
)

logger = logging.getLogger(__name__)

MAX_IDEMPOTENCY_KEY_LENGTH = 255


def _retryable_release_error(error: BaseException) -> bool:
    # A release whose outcome is unknown may have applied; retrying it could return stock twice
    return isinstance(error, TransientFailureError) and not isinstance(error, StoreOutcomeUnknownError)


class PurchaseCoordinator:
    """
    Settles purchases against the inventory ledger and the order store.

    Holds no quantities of its own: every stock decision is made by the
    ledger's conditional write, so any number of coordinators (in one process
    or many) can run against the same store.
    """

    def __init__(
        self,
        ledger: InventoryLedgerProtocol,
        order_store: OrderStoreProtocol,
        identity_resolver: IdentityResolverProtocol,
        catalog_resolver: CatalogResolverProtocol,
        reconciliation_store: Optional[ReconciliationStoreProtocol] = None,
        event_bus: Optional[EventBusProtocol] = None,
        store_timeout_seconds: float = 5.0,
        release_max_attempts: int = 3,
        release_backoff_seconds: float = 0.2,
    ):
        """
        Initialize Purchase Coordinator

        Args:
            ledger: Inventory ledger (only writer of stock)
            order_store: Append-only order store
            identity_resolver: Buyer lookup
            catalog_resolver: Product lookup
            reconciliation_store: Where unrecoverable reservations are recorded
            event_bus: NATS event bus instance (optional)
            store_timeout_seconds: Upper bound for every store/resolver call
            release_max_attempts: Attempts for a compensating release
            release_backoff_seconds: Base delay between release attempts
        """
        self.ledger = ledger
        self.order_store = order_store
        self.identity_resolver = identity_resolver
        self.catalog_resolver = catalog_resolver
        self.reconciliation_store = reconciliation_store
        self.event_bus = event_bus

        self.store_timeout_seconds = store_timeout_seconds
        self.release_max_attempts = max(1, release_max_attempts)
        self.release_backoff_seconds = release_backoff_seconds

        # Reserve/record runs that must finish even if their caller goes away
        self._inflight: Set[asyncio.Task] = set()

        logger.info("PurchaseCoordinator initialized")

    # ==================== Settlement ====================

    async def settle_purchase(self, request: PurchaseRequest) -> PurchaseResponse:
        """
        Settle one purchase attempt.

        Business outcomes (not found, insufficient stock, transient failures)
        come back as a PurchaseResponse. Only unexpected faults raise.
        Cancelling the caller before the reservation abandons the request;
        once the reservation starts it runs to RECORDED or COMPENSATION_NEEDED.
        """
        problem = self._validate(request)
        if problem:
            logger.info(f"Rejected purchase {request.idempotency_key!r}: {problem}")
            return self._rejected(PurchaseOutcome.INVALID_REQUEST, problem)

        key = request.idempotency_key
        product_key = request.product_key

        try:
            existing = await self._bounded(
                "order lookup", self.order_store.get_order_by_idempotency_key(key)
            )
            if existing is not None:
                return self._replay(existing, request)

            buyer = await self._bounded(
                "buyer lookup", self.identity_resolver.resolve_buyer(request.buyer_id)
            )
            if buyer is None:
                return self._rejected(
                    PurchaseOutcome.BUYER_NOT_FOUND, f"Buyer {request.buyer_id} not found"
                )

            try:
                product = await self._bounded(
                    "product lookup", self.catalog_resolver.resolve_product(product_key)
                )
            except AmbiguousProductError as e:
                return self._rejected(PurchaseOutcome.INVALID_REQUEST, str(e))
            if product is None:
                return self._rejected(
                    PurchaseOutcome.PRODUCT_NOT_FOUND, f"Product {product_key} not found"
                )

        except TransientFailureError as e:
            logger.warning(f"Purchase {key} failed before reservation: {e}")
            return self._transient(f"Purchase could not be processed, retry later: {e}")

        task = asyncio.ensure_future(self._reserve_and_record(request, buyer, product))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def _reserve_and_record(
        self, request: PurchaseRequest, buyer: Buyer, product: Product
    ) -> PurchaseResponse:
        key = request.idempotency_key
        product_key = product.key
        quantity = request.quantity

        try:
            reservation = await self._bounded("reserve", self.ledger.reserve(product_key, quantity))
        except StoreOutcomeUnknownError as e:
            # The conditional write may have committed; never release here
            record = await self._flag_reconciliation(
                key, product_key, quantity,
                ReconciliationReason.RESERVE_OUTCOME_UNKNOWN,
                {"error": str(e), "buyer_id": buyer.buyer_id},
            )
            return PurchaseResponse(
                success=False,
                outcome=PurchaseOutcome.TRANSIENT_FAILURE,
                state=PurchaseState.COMPENSATION_NEEDED,
                message=self._with_reconciliation("Reservation outcome unknown, retry later", record),
                error_code="RESERVE_OUTCOME_UNKNOWN",
            )
        except TransientFailureError as e:
            logger.warning(f"Reserve for purchase {key} failed: {e}")
            return self._transient(f"Inventory unavailable, retry later: {e}")

        if reservation.outcome == ReserveOutcome.INSUFFICIENT_STOCK:
            logger.info(
                f"Purchase {key}: insufficient stock for {product_key} "
                f"(requested={quantity}, available={reservation.available})"
            )
            return self._rejected(
                PurchaseOutcome.INSUFFICIENT_STOCK,
                f"Only {reservation.available} of {product_key} available, {quantity} requested",
            )
        if reservation.outcome == ReserveOutcome.NOT_FOUND:
            return self._rejected(PurchaseOutcome.PRODUCT_NOT_FOUND, f"Product {product_key} not found")

        logger.debug(f"Purchase {key}: reserved {quantity} x {product_key}")
        order_id = new_order_id()
        order_fields: Dict[str, Any] = {
            "order_id": order_id,
            "product_name": product.name,
            "company_name": product.company_name,
            "quantity": quantity,
            "buyer_id": buyer.buyer_id,
            "buyer_name": buyer.name,
        }

        try:
            result = await self._bounded("record", self.order_store.record_if_absent(key, order_fields))
        except TransientFailureError as e:
            # The insert may have committed before the failure surfaced
            return await self._verify_record(request, product_key, order_id, reservation.remaining, e)
        except Exception as e:
            logger.error(f"Unexpected error recording purchase {key}, releasing reservation: {e}")
            await self._release_or_flag(key, product_key, quantity, f"unexpected error: {e!r}")
            raise

        if result.outcome == RecordOutcome.ALREADY_EXISTS:
            return await self._release_after_duplicate(result.order, request, product_key)

        return await self._settled(result.order, reservation.remaining)

    # ==================== Compensation ====================

    async def _roll_back(self, key: str, product_key: ProductKey, quantity: int, cause: str) -> PurchaseResponse:
        logger.warning(f"Purchase {key} not recorded ({cause}); releasing reservation")
        released, record = await self._release_or_flag(key, product_key, quantity, cause)
        if not released:
            return self._compensation_failure(record)
        return self._transient(f"Order could not be recorded, reservation released: {cause}")

    async def _verify_record(
        self,
        request: PurchaseRequest,
        product_key: ProductKey,
        order_id: str,
        remaining: Optional[int],
        error: Exception,
    ) -> PurchaseResponse:
        """
        Resolve a record call that failed without a definite answer.

        An order carrying our order_id means the insert committed. An order
        under another id belongs to a concurrent attempt with the same key,
        so our reservation is surplus. Only when no order exists is the
        reservation rolled back.
        """
        key = request.idempotency_key
        quantity = request.quantity
        try:
            landed = await self._bounded(
                "order lookup", self.order_store.get_order_by_idempotency_key(key)
            )
        except TransientFailureError as lookup_error:
            record = await self._flag_reconciliation(
                key, product_key, quantity,
                ReconciliationReason.RELEASE_FAILED,
                {"error": str(error), "lookup_error": str(lookup_error), "record_outcome": "unknown"},
            )
            return self._compensation_failure(record)

        if landed is None:
            return await self._roll_back(key, product_key, quantity, f"record failed: {error}")
        if landed.order_id == order_id:
            logger.info(f"Purchase {key}: order {order_id} committed despite record error: {error}")
            return await self._settled(landed, remaining)
        return await self._release_after_duplicate(landed, request, product_key)

    async def _release_after_duplicate(
        self, order: Order, request: PurchaseRequest, product_key: ProductKey
    ) -> PurchaseResponse:
        # A concurrent attempt with the same key already settled; ours is surplus
        await self._release_or_flag(
            request.idempotency_key, product_key, request.quantity, "order already recorded by another attempt"
        )
        return self._replay(order, request)

    async def _release_or_flag(
        self, key: str, product_key: ProductKey, quantity: int, cause: str
    ) -> Tuple[bool, Optional[ReconciliationRecord]]:
        """
        Give a reservation back, retrying transient failures.

        Returns (True, None) when released. When the release cannot be
        confirmed the anomaly is flagged and (False, record) is returned,
        record being None if it could not be persisted.
        """
        try:
            stock = await self._release_with_retry(product_key, quantity)
        except TransientFailureError as e:
            record = await self._flag_reconciliation(
                key, product_key, quantity, ReconciliationReason.RELEASE_FAILED,
                {"cause": cause, "error": str(e), "attempts": self.release_max_attempts},
            )
            return False, record

        if stock is None:
            record = await self._flag_reconciliation(
                key, product_key, quantity, ReconciliationReason.RELEASE_FAILED,
                {"cause": cause, "error": "product no longer exists"},
            )
            return False, record

        await publish_inventory_released(
            self.event_bus,
            idempotency_key=key,
            company_name=product_key.company_name,
            product_name=product_key.product_name,
            quantity=quantity,
            reason=cause,
            stock_after=stock,
        )
        return True, None

    async def _release_with_retry(self, product_key: ProductKey, quantity: int) -> Optional[int]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.release_max_attempts),
            wait=wait_exponential(multiplier=self.release_backoff_seconds, max=self.release_backoff_seconds * 8),
            retry=retry_if_exception(_retryable_release_error),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        f"Retrying release of {quantity} x {product_key} "
                        f"(attempt {attempt.retry_state.attempt_number}/{self.release_max_attempts})"
                    )
                return await self._bounded("release", self.ledger.release(product_key, quantity))

    async def _flag_reconciliation(
        self,
        key: str,
        product_key: ProductKey,
        quantity: int,
        reason: ReconciliationReason,
        details: Dict[str, Any],
    ) -> Optional[ReconciliationRecord]:
        """Make a possibly-leaked reservation externally visible"""
        logger.critical(
            f"RECONCILIATION_REQUIRED key={key} product={product_key} quantity={quantity} "
            f"reason={reason.value} details={details}"
        )

        record = None
        if self.reconciliation_store is not None:
            try:
                record = await self._bounded(
                    "reconciliation record",
                    self.reconciliation_store.record(key, product_key, quantity, reason, details),
                )
            except TransientFailureError as e:
                logger.critical(f"RECONCILIATION_REQUIRED record for key={key} could not be persisted: {e}")

        await publish_reconciliation_required(
            self.event_bus,
            idempotency_key=key,
            company_name=product_key.company_name,
            product_name=product_key.product_name,
            quantity=quantity,
            reason=reason.value,
            reconciliation_id=record.reconciliation_id if record else None,
            details=details,
        )
        return record

    # ==================== Responses ====================

    async def _settled(self, order: Order, remaining: Optional[int]) -> PurchaseResponse:
        logger.info(
            f"Purchase settled: order={order.order_id} key={order.idempotency_key} "
            f"{order.quantity} x {order.company_name}/{order.product_name} buyer={order.buyer_id}"
        )
        await publish_purchase_settled(
            self.event_bus,
            order_id=order.order_id,
            idempotency_key=order.idempotency_key,
            buyer_id=order.buyer_id,
            buyer_name=order.buyer_name,
            company_name=order.company_name,
            product_name=order.product_name,
            quantity=order.quantity,
            remaining_stock=remaining,
        )
        return PurchaseResponse(
            success=True,
            outcome=PurchaseOutcome.SUCCESS,
            state=PurchaseState.RECORDED,
            order=order,
            message="Purchase settled",
        )

    def _replay(self, order: Order, request: PurchaseRequest) -> PurchaseResponse:
        if not order.matches(request.buyer_id, request.product_key, request.quantity):
            logger.warning(f"Idempotency key {request.idempotency_key} reused with different arguments")
            return self._rejected(
                PurchaseOutcome.INVALID_REQUEST,
                "Idempotency key was already used for a different purchase",
                error_code="IDEMPOTENCY_KEY_REUSED",
            )

        logger.info(f"Purchase {request.idempotency_key} already settled as {order.order_id}")
        return PurchaseResponse(
            success=True,
            outcome=PurchaseOutcome.SUCCESS,
            state=PurchaseState.RECORDED,
            order=order,
            message="Purchase already settled",
            replayed=True,
        )

    def _rejected(
        self, outcome: PurchaseOutcome, message: str, error_code: Optional[str] = None
    ) -> PurchaseResponse:
        return PurchaseResponse(
            success=False,
            outcome=outcome,
            state=PurchaseState.REJECTED,
            message=message,
            error_code=error_code or outcome.value.upper(),
        )

    def _transient(self, message: str) -> PurchaseResponse:
        return self._rejected(PurchaseOutcome.TRANSIENT_FAILURE, message)

    def _compensation_failure(self, record: Optional[ReconciliationRecord]) -> PurchaseResponse:
        return PurchaseResponse(
            success=False,
            outcome=PurchaseOutcome.COMPENSATION_FAILURE,
            state=PurchaseState.COMPENSATION_NEEDED,
            message=self._with_reconciliation("Purchase failed and the reservation could not be released", record),
            error_code="COMPENSATION_FAILURE",
        )

    def _with_reconciliation(self, message: str, record: Optional[ReconciliationRecord]) -> str:
        if record is None:
            return f"{message}; flagged for reconciliation"
        return f"{message}; reconciliation {record.reconciliation_id}"

    # ==================== Helpers ====================

    async def _bounded(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError(f"{operation} exceeded {self.store_timeout_seconds}s") from e

    def _validate(self, request: PurchaseRequest) -> Optional[str]:
        quantity = request.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return f"quantity must be a positive integer, got {quantity!r}"
        if not request.buyer_id:
            return "buyer_id is required"
        if not request.product_name:
            return "product_name is required"
        if not request.idempotency_key:
            return "idempotency_key is required"
        if len(request.idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            return f"idempotency_key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters"
        return None

    # ==================== Operational reads ====================

    async def get_order(self, idempotency_key: str) -> Optional[Order]:
        """Settled order for an idempotency key"""
        return await self._bounded("order lookup", self.order_store.get_order_by_idempotency_key(idempotency_key))

    async def get_stock(self, product_key: ProductKey) -> Optional[int]:
        """Live stock from the ledger"""
        return await self._bounded("stock lookup", self.ledger.get_stock(product_key))

    async def list_reconciliations(self, limit: int = 100) -> List[ReconciliationRecord]:
        """Open reconciliation records"""
        if self.reconciliation_store is None:
            return []
        return await self._bounded("reconciliation list", self.reconciliation_store.list_open(limit))

    async def resolve_reconciliation(self, reconciliation_id: str, note: Optional[str] = None) -> ReconciliationRecord:
        """Mark a reconciliation record resolved"""
        if self.reconciliation_store is None:
            raise ReconciliationUnavailableError("No reconciliation store configured")
        return await self._bounded(
            "reconciliation resolve", self.reconciliation_store.resolve(reconciliation_id, note)
        )

    async def drain(self):
        """Wait for reserve/record runs whose callers went away"""
        if not self._inflight:
            return
        logger.info(f"Waiting for {len(self._inflight)} in-flight settlements")
        results = await asyncio.gather(*list(self._inflight), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"In-flight settlement ended with error: {result!r}")
