"""
Purchase Models Unit Tests

Pure model behavior: product keys, order argument matching and request
validation.

Usage:
    pytest tests/unit/purchase_service/test_purchase_models.py -v
"""
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from microservices.purchase_service.models import (
    Order,
    Product,
    ProductKey,
    PurchaseBody,
    PurchaseOutcome,
    PurchaseRequest,
    RecordOutcome,
    RecordResult,
    ReservationResult,
    ReserveOutcome,
)
from microservices.purchase_service.protocols import (
    AmbiguousProductError,
    PurchaseServiceError,
    ResolverUnavailableError,
    StoreTimeoutError,
    TransientFailureError,
    TransientStoreError,
)

pytestmark = pytest.mark.unit


def _order(**overrides) -> Order:
    fields = {
        "order_id": "ord_1",
        "idempotency_key": "idem_1",
        "product_name": "Widget",
        "company_name": "Acme",
        "quantity": 2,
        "buyer_id": "usr_alice",
        "buyer_name": "Alice",
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Order(**fields)


class TestProductKey:
    """Company-scoped and unscoped product names"""

    def test_scoped(self):
        key = ProductKey(company_name="Acme", product_name="Widget")

        assert key.is_scoped is True
        assert str(key) == "Acme/Widget"

    def test_unscoped(self):
        key = ProductKey(product_name="Widget")

        assert key.is_scoped is False
        assert str(key) == "Widget"

    def test_hashable_and_equal(self):
        a = ProductKey(company_name="Acme", product_name="Widget")
        b = ProductKey(company_name="Acme", product_name="Widget")

        assert a == b
        assert len({a, b}) == 1

    def test_product_key_property(self):
        product = Product(company_name="Acme", name="Widget", quantity=5)

        assert product.key == ProductKey(company_name="Acme", product_name="Widget")

    def test_product_quantity_not_negative(self):
        with pytest.raises(ValidationError):
            Product(company_name="Acme", name="Widget", quantity=-1)


class TestOrderMatches:
    """Replay argument comparison"""

    def test_same_arguments(self):
        assert _order().matches("usr_alice", ProductKey(company_name="Acme", product_name="Widget"), 2)

    def test_unscoped_key_matches_any_company(self):
        assert _order().matches("usr_alice", ProductKey(product_name="Widget"), 2)

    @pytest.mark.parametrize("buyer_id,key,quantity", [
        ("usr_bob", ProductKey(company_name="Acme", product_name="Widget"), 2),
        ("usr_alice", ProductKey(company_name="Acme", product_name="Widget"), 3),
        ("usr_alice", ProductKey(company_name="Acme", product_name="Gadget"), 2),
        ("usr_alice", ProductKey(company_name="Globex", product_name="Widget"), 2),
    ])
    def test_different_arguments(self, buyer_id, key, quantity):
        assert _order().matches(buyer_id, key, quantity) is False

    def test_order_is_immutable(self):
        order = _order()

        with pytest.raises(ValidationError):
            order.quantity = 5

    def test_order_quantity_positive(self):
        with pytest.raises(ValidationError):
            _order(quantity=0)


class TestPurchaseRequest:
    """Request parsing"""

    def test_identifiers_stripped(self):
        request = PurchaseRequest(
            buyer_id="  usr_alice ",
            product_name=" Widget",
            company_name="Acme ",
            quantity=1,
            idempotency_key=" idem_1 ",
        )

        assert request.buyer_id == "usr_alice"
        assert request.idempotency_key == "idem_1"
        assert request.product_key == ProductKey(company_name="Acme", product_name="Widget")

    def test_blank_company_is_unscoped(self):
        request = PurchaseRequest(
            buyer_id="usr_alice", product_name="Widget", company_name="  ", quantity=1, idempotency_key="idem_1"
        )

        assert request.product_key.is_scoped is False

    @pytest.mark.parametrize("quantity", ["2", 2.0, True])
    def test_quantity_must_be_int(self, quantity):
        with pytest.raises(ValidationError):
            PurchaseRequest(
                buyer_id="usr_alice", product_name="Widget", quantity=quantity, idempotency_key="idem_1"
            )

    def test_body_key_optional(self):
        body = PurchaseBody(buyer_id="usr_alice", product_name="Widget", quantity=1)

        assert body.idempotency_key is None
        assert body.company_name is None


class TestResults:
    """Ledger and store result helpers"""

    def test_reservation_result(self):
        assert ReservationResult(outcome=ReserveOutcome.RESERVED, remaining=3).reserved is True
        assert ReservationResult(outcome=ReserveOutcome.NOT_FOUND).reserved is False

    def test_record_result(self):
        assert RecordResult(outcome=RecordOutcome.CREATED, order=_order()).created is True
        assert RecordResult(outcome=RecordOutcome.ALREADY_EXISTS, order=_order()).created is False

    def test_outcome_values(self):
        assert {o.value for o in PurchaseOutcome} == {
            "success",
            "invalid_request",
            "buyer_not_found",
            "product_not_found",
            "insufficient_stock",
            "transient_failure",
            "compensation_failure",
        }


class TestExceptionHierarchy:
    """Which failures are safe to retry"""

    def test_transient_family(self):
        assert issubclass(StoreTimeoutError, TransientStoreError)
        assert issubclass(TransientStoreError, TransientFailureError)
        assert issubclass(ResolverUnavailableError, TransientFailureError)

    def test_ambiguous_product_is_not_transient(self):
        error = AmbiguousProductError("Widget", ["Acme", "Globex"])

        assert isinstance(error, PurchaseServiceError)
        assert not isinstance(error, TransientFailureError)
        assert "company_name" in str(error)
