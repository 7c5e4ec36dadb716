"""
Purchase Service Component Test Fixtures

Provides in-memory dependencies for PurchaseCoordinator:
- InMemoryLedger / InMemoryOrderStore: stores with fault injection
- MockIdentityResolver / MockCatalogResolver: lookups
- MockReconciliationStore: reconciliation records
- MockEventBus: event publishing (shared mock)
"""
import pytest

from microservices.purchase_service.purchase_service import PurchaseCoordinator

from .mocks import (
    BUYER_ID,
    COMPANY,
    PRODUCT,
    STORE_TIMEOUT,
    InMemoryLedger,
    InMemoryOrderStore,
    MockCatalogResolver,
    MockIdentityResolver,
    MockReconciliationStore,
)


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Ledger holding 5 Acme/Widget"""
    ledger = InMemoryLedger()
    ledger.set_stock(COMPANY, PRODUCT, 5)
    return ledger


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def identity_resolver() -> MockIdentityResolver:
    resolver = MockIdentityResolver()
    resolver.add_buyer(BUYER_ID, name="Alice")
    resolver.add_buyer("usr_bob", name="Bob")
    return resolver


@pytest.fixture
def catalog_resolver(ledger) -> MockCatalogResolver:
    return MockCatalogResolver(ledger)


@pytest.fixture
def reconciliation_store() -> MockReconciliationStore:
    return MockReconciliationStore()


@pytest.fixture
def coordinator(
    ledger, order_store, identity_resolver, catalog_resolver, reconciliation_store, mock_event_bus
) -> PurchaseCoordinator:
    """Coordinator over in-memory stores, no backoff between release attempts"""
    return PurchaseCoordinator(
        ledger=ledger,
        order_store=order_store,
        identity_resolver=identity_resolver,
        catalog_resolver=catalog_resolver,
        reconciliation_store=reconciliation_store,
        event_bus=mock_event_bus,
        store_timeout_seconds=STORE_TIMEOUT,
        release_max_attempts=3,
        release_backoff_seconds=0,
    )
