"""
Purchase Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_purchase_coordinator
    coordinator = create_purchase_coordinator(config, event_bus)
"""
from typing import Optional

from core.config_manager import ConfigManager

from .purchase_service import PurchaseCoordinator


def create_purchase_coordinator(
    config: Optional[ConfigManager] = None,
    event_bus=None,
    account_client=None,
    db=None,
) -> PurchaseCoordinator:
    """
    Create PurchaseCoordinator with real dependencies.

    This function imports the real repositories (which have I/O dependencies).
    Use this in production, NOT in tests.

    Args:
        config: Configuration manager
        event_bus: Event bus for publishing events
        account_client: Account service client (identity resolver)
        db: Optional PostgreSQL client shared by all repositories

    Returns:
        Configured PurchaseCoordinator instance
    """
    # Import real repositories here (not at module level)
    from .inventory_repository import InventoryLedger
    from .order_repository import OrderStore
    from .catalog_repository import CatalogRepository
    from .reconciliation_repository import ReconciliationRepository
    from .clients import AccountClient

    if config is None:
        config = ConfigManager("purchase_service")
    service_config = config.get_service_config()

    if account_client is None:
        account_client = AccountClient(
            base_url=service_config.account_service_url,
            timeout=service_config.account_service_timeout,
        )

    return PurchaseCoordinator(
        ledger=InventoryLedger(config=config, db=db),
        order_store=OrderStore(config=config, db=db),
        identity_resolver=account_client,
        catalog_resolver=CatalogRepository(config=config, db=db),
        reconciliation_store=ReconciliationRepository(config=config, db=db),
        event_bus=event_bus,
        store_timeout_seconds=service_config.store_timeout_seconds,
        release_max_attempts=service_config.release_max_attempts,
        release_backoff_seconds=service_config.release_backoff_seconds,
    )
