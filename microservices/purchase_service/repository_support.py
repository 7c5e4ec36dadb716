"""
Repository support

Shared PostgreSQL wiring for the purchase repositories and the mapping of
database failures onto the purchase exception taxonomy.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from core.config_manager import ConfigManager
from core.postgres_client import (
    AsyncPostgresClient,
    DatabaseOutcomeUnknownError,
    DatabaseTimeoutError,
    DatabaseUnavailableError,
    get_postgres_client,
)

from .protocols import StoreOutcomeUnknownError, StoreTimeoutError, TransientStoreError

logger = logging.getLogger(__name__)

SERVICE_NAME = "purchase_service"
SCHEMA = "purchase"


def default_db(config: Optional[ConfigManager] = None) -> AsyncPostgresClient:
    """Shared pool for the purchase service"""
    if config is None:
        config = ConfigManager(SERVICE_NAME)
    return get_postgres_client(SERVICE_NAME, config.get_infra_config())


@asynccontextmanager
async def store_errors(operation: str):
    """Re-raise database failures as TransientStoreError or one of its outcome-unknown subclasses"""
    try:
        yield
    except DatabaseTimeoutError as e:
        logger.error(f"{operation} timed out: {e}")
        raise StoreTimeoutError(f"{operation} timed out") from e
    except DatabaseOutcomeUnknownError as e:
        logger.error(f"{operation} lost its connection mid-statement: {e}")
        raise StoreOutcomeUnknownError(f"{operation} outcome unknown: {e}") from e
    except DatabaseUnavailableError as e:
        logger.error(f"{operation} failed, store unavailable: {e}")
        raise TransientStoreError(f"{operation} failed: {e}") from e
