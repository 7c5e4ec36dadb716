"""
Inventory Ledger

Owns purchase.products.quantity. Every mutation is a single conditional
UPDATE so PostgreSQL row locking linearizes concurrent buyers; nothing here
reads a quantity and writes it back in a second round trip.
"""

import logging
from typing import Optional

from core.config_manager import ConfigManager
from core.postgres_client import AsyncPostgresClient

from .models import ProductKey, ReservationResult, ReserveOutcome
from .repository_support import SCHEMA, default_db, store_errors

logger = logging.getLogger(__name__)


def _check_args(product_key: ProductKey, quantity: int):
    if not product_key.is_scoped:
        raise ValueError(f"Ledger operations need a company-scoped product key, got '{product_key}'")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError(f"quantity must be a positive integer, got {quantity!r}")


class InventoryLedger:
    """
    Ledger for per-product stock counters.

    Table:
        - purchase.products: (company_name, name) -> quantity, CHECK quantity >= 0
    """

    def __init__(self, config: Optional[ConfigManager] = None, db: Optional[AsyncPostgresClient] = None):
        """Initialize Inventory Ledger with PostgresClient"""
        self.db = db or default_db(config)
        self.schema = SCHEMA
        self.products_table = "products"

        logger.info("InventoryLedger initialized with PostgresClient")

    async def reserve(self, product_key: ProductKey, quantity: int) -> ReservationResult:
        """
        Atomically take quantity units if at least that many are in stock.

        Returns RESERVED with the remaining stock, INSUFFICIENT_STOCK with the
        stock observed after the failed write, or NOT_FOUND.
        """
        _check_args(product_key, quantity)

        update = f"""
            UPDATE {self.schema}.{self.products_table}
            SET quantity = quantity - $1, updated_at = NOW()
            WHERE company_name = $2 AND name = $3 AND quantity >= $1
            RETURNING quantity
        """
        async with store_errors(f"Reserve {quantity} x {product_key}"):
            async with self.db:
                row = await self.db.query_row(
                    update, [quantity, product_key.company_name, product_key.product_name]
                )

        if row is not None:
            logger.debug(f"Reserved {quantity} x {product_key}, remaining={row['quantity']}")
            return ReservationResult(outcome=ReserveOutcome.RESERVED, remaining=row["quantity"])

        # The write did not happen; this lookup only explains why
        available = await self.get_stock(product_key)
        if available is None:
            return ReservationResult(outcome=ReserveOutcome.NOT_FOUND)

        logger.info(f"Insufficient stock for {product_key}: requested={quantity}, available={available}")
        return ReservationResult(outcome=ReserveOutcome.INSUFFICIENT_STOCK, available=available)

    async def release(self, product_key: ProductKey, quantity: int) -> Optional[int]:
        """
        Atomically give quantity units back.

        Returns the new stock, or None if the product no longer exists.
        """
        _check_args(product_key, quantity)

        update = f"""
            UPDATE {self.schema}.{self.products_table}
            SET quantity = quantity + $1, updated_at = NOW()
            WHERE company_name = $2 AND name = $3
            RETURNING quantity
        """
        async with store_errors(f"Release {quantity} x {product_key}"):
            async with self.db:
                row = await self.db.query_row(
                    update, [quantity, product_key.company_name, product_key.product_name]
                )

        if row is None:
            logger.warning(f"Release of {quantity} x {product_key} found no product row")
            return None

        logger.info(f"Released {quantity} x {product_key}, stock={row['quantity']}")
        return row["quantity"]

    async def get_stock(self, product_key: ProductKey) -> Optional[int]:
        """Current stock straight from the store (never cached)"""
        if not product_key.is_scoped:
            raise ValueError(f"Ledger operations need a company-scoped product key, got '{product_key}'")

        query = f"""
            SELECT quantity FROM {self.schema}.{self.products_table}
            WHERE company_name = $1 AND name = $2
        """
        async with store_errors(f"Get stock {product_key}"):
            async with self.db:
                row = await self.db.query_row(query, [product_key.company_name, product_key.product_name])

        return row["quantity"] if row is not None else None
