"""
Order Repository

Append-only store of settled purchases, keyed by idempotency key.
Matches schema: purchase.orders (idempotency_key UNIQUE)
"""

import logging
from typing import Any, Dict, List, Optional

from core.config_manager import ConfigManager
from core.postgres_client import AsyncPostgresClient

from .models import Order, RecordOutcome, RecordResult, new_order_id
from .repository_support import SCHEMA, default_db, store_errors

logger = logging.getLogger(__name__)

ORDER_FIELDS = ("product_name", "company_name", "quantity", "buyer_id", "buyer_name")


class OrderStore:
    """
    Repository for order records.

    Only inserts and reads; orders are never updated or deleted.
    """

    def __init__(self, config: Optional[ConfigManager] = None, db: Optional[AsyncPostgresClient] = None):
        """Initialize Order Store with PostgresClient"""
        self.db = db or default_db(config)
        self.schema = SCHEMA
        self.orders_table = "orders"

        logger.info("OrderStore initialized with PostgresClient")

    async def record_if_absent(self, idempotency_key: str, order_fields: Dict[str, Any]) -> RecordResult:
        """
        Insert the order unless one already exists for idempotency_key.

        Args:
            idempotency_key: Client token; unique across all orders
            order_fields: product_name, company_name, quantity, buyer_id, buyer_name;
                optional order_id chosen by the caller

        Returns:
            CREATED with the new order, or ALREADY_EXISTS with the earlier one
        """
        missing = [f for f in ORDER_FIELDS if order_fields.get(f) in (None, "")]
        if missing:
            raise ValueError(f"Order fields missing: {', '.join(missing)}")

        order_id = order_fields.get("order_id") or new_order_id()
        insert = f"""
            INSERT INTO {self.schema}.{self.orders_table}
                (order_id, idempotency_key, product_name, company_name, quantity, buyer_id, buyer_name, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, NOW())
            ON CONFLICT (idempotency_key) DO NOTHING
            RETURNING *
        """
        params = [
            order_id,
            idempotency_key,
            order_fields["product_name"],
            order_fields["company_name"],
            order_fields["quantity"],
            order_fields["buyer_id"],
            order_fields["buyer_name"],
        ]

        async with store_errors(f"Record order {idempotency_key}"):
            async with self.db:
                row = await self.db.query_row(insert, params)

        if row is not None:
            order = self._row_to_order(row)
            logger.info(f"Order {order.order_id} recorded for key {idempotency_key}")
            return RecordResult(outcome=RecordOutcome.CREATED, order=order)

        existing = await self.get_order_by_idempotency_key(idempotency_key)
        if existing is None:
            # Conflict row vanished; orders are never deleted so the store is misbehaving
            raise RuntimeError(f"Insert for key {idempotency_key} conflicted but no order exists")

        logger.info(f"Order for key {idempotency_key} already exists: {existing.order_id}")
        return RecordResult(outcome=RecordOutcome.ALREADY_EXISTS, order=existing)

    async def get_order_by_idempotency_key(self, idempotency_key: str) -> Optional[Order]:
        """Get order by idempotency key"""
        query = f"SELECT * FROM {self.schema}.{self.orders_table} WHERE idempotency_key = $1"
        async with store_errors(f"Get order {idempotency_key}"):
            async with self.db:
                row = await self.db.query_row(query, [idempotency_key])

        return self._row_to_order(row) if row else None

    async def list_orders_for_product(
        self,
        company_name: str,
        product_name: str,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        """Orders for a product, oldest first"""
        query = f"""
            SELECT * FROM {self.schema}.{self.orders_table}
            WHERE company_name = $1 AND product_name = $2
            ORDER BY created_at ASC
            LIMIT {int(limit)} OFFSET {int(offset)}
        """
        async with store_errors(f"List orders {company_name}/{product_name}"):
            async with self.db:
                rows = await self.db.query(query, [company_name, product_name])

        return [self._row_to_order(row) for row in rows]

    async def get_total_quantity_for_product(self, company_name: str, product_name: str) -> int:
        """Sum of quantities across all orders for a product"""
        query = f"""
            SELECT COALESCE(SUM(quantity), 0) AS total FROM {self.schema}.{self.orders_table}
            WHERE company_name = $1 AND product_name = $2
        """
        async with store_errors(f"Total quantity {company_name}/{product_name}"):
            async with self.db:
                row = await self.db.query_row(query, [company_name, product_name])

        return int(row["total"]) if row else 0

    def _row_to_order(self, row: Dict[str, Any]) -> Order:
        return Order(
            order_id=row["order_id"],
            idempotency_key=row["idempotency_key"],
            product_name=row["product_name"],
            company_name=row["company_name"],
            quantity=row["quantity"],
            buyer_id=row["buyer_id"],
            buyer_name=row["buyer_name"],
            created_at=row["created_at"],
        )
