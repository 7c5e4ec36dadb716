"""
Reconciliation Repository

Durable record of reservations that could neither be settled nor rolled
back. Each open row means stock may be missing from the ledger until an
operator (or a reconciliation job) resolves it.
Matches schema: purchase.reconciliations
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from core.config_manager import ConfigManager
from core.postgres_client import AsyncPostgresClient

from .models import ProductKey, ReconciliationReason, ReconciliationRecord
from .protocols import ReconciliationNotFoundError
from .repository_support import SCHEMA, default_db, store_errors

logger = logging.getLogger(__name__)


class ReconciliationRepository:
    """Repository for reconciliation records"""

    def __init__(self, config: Optional[ConfigManager] = None, db: Optional[AsyncPostgresClient] = None):
        self.db = db or default_db(config)
        self.schema = SCHEMA
        self.table = "reconciliations"

    async def record(
        self,
        idempotency_key: str,
        product_key: ProductKey,
        quantity: int,
        reason: ReconciliationReason,
        details: Optional[Dict[str, Any]] = None,
    ) -> ReconciliationRecord:
        """Persist a reconciliation-required anomaly"""
        reconciliation_id = f"rec_{uuid.uuid4().hex[:16]}"
        insert = f"""
            INSERT INTO {self.schema}.{self.table}
                (reconciliation_id, idempotency_key, company_name, product_name, quantity, reason, details, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, NOW())
            RETURNING *
        """
        params = [
            reconciliation_id,
            idempotency_key,
            product_key.company_name,
            product_key.product_name,
            quantity,
            reason.value,
            json.dumps(details or {}, default=str),
        ]

        async with store_errors(f"Record reconciliation for {idempotency_key}"):
            async with self.db:
                row = await self.db.query_row(insert, params)

        return self._row_to_record(row)

    async def list_open(self, limit: int = 100) -> List[ReconciliationRecord]:
        """Unresolved records, oldest first"""
        query = f"""
            SELECT * FROM {self.schema}.{self.table}
            WHERE resolved_at IS NULL
            ORDER BY created_at ASC
            LIMIT {int(limit)}
        """
        async with store_errors("List open reconciliations"):
            async with self.db:
                rows = await self.db.query(query)

        return [self._row_to_record(row) for row in rows]

    async def resolve(self, reconciliation_id: str, note: Optional[str] = None) -> ReconciliationRecord:
        """
        Mark a record resolved. Resolving twice keeps the first timestamp.

        Raises:
            ReconciliationNotFoundError: no record with that id
        """
        update = f"""
            UPDATE {self.schema}.{self.table}
            SET resolved_at = COALESCE(resolved_at, NOW()),
                details = details || jsonb_build_object('resolution_note', $2::text)
            WHERE reconciliation_id = $1
            RETURNING *
        """
        async with store_errors(f"Resolve reconciliation {reconciliation_id}"):
            async with self.db:
                row = await self.db.query_row(update, [reconciliation_id, note])

        if row is None:
            raise ReconciliationNotFoundError(f"Reconciliation {reconciliation_id} not found")

        logger.info(f"Reconciliation {reconciliation_id} resolved")
        return self._row_to_record(row)

    def _row_to_record(self, row: Dict[str, Any]) -> ReconciliationRecord:
        details = row.get("details") or {}
        if isinstance(details, str):
            details = json.loads(details)
        return ReconciliationRecord(
            reconciliation_id=row["reconciliation_id"],
            idempotency_key=row["idempotency_key"],
            company_name=row["company_name"],
            product_name=row["product_name"],
            quantity=row["quantity"],
            reason=ReconciliationReason(row["reason"]),
            details=details,
            created_at=row["created_at"],
            resolved_at=row.get("resolved_at"),
        )
