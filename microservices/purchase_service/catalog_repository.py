"""
Catalog Repository

Read-only product lookup for the purchase path. Catalog management
(creating products, pricing) belongs to the storefront and is not done here.
"""

import logging
from typing import Any, Dict, Optional

from core.config_manager import ConfigManager
from core.postgres_client import AsyncPostgresClient

from .models import Product, ProductKey
from .protocols import AmbiguousProductError
from .repository_support import SCHEMA, default_db, store_errors

logger = logging.getLogger(__name__)


class CatalogRepository:
    """Resolves product keys to products"""

    def __init__(self, config: Optional[ConfigManager] = None, db: Optional[AsyncPostgresClient] = None):
        self.db = db or default_db(config)
        self.schema = SCHEMA
        self.products_table = "products"

    async def resolve_product(self, product_key: ProductKey) -> Optional[Product]:
        """
        Resolve a product key.

        A scoped key matches (company_name, name). An unscoped key resolves
        only when exactly one company carries that name.

        Raises:
            AmbiguousProductError: unscoped name carried by several companies
        """
        if product_key.is_scoped:
            query = f"""
                SELECT company_name, name, quantity, price, rank, image, updated_at
                FROM {self.schema}.{self.products_table}
                WHERE company_name = $1 AND name = $2
            """
            params = [product_key.company_name, product_key.product_name]
        else:
            # Two rows are enough to detect ambiguity
            query = f"""
                SELECT company_name, name, quantity, price, rank, image, updated_at
                FROM {self.schema}.{self.products_table}
                WHERE name = $1
                ORDER BY company_name
                LIMIT 2
            """
            params = [product_key.product_name]

        async with store_errors(f"Resolve product {product_key}"):
            async with self.db:
                rows = await self.db.query(query, params)

        if not rows:
            logger.debug(f"Product {product_key} not found")
            return None

        if len(rows) > 1:
            raise AmbiguousProductError(product_key.product_name, [r["company_name"] for r in rows])

        return self._row_to_product(rows[0])

    def _row_to_product(self, row: Dict[str, Any]) -> Product:
        return Product(
            company_name=row["company_name"],
            name=row["name"],
            quantity=row["quantity"],
            price=row.get("price") or 0,
            rank=row.get("rank") or 0,
            image=row.get("image"),
            updated_at=row.get("updated_at"),
        )
