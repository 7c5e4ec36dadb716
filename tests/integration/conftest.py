#!/usr/bin/env python3
"""
Integration Test Configuration and Fixtures

Purchase repositories against a real PostgreSQL. The schema migration is
applied on first use; each test works under its own company name and
deletes its rows afterwards. Tests are skipped when PostgreSQL is not
reachable.
"""

import os
import sys
import uuid
from pathlib import Path
from typing import AsyncGenerator, Optional

import asyncpg
import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

from core.config import InfraConfig
from core.postgres_client import AsyncPostgresClient, DatabaseError

MIGRATION = (
    Path(__file__).resolve().parents[2]
    / "microservices" / "purchase_service" / "migrations" / "001_purchase_schema.sql"
)


@pytest_asyncio.fixture
async def purchase_db() -> AsyncGenerator[AsyncPostgresClient, None]:
    """
    AsyncPostgresClient with the purchase schema applied.

    Skips the test when the database cannot be reached.
    """
    infra = InfraConfig.from_env()
    db = AsyncPostgresClient.from_config(infra, user_id="purchase_integration")
    try:
        await db.execute_script(MIGRATION.read_text())
    except (DatabaseError, asyncpg.PostgresError) as e:
        await db.close()
        pytest.skip(f"PostgreSQL not available: {e}")

    yield db
    await db.close()


@pytest_asyncio.fixture
async def company(purchase_db) -> AsyncGenerator[str, None]:
    """Company name owning this test's rows"""
    name = f"it_{uuid.uuid4().hex[:12]}"
    yield name

    async with purchase_db:
        await purchase_db.execute("DELETE FROM purchase.orders WHERE company_name = $1", [name])
        await purchase_db.execute("DELETE FROM purchase.reconciliations WHERE company_name = $1", [name])
        await purchase_db.execute("DELETE FROM purchase.products WHERE company_name = $1", [name])


async def insert_product(db: AsyncPostgresClient, company_name: str, name: str, quantity: int):
    """Seed a product row (catalog onboarding is outside this service)"""
    async with db:
        await db.execute(
            "INSERT INTO purchase.products (company_name, name, quantity, price) VALUES ($1, $2, $3, 9.99)",
            [company_name, name, quantity],
        )


async def stock_of(db: AsyncPostgresClient, company_name: str, name: str) -> Optional[int]:
    async with db:
        row = await db.query_row(
            "SELECT quantity FROM purchase.products WHERE company_name = $1 AND name = $2",
            [company_name, name],
        )
    return row["quantity"] if row else None
