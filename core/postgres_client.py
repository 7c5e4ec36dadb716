"""
PostgreSQL Client for the purchase platform

Async PostgreSQL access over an asyncpg connection pool, with the
``async with db:`` / ``query`` / ``query_row`` / ``execute`` call shape used by
every repository.

Usage:
    from core.postgres_client import get_postgres_client

    # Get client instance (one pool per service)
    db = get_postgres_client("purchase_service")

    # Execute queries
    async with db:
        rows = await db.query("SELECT * FROM purchase.orders WHERE buyer_id = $1", [buyer_id])
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import asyncpg

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for database access errors"""
    pass


class DatabaseUnavailableError(DatabaseError):
    """Database could not be reached or dropped the connection"""
    pass


class DatabaseOutcomeUnknownError(DatabaseUnavailableError):
    """Connection lost while a statement was in flight; it may have committed"""
    pass


class DatabaseTimeoutError(DatabaseOutcomeUnknownError):
    """Database call exceeded its time budget; the outcome is unknown"""
    pass


# Server rejected the statement outright; nothing was applied
STATEMENT_REJECTED_ERRORS = (
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.DeadlockDetectedError,
    asyncpg.exceptions.SerializationError,
)

# Failures worth retrying the whole unit of work for
TRANSIENT_DB_ERRORS = STATEMENT_REJECTED_ERRORS + (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    ConnectionError,
    OSError,
)


class AsyncPostgresClient:
    """
    Async PostgreSQL client backed by an asyncpg pool.

    The pool is created lazily on first use and shared by every
    ``async with client:`` block; leaving the block does not close it.
    Call ``close()`` on shutdown.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "postgres",
        username: str = "postgres",
        password: str = "",
        user_id: Optional[str] = None,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
        command_timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.username = username
        self.password = password
        self.user_id = user_id
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout = command_timeout

        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, infra: InfraConfig, user_id: Optional[str] = None) -> "AsyncPostgresClient":
        return cls(
            host=infra.postgres_host,
            port=infra.postgres_port,
            database=infra.postgres_db,
            username=infra.postgres_user,
            password=infra.postgres_password,
            user_id=user_id,
            min_pool_size=infra.postgres_min_pool_size,
            max_pool_size=infra.postgres_max_pool_size,
            command_timeout=infra.postgres_command_timeout,
        )

    async def connect(self):
        """Create the connection pool if it does not exist yet"""
        if self._pool is not None:
            return

        async with self._pool_lock:
            if self._pool is not None:
                return
            try:
                self._pool = await asyncpg.create_pool(
                    host=self.host,
                    port=self.port,
                    database=self.database,
                    user=self.username,
                    password=self.password,
                    min_size=self.min_pool_size,
                    max_size=self.max_pool_size,
                    command_timeout=self.command_timeout,
                    timeout=self.command_timeout,
                )
            except asyncio.TimeoutError as e:
                raise DatabaseUnavailableError(
                    f"Timed out connecting to PostgreSQL at {self.host}:{self.port}"
                ) from e
            except TRANSIENT_DB_ERRORS as e:
                raise DatabaseUnavailableError(
                    f"Cannot connect to PostgreSQL at {self.host}:{self.port}: {e}"
                ) from e
            logger.info(f"PostgreSQL pool ready: {self.host}:{self.port}/{self.database} (user_id={self.user_id})")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

    async def close(self):
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL pool closed")

    async def _run(self, operation: str, coro_factory):
        await self.connect()
        try:
            conn = await self._pool.acquire(timeout=self.command_timeout)
        # asyncio.TimeoutError is an OSError subclass on newer interpreters; check it first
        except asyncio.TimeoutError as e:
            raise DatabaseUnavailableError(f"{operation}: no connection within {self.command_timeout}s") from e
        except TRANSIENT_DB_ERRORS as e:
            raise DatabaseUnavailableError(f"{operation} failed: {e}") from e

        try:
            return await coro_factory(conn)
        except asyncio.TimeoutError as e:
            raise DatabaseTimeoutError(f"{operation} timed out after {self.command_timeout}s") from e
        except STATEMENT_REJECTED_ERRORS as e:
            raise DatabaseUnavailableError(f"{operation} failed: {e}") from e
        except TRANSIENT_DB_ERRORS as e:
            raise DatabaseOutcomeUnknownError(f"{operation} lost its connection: {e}") from e
        finally:
            await self._pool.release(conn)

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return all rows"""
        rows = await self._run("Query", lambda conn: conn.fetch(sql, *(params or [])))
        return [dict(row) for row in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return a single row"""
        row = await self._run("QueryRow", lambda conn: conn.fetchrow(sql, *(params or [])))
        return dict(row) if row is not None else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute statement and return the number of affected rows"""
        status = await self._run("Execute", lambda conn: conn.execute(sql, *(params or [])))
        return _affected_rows(status)

    async def execute_script(self, sql: str) -> None:
        """Execute a multi-statement script (migrations)"""
        await self._run("ExecuteScript", lambda conn: conn.execute(sql))

    async def health_check(self) -> Optional[Dict[str, Any]]:
        """Check database health"""
        try:
            version = await self._run("HealthCheck", lambda conn: conn.fetchval("SELECT version()"))
            return {"healthy": True, "version": version}
        except DatabaseError as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            return {"healthy": False, "error": str(e)}


def _affected_rows(status: Optional[str]) -> int:
    """Parse asyncpg command status such as 'UPDATE 1' or 'INSERT 0 1'"""
    if not status:
        return 0
    tail = status.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


# Singleton instances per service
_postgres_clients: Dict[str, AsyncPostgresClient] = {}


def get_postgres_client(
    service_name: str,
    infra: Optional[InfraConfig] = None,
) -> AsyncPostgresClient:
    """
    Get or create the PostgreSQL client for a service.

    Args:
        service_name: Service name, used as the pool key
        infra: Optional infrastructure config (loaded from env when omitted)

    Returns:
        AsyncPostgresClient instance
    """
    if service_name not in _postgres_clients:
        infra = infra or InfraConfig.from_env()
        _postgres_clients[service_name] = AsyncPostgresClient.from_config(infra, user_id=service_name)
        logger.info(
            f"PostgreSQL client initialized for {service_name}: "
            f"{infra.postgres_host}:{infra.postgres_port}/{infra.postgres_db}"
        )

    return _postgres_clients[service_name]


async def close_postgres_clients():
    """Close all pools (application shutdown)"""
    for client in list(_postgres_clients.values()):
        await client.close()
    _postgres_clients.clear()
