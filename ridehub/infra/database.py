# ridehub/infra/database.py
"""
PostgreSQL access for ridehub.

One asyncpg pool per process (DatabaseManager). Queries that fail because the
server is unreachable are retried; query errors are not. The schema in
migrations/init.sql is applied at startup under an advisory lock.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncGenerator, Callable, TypeVar

import asyncpg
from asyncpg import Connection, Pool, Record

from ridehub.common.constants import SCHEMA_LOCK_ID, SERVICE_NAME, TypeMsg
from ridehub.common.logger import log_error, log_info

T = TypeVar("T")

# Failures worth another attempt: the server went away, not the query
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


def retry_on_connection_error(
    max_attempts: int = 3,
    delay: float = 1.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retries a coroutine on TRANSIENT_ERRORS with a linear backoff
    (delay, 2*delay, ...). The last error is re-raised.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except TRANSIENT_ERRORS as e:
                    if attempt >= max_attempts:
                        await log_error(f"{func.__name__}: database unreachable after {attempt} attempts: {e}")
                        raise
                    await log_info(
                        f"{func.__name__}: database connection lost ({e}), retry {attempt}/{max_attempts - 1}",
                        type_msg=TypeMsg.WARNING,
                    )
                    await asyncio.sleep(delay * attempt)
                    attempt += 1

        return wrapper  # type: ignore

    return decorator


class DatabaseManager:
    """Process-wide owner of the asyncpg pool."""

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def pool(self) -> Pool:
        if self._pool is None:
            raise RuntimeError("Connection pool is not initialised. Call connect() first.")
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @retry_on_connection_error(max_attempts=3, delay=1.0)
    async def connect(
        self,
        dsn: str,
        min_size: int = 5,
        max_size: int = 20,
        command_timeout: int = 60,
    ) -> None:
        """Opens the pool; a second call is a no-op."""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
            # Sessions, pauses and route points are stored as timestamptz in UTC
            server_settings={"application_name": SERVICE_NAME, "timezone": "UTC"},
        )
        await log_info(f"PostgreSQL pool ready ({min_size}..{max_size} connections)")

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()
        await log_info("PostgreSQL pool closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        """Connection borrowed from the pool for the duration of the block."""
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """
        Connection with an open transaction: committed on exit, rolled back
        on error. Used where several statements must land together
        (notification fan-out, schema bootstrap).
        """
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                yield connection

    @retry_on_connection_error()
    async def _run(self, method: str, query: str, *args: Any, **kwargs: Any) -> Any:
        async with self.acquire() as conn:
            return await getattr(conn, method)(query, *args, **kwargs)

    async def execute(self, query: str, *args: Any) -> str:
        """Status string, e.g. "UPDATE 1"."""
        return await self._run("execute", query, *args)

    async def fetch(self, query: str, *args: Any) -> list[Record]:
        return await self._run("fetch", query, *args)

    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        return await self._run("fetchrow", query, *args)

    async def fetchval(self, query: str, *args: Any, column: int = 0) -> Any:
        """First row's value; None when nothing matched (e.g. a lost compare-and-swap)."""
        return await self._run("fetchval", query, *args, column=column)

    async def health_check(self) -> bool:
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            await log_error(f"PostgreSQL health check failed: {e}")
            return False


def get_db() -> DatabaseManager:
    return DatabaseManager()


async def init_db() -> DatabaseManager:
    """Connects with the configured settings and applies the schema."""
    from ridehub.config import settings

    cfg = settings.database
    db = get_db()
    await db.connect(
        dsn=cfg.dsn,
        min_size=cfg.DB_MIN_POOL_SIZE,
        max_size=cfg.DB_MAX_POOL_SIZE,
        command_timeout=cfg.DB_COMMAND_TIMEOUT,
    )
    await log_info(f"PostgreSQL connected: {cfg.DB_HOST}:{cfg.DB_PORT}/{cfg.DB_NAME}")

    await _init_schema(db)
    return db


async def _init_schema(db: DatabaseManager) -> None:
    """
    Applies migrations/init.sql.

    The DDL is idempotent; the advisory lock keeps several API workers
    starting together from racing on CREATE TABLE / CREATE INDEX.
    """
    from ridehub.config.loader import get_project_root

    schema_path = get_project_root() / "migrations" / "init.sql"
    if not schema_path.exists():
        await log_error(f"Schema file not found: {schema_path}")
        return

    schema_sql = schema_path.read_text(encoding="utf-8")

    try:
        async with db.transaction() as conn:
            await conn.execute(f"SELECT pg_advisory_xact_lock({SCHEMA_LOCK_ID})")
            await conn.execute(schema_sql)
    except Exception as e:
        await log_error(f"Failed to apply {schema_path.name}: {e}")
        raise

    await log_info(f"Schema {schema_path.name} applied", type_msg=TypeMsg.DEBUG)


async def close_db() -> None:
    await get_db().disconnect()
