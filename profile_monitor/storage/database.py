"""
asyncpg pool shared by the repositories.

One ``Database`` is created per process (or per CLI command) and handed to
every repository. Query helpers borrow a pooled connection per call;
``transaction()`` pins one connection for multi-statement work such as
purging an identity's history.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from profile_monitor.config.settings import get_settings

logger = logging.getLogger(__name__)


class Database:
    """
    Owner of the asyncpg connection pool.

    Usage:
        async with Database() as db:
            await db.fetchval("SELECT COUNT(*) FROM subscriptions")
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float = 60.0,
    ):
        settings = get_settings()
        self._dsn = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._pool

    async def connect(self) -> None:
        """Open the pool. Connection errors propagate to the caller."""
        try:
            self._pool = await asyncpg.create_pool(
                self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
        except Exception as e:
            logger.error("Could not open database pool: %s", e)
            raise
        logger.info("Database pool open (%d-%d connections)", self._min_size, self._max_size)

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a pooled connection for the duration of the block."""
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Run the block on one connection inside a transaction.

        The transaction commits when the block exits normally and rolls
        back when it raises.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement. Returns the status tag, e.g. ``DELETE 3``."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True when a trivial query round-trips; never raises."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return False


def affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg status string like ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0
