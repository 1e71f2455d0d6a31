"""asyncpg connection pool for the Postgres storage backend.

The pool is created once at app startup when ``STORAGE_BACKEND=postgres``
and drained at shutdown.  Repositories go through the ``fetch`` /
``fetchrow`` / ``execute`` helpers, each running in its own transaction.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import asyncpg

from clarity.config import Settings, get_settings

logger = logging.getLogger("clarity.db")

_pool: asyncpg.Pool | None = None


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Open the pool described by ``DATABASE_URL`` and the ``DB_POOL_*`` settings."""
    global _pool
    s = settings or get_settings()
    if not s.database_url:
        raise RuntimeError("STORAGE_BACKEND=postgres needs DATABASE_URL")
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=s.db_pool_min_size,
        max_size=s.db_pool_max_size,
        command_timeout=s.db_command_timeout_seconds,
    )
    logger.info(
        "Postgres pool ready (min=%d, max=%d)", s.db_pool_min_size, s.db_pool_max_size
    )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Postgres pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Postgres pool is not open; init_pool() runs at app startup")
    return _pool


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Borrow a connection with an open transaction; commits on clean exit."""
    async with get_pool().acquire() as conn:
        async with conn.transaction():
            yield conn


async def execute(query: str, *args: Any) -> str:
    async with get_connection() as conn:
        return await conn.execute(query, *args)


async def fetch(query: str, *args: Any) -> list[asyncpg.Record]:
    async with get_connection() as conn:
        return await conn.fetch(query, *args)


async def fetchrow(query: str, *args: Any) -> asyncpg.Record | None:
    async with get_connection() as conn:
        return await conn.fetchrow(query, *args)


async def ping() -> bool:
    """True when a trivial query round-trips; used by the health check."""
    try:
        async with get_pool().acquire() as conn:
            await conn.fetchval("SELECT 1")
    except (RuntimeError, OSError, asyncpg.PostgresError) as exc:
        logger.warning("Postgres ping failed: %s", exc)
        return False
    return True
