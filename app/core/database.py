"""
asyncpg connection pool and row helpers (no ORM).

The pool is opened once in the FastAPI lifespan. Services receive a plain
``asyncpg.Connection`` and open their own transactions with
``conn.transaction()``.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import UUID

import asyncpg

from app.core.config import Settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

_pool: asyncpg.Pool | None = None


async def init_db_pool(settings: Settings) -> None:
    global _pool
    _pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=settings.DB_POOL_MIN_SIZE,
        max_size=settings.DB_POOL_MAX_SIZE,
        max_inactive_connection_lifetime=300,
        timeout=30,
        command_timeout=60,
    )
    logger.info(f"Database pool ready ({_pool.get_size()}/{_pool.get_max_size()})")


async def close_db_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool | None:
    return _pool


def _require_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized; call init_db_pool() first")
    return _pool


@asynccontextmanager
async def get_db_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Connection for work outside a request, such as result stream snapshots."""
    async with _require_pool().acquire() as connection:
        yield connection


async def get_db() -> AsyncGenerator[asyncpg.Connection, None]:
    """FastAPI dependency: one pooled connection per request."""
    async with _require_pool().acquire() as connection:
        yield connection


def record_to_dict(record: asyncpg.Record | None) -> dict | None:
    """Row as a dict with UUID columns rendered as strings."""
    if record is None:
        return None
    return {
        key: str(value) if isinstance(value, UUID) else value
        for key, value in record.items()
    }


def records_to_list(records: list[asyncpg.Record]) -> list[dict]:
    return [record_to_dict(record) for record in records]
