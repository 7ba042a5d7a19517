"""
PostgreSQL async connection pool.

Raw SQL through asyncpg; the scheduled_action queue and product repository
both acquire connections from here.
"""

import json

import asyncpg
import structlog

from gla_sync.config import get_settings

logger = structlog.get_logger()

_pool: asyncpg.Pool | None = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    # asyncpg defaults to returning JSON/JSONB as strings and expects strings on inserts.
    # Register codecs so we can transparently pass Python dict/list values for JSON columns.
    await conn.set_type_codec(
        "json",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
        format="text",
    )


async def get_db_pool() -> asyncpg.Pool:
    """Get (lazily creating) the asyncpg connection pool."""
    global _pool
    if _pool is None:
        settings = get_settings()
        db_url = str(settings.database_url).replace("postgresql+asyncpg://", "postgresql://")
        min_size = max(1, int(settings.db_raw_pool_min_size))

        _pool = await asyncpg.create_pool(
            db_url,
            init=_init_connection,
            min_size=min_size,
            max_size=max(min_size, int(settings.db_raw_pool_max_size)),
        )
        logger.info(
            "Database connection pool initialized",
            url=db_url[:50] + "...",
            min_size=min_size,
        )
    return _pool


async def close_db_pool() -> None:
    """Close the asyncpg connection pool."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database connection pool closed")
