"""DDL for the tables gla-sync owns.

`apply_schema()` is idempotent and is run by `gla-sync init-db`.
"""

from __future__ import annotations

import structlog

from gla_sync.db import client as db_client

logger = structlog.get_logger()

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS scheduled_action (
        id TEXT PRIMARY KEY,
        hook TEXT NOT NULL,
        args JSONB NOT NULL DEFAULT '[]'::jsonb,
        action_group TEXT NOT NULL DEFAULT 'gla',
        status TEXT NOT NULL DEFAULT 'pending',
        scheduled_at TIMESTAMPTZ NOT NULL,
        attempts INTEGER NOT NULL DEFAULT 0,
        locked_by TEXT,
        lease_until TIMESTAMPTZ,
        last_error TEXT,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        completed_at TIMESTAMPTZ
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS scheduled_action_due_idx
        ON scheduled_action (status, scheduled_at)
    """,
    """
    CREATE INDEX IF NOT EXISTS scheduled_action_hook_idx
        ON scheduled_action (hook, status)
    """,
    """
    CREATE TABLE IF NOT EXISTS product (
        id BIGINT PRIMARY KEY,
        name TEXT NOT NULL DEFAULT '',
        sku TEXT,
        product_type TEXT NOT NULL DEFAULT 'simple',
        status TEXT NOT NULL DEFAULT 'publish',
        visibility TEXT NOT NULL DEFAULT 'sync-and-show',
        price NUMERIC(12, 2),
        currency TEXT NOT NULL DEFAULT 'USD',
        description TEXT NOT NULL DEFAULT '',
        link TEXT,
        image_link TEXT,
        in_stock BOOLEAN NOT NULL DEFAULT TRUE,
        sync_status TEXT NOT NULL DEFAULT 'not-synced',
        google_ids JSONB NOT NULL DEFAULT '{}'::jsonb,
        sync_errors JSONB NOT NULL DEFAULT '[]'::jsonb,
        synced_at TIMESTAMPTZ,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
)


async def apply_schema() -> None:
    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
    logger.info("Schema applied", statements=len(SCHEMA_STATEMENTS))
