"""Postgres-backed durable scheduled-action queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import structlog

from gla_sync.db import client as db_client
from gla_sync.kernel.time import coerce_utc, utc_now

logger = structlog.get_logger()

DEFAULT_GROUP = "gla"

STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_COMPLETE = "complete"
STATUS_FAILED = "failed"
STATUS_CANCELED = "canceled"


@dataclass(frozen=True)
class ScheduleActionRequest:
    hook: str
    args: list[Any] = field(default_factory=list)
    group: str = DEFAULT_GROUP
    run_at: datetime | None = None


async def enqueue_action(request: ScheduleActionRequest) -> str:
    """Insert a pending action. Content is never deduplicated here."""
    action_id = str(uuid4())
    now = utc_now()

    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO scheduled_action (
                id, hook, args, action_group, status, scheduled_at,
                attempts, created_at, updated_at
            )
            VALUES ($1, $2, $3::jsonb, $4, 'pending', $5, 0, $6, $6)
            """,
            action_id,
            request.hook,
            list(request.args),
            request.group,
            request.run_at or now,
            now,
        )

    return action_id


async def reserve_action(request: ScheduleActionRequest) -> str | None:
    """
    Enqueue `request` only if no pending/running action exists for its hook.

    The hook-scoped advisory lock makes check-and-insert a single atomic step
    across concurrent callers. Returns the new id, or None when already taken.
    """
    action_id = str(uuid4())
    now = utc_now()

    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", request.hook)
            row = await conn.fetchrow(
                """
                INSERT INTO scheduled_action (
                    id, hook, args, action_group, status, scheduled_at,
                    attempts, created_at, updated_at
                )
                SELECT $1, $2, $3::jsonb, $4, 'pending', $5, 0, $6, $6
                WHERE NOT EXISTS (
                    SELECT 1
                    FROM scheduled_action
                    WHERE hook = $2
                      AND status IN ('pending', 'running')
                )
                RETURNING id
                """,
                action_id,
                request.hook,
                list(request.args),
                request.group,
                request.run_at or now,
                now,
            )

    return str(row["id"]) if row else None


async def has_scheduled_action(hook: str, args: list[Any] | None = None) -> bool:
    """True if an action for `hook` (and `args`, when given) is pending or running."""
    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        found = await conn.fetchval(
            """
            SELECT EXISTS (
                SELECT 1
                FROM scheduled_action
                WHERE hook = $1
                  AND status IN ('pending', 'running')
                  AND ($2::jsonb IS NULL OR args = $2::jsonb)
            )
            """,
            hook,
            list(args) if args is not None else None,
        )
    return bool(found)


async def count_failed_actions(
    *,
    hook: str,
    args: list[Any] | None,
    since: datetime,
    limit: int,
) -> int:
    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            SELECT id
            FROM scheduled_action
            WHERE hook = $1
              AND status = 'failed'
              AND ($2::jsonb IS NULL OR args = $2::jsonb)
              AND completed_at > $3
            ORDER BY completed_at DESC
            LIMIT $4
            """,
            hook,
            list(args) if args is not None else None,
            since,
            int(max(1, limit)),
        )
    return len(rows or [])


@dataclass(frozen=True)
class ClaimedAction:
    id: str
    hook: str
    args: list[Any]
    group: str
    scheduled_at: datetime
    attempts: int


async def claim_next_action(*, worker_id: str, lease_seconds: int) -> ClaimedAction | None:
    """Claim the next due action using a lease (FOR UPDATE SKIP LOCKED)."""
    now = utc_now()
    lease_until = now + timedelta(seconds=max(5, lease_seconds))

    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            UPDATE scheduled_action
            SET status = 'running',
                locked_by = $1,
                lease_until = $2,
                attempts = attempts + 1,
                updated_at = $3
            WHERE id = (
                SELECT sa.id
                FROM scheduled_action sa
                WHERE sa.status = 'pending'
                  AND sa.scheduled_at <= $3
                ORDER BY sa.scheduled_at ASC, sa.created_at ASC
                FOR UPDATE SKIP LOCKED
                LIMIT 1
            )
            RETURNING id, hook, args, action_group, scheduled_at, attempts
            """,
            worker_id,
            lease_until,
            now,
        )

    if not row:
        return None

    return ClaimedAction(
        id=str(row["id"]),
        hook=row["hook"],
        args=list(row["args"] or []),
        group=row["action_group"],
        scheduled_at=coerce_utc(row["scheduled_at"]),
        attempts=int(row["attempts"] or 0),
    )


async def mark_action_complete(*, action_id: str) -> None:
    now = utc_now()
    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            UPDATE scheduled_action
            SET status = 'complete',
                completed_at = $2,
                lease_until = NULL,
                last_error = NULL,
                updated_at = $2
            WHERE id = $1
            """,
            action_id,
            now,
        )


async def mark_action_failed(*, action_id: str, error: str) -> None:
    """Record a failed run. Failed actions are never re-run by the queue itself."""
    now = utc_now()
    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            UPDATE scheduled_action
            SET status = 'failed',
                completed_at = $2,
                lease_until = NULL,
                last_error = $3,
                updated_at = $2
            WHERE id = $1
            """,
            action_id,
            now,
            error[:4000],
        )


async def cancel_actions(*, hook: str, args: list[Any] | None = None) -> int:
    now = utc_now()
    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            UPDATE scheduled_action
            SET status = 'canceled',
                completed_at = $3,
                updated_at = $3
            WHERE hook = $1
              AND status = 'pending'
              AND ($2::jsonb IS NULL OR args = $2::jsonb)
            RETURNING id
            """,
            hook,
            list(args) if args is not None else None,
            now,
        )
    return len(rows or [])


async def extend_lease(*, action_id: str, worker_id: str, lease_seconds: int) -> bool:
    """Push out the lease of an action this worker still holds. False if it lost it."""
    now = utc_now()
    lease_until = now + timedelta(seconds=max(5, lease_seconds))
    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        updated = await conn.execute(
            """
            UPDATE scheduled_action
            SET lease_until = $3,
                updated_at = $2
            WHERE id = $1
              AND status = 'running'
              AND locked_by = $4
            """,
            action_id,
            now,
            lease_until,
            worker_id,
        )
    # asyncpg returns strings like "UPDATE 1"
    return str(updated).endswith("1")


async def requeue_expired_running_actions(*, limit: int = 500) -> int:
    """
    Requeue actions that were marked 'running' but whose lease expired.

    Without this, a worker crash can leave actions stuck in 'running' forever
    (and block `has_scheduled_action` guards for their hook).
    """
    now = utc_now()
    safe_limit = int(max(1, limit))

    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            WITH expired AS (
                SELECT id
                FROM scheduled_action
                WHERE status = 'running'
                  AND lease_until IS NOT NULL
                  AND lease_until < $2::timestamptz
                ORDER BY lease_until ASC
                LIMIT $1
                FOR UPDATE SKIP LOCKED
            )
            UPDATE scheduled_action sa
            SET status = 'pending',
                lease_until = NULL,
                locked_by = NULL,
                last_error = COALESCE(sa.last_error, 'Lease expired'),
                scheduled_at = $2::timestamptz,
                updated_at = $2::timestamptz
            FROM expired
            WHERE sa.id = expired.id
            RETURNING sa.id
            """,
            safe_limit,
            now,
        )

    return len(rows or [])
