"""
Action scheduler facade

Jobs talk to the durable queue only through `ActionScheduler`. The Postgres
implementation is used in production; the in-memory one backs tests and
single-process local runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol
from uuid import uuid4

import structlog

from gla_sync.jobs import queue
from gla_sync.jobs.queue import (
    DEFAULT_GROUP,
    STATUS_CANCELED,
    STATUS_COMPLETE,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_RUNNING,
    ClaimedAction,
    ScheduleActionRequest,
)
from gla_sync.kernel.time import isoformat_z, utc_now

logger = structlog.get_logger()


class ActionScheduler(Protocol):
    async def schedule_immediate(self, hook: str, args: list[Any] | None = None) -> str: ...

    async def schedule_single(self, delay_seconds: int, hook: str, args: list[Any] | None = None) -> str: ...

    async def has_scheduled_action(self, hook: str, args: list[Any] | None = None) -> bool: ...

    async def reserve(self, hook: str, args: list[Any] | None = None) -> bool: ...

    async def count_failed_actions(
        self, hook: str, args: list[Any] | None, since: datetime, limit: int
    ) -> int: ...

    async def cancel_all(self, hook: str, args: list[Any] | None = None) -> int: ...


class ActionQueue(Protocol):
    """Worker-side operations on the same store."""

    async def claim_next_action(self, *, worker_id: str, lease_seconds: int) -> ClaimedAction | None: ...

    async def mark_action_complete(self, *, action_id: str) -> None: ...

    async def mark_action_failed(self, *, action_id: str, error: str) -> None: ...

    async def extend_lease(self, *, action_id: str, worker_id: str, lease_seconds: int) -> bool: ...

    async def requeue_expired_running_actions(self, *, limit: int = 500) -> int: ...


class PostgresActionScheduler:
    """ActionScheduler + ActionQueue over the `scheduled_action` table."""

    def __init__(self, group: str = DEFAULT_GROUP) -> None:
        self.group = group

    async def schedule_immediate(self, hook: str, args: list[Any] | None = None) -> str:
        action_id = await queue.enqueue_action(
            ScheduleActionRequest(hook=hook, args=list(args or []), group=self.group)
        )
        logger.debug("Scheduled action", hook=hook, action_id=action_id)
        return action_id

    async def schedule_single(self, delay_seconds: int, hook: str, args: list[Any] | None = None) -> str:
        run_at = utc_now() + timedelta(seconds=max(0, delay_seconds))
        action_id = await queue.enqueue_action(
            ScheduleActionRequest(hook=hook, args=list(args or []), group=self.group, run_at=run_at)
        )
        logger.debug("Scheduled delayed action", hook=hook, action_id=action_id, run_at=isoformat_z(run_at))
        return action_id

    async def has_scheduled_action(self, hook: str, args: list[Any] | None = None) -> bool:
        return await queue.has_scheduled_action(hook, args)

    async def reserve(self, hook: str, args: list[Any] | None = None) -> bool:
        action_id = await queue.reserve_action(
            ScheduleActionRequest(hook=hook, args=list(args or []), group=self.group)
        )
        return action_id is not None

    async def count_failed_actions(
        self, hook: str, args: list[Any] | None, since: datetime, limit: int
    ) -> int:
        return await queue.count_failed_actions(hook=hook, args=args, since=since, limit=limit)

    async def cancel_all(self, hook: str, args: list[Any] | None = None) -> int:
        return await queue.cancel_actions(hook=hook, args=args)

    async def claim_next_action(self, *, worker_id: str, lease_seconds: int) -> ClaimedAction | None:
        return await queue.claim_next_action(worker_id=worker_id, lease_seconds=lease_seconds)

    async def mark_action_complete(self, *, action_id: str) -> None:
        await queue.mark_action_complete(action_id=action_id)

    async def mark_action_failed(self, *, action_id: str, error: str) -> None:
        await queue.mark_action_failed(action_id=action_id, error=error)

    async def extend_lease(self, *, action_id: str, worker_id: str, lease_seconds: int) -> bool:
        return await queue.extend_lease(action_id=action_id, worker_id=worker_id, lease_seconds=lease_seconds)

    async def requeue_expired_running_actions(self, *, limit: int = 500) -> int:
        return await queue.requeue_expired_running_actions(limit=limit)


@dataclass
class StoredAction:
    id: str
    hook: str
    args: list[Any]
    group: str
    scheduled_at: datetime
    status: str = STATUS_PENDING
    attempts: int = 0
    locked_by: str | None = None
    lease_until: datetime | None = None
    last_error: str | None = None
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)


class InMemoryActionScheduler:
    """Process-local ActionScheduler + ActionQueue.

    Ordering matches the Postgres queue: due time, then insertion order.
    """

    def __init__(self, group: str = DEFAULT_GROUP) -> None:
        self.group = group
        self.actions: list[StoredAction] = []

    def _add(self, hook: str, args: list[Any] | None, run_at: datetime) -> StoredAction:
        action = StoredAction(
            id=str(uuid4()),
            hook=hook,
            args=list(args or []),
            group=self.group,
            scheduled_at=run_at,
        )
        self.actions.append(action)
        return action

    def _active(self, hook: str, args: list[Any] | None) -> list[StoredAction]:
        return [
            a
            for a in self.actions
            if a.hook == hook
            and a.status in (STATUS_PENDING, STATUS_RUNNING)
            and (args is None or a.args == list(args))
        ]

    def pending(self, hook: str | None = None) -> list[StoredAction]:
        return [
            a for a in self.actions if a.status == STATUS_PENDING and (hook is None or a.hook == hook)
        ]

    async def schedule_immediate(self, hook: str, args: list[Any] | None = None) -> str:
        return self._add(hook, args, utc_now()).id

    async def schedule_single(self, delay_seconds: int, hook: str, args: list[Any] | None = None) -> str:
        return self._add(hook, args, utc_now() + timedelta(seconds=max(0, delay_seconds))).id

    async def has_scheduled_action(self, hook: str, args: list[Any] | None = None) -> bool:
        return bool(self._active(hook, args))

    async def reserve(self, hook: str, args: list[Any] | None = None) -> bool:
        # No await between check and insert, so this is atomic on one event loop.
        if self._active(hook, None):
            return False
        self._add(hook, args, utc_now())
        return True

    async def count_failed_actions(
        self, hook: str, args: list[Any] | None, since: datetime, limit: int
    ) -> int:
        failed = [
            a
            for a in self.actions
            if a.hook == hook
            and a.status == STATUS_FAILED
            and (args is None or a.args == list(args))
            and a.completed_at is not None
            and a.completed_at > since
        ]
        return min(len(failed), max(1, limit))

    async def cancel_all(self, hook: str, args: list[Any] | None = None) -> int:
        canceled = 0
        now = utc_now()
        for action in self.actions:
            if action.hook == hook and action.status == STATUS_PENDING and (
                args is None or action.args == list(args)
            ):
                action.status = STATUS_CANCELED
                action.completed_at = now
                canceled += 1
        return canceled

    async def claim_next_action(self, *, worker_id: str, lease_seconds: int) -> ClaimedAction | None:
        now = utc_now()
        due = [a for a in self.actions if a.status == STATUS_PENDING and a.scheduled_at <= now]
        if not due:
            return None
        action = min(due, key=lambda a: a.scheduled_at)
        action.status = STATUS_RUNNING
        action.locked_by = worker_id
        action.lease_until = now + timedelta(seconds=max(5, lease_seconds))
        action.attempts += 1
        return ClaimedAction(
            id=action.id,
            hook=action.hook,
            args=list(action.args),
            group=action.group,
            scheduled_at=action.scheduled_at,
            attempts=action.attempts,
        )

    def _get(self, action_id: str) -> StoredAction:
        for action in self.actions:
            if action.id == action_id:
                return action
        raise KeyError(action_id)

    async def mark_action_complete(self, *, action_id: str) -> None:
        action = self._get(action_id)
        action.status = STATUS_COMPLETE
        action.completed_at = utc_now()
        action.lease_until = None
        action.last_error = None

    async def mark_action_failed(self, *, action_id: str, error: str) -> None:
        action = self._get(action_id)
        action.status = STATUS_FAILED
        action.completed_at = utc_now()
        action.lease_until = None
        action.last_error = error

    async def extend_lease(self, *, action_id: str, worker_id: str, lease_seconds: int) -> bool:
        action = self._get(action_id)
        if action.status != STATUS_RUNNING or action.locked_by != worker_id:
            return False
        action.lease_until = utc_now() + timedelta(seconds=max(5, lease_seconds))
        return True

    async def requeue_expired_running_actions(self, *, limit: int = 500) -> int:
        now = utc_now()
        expired = [
            a
            for a in self.actions
            if a.status == STATUS_RUNNING and a.lease_until is not None and a.lease_until < now
        ][: max(1, limit)]
        for action in expired:
            action.status = STATUS_PENDING
            action.lease_until = None
            action.locked_by = None
            action.last_error = action.last_error or "Lease expired"
            action.scheduled_at = now
        return len(expired)
