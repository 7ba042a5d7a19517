"""
Action jobs

A job owns a set of hooks under `gla/jobs/<name>/` and registers handlers for
them. `AbstractActionJob` covers the process_item half: run a unit of work,
and on failure reschedule the identical action before re-raising so the
worker records the failed attempt.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog

from gla_sync.hooks import HookRegistry
from gla_sync.jobs.monitor import JobMonitor
from gla_sync.jobs.payloads import ProcessItemArgs
from gla_sync.jobs.scheduler import ActionScheduler
from gla_sync.monitoring.metrics import Metrics, get_metrics

logger = structlog.get_logger()

HOOK_PREFIX = "gla/jobs"


class AbstractActionJob(ABC):
    name: str = ""

    # Errors that trigger a reschedule of the failed process_item action.
    retryable_errors: tuple[type[Exception], ...] = (Exception,)

    def __init__(
        self,
        scheduler: ActionScheduler,
        monitor: JobMonitor,
        hooks: HookRegistry,
        *,
        retry_delay_seconds: int = 0,
        metrics: Metrics | None = None,
    ) -> None:
        if not self.name:
            raise TypeError(f"{type(self).__name__} must define a job name")
        self.scheduler = scheduler
        self.monitor = monitor
        self.hooks = hooks
        self.retry_delay_seconds = max(0, int(retry_delay_seconds))
        self._metrics = metrics

    @property
    def metrics(self) -> Metrics:
        if self._metrics is None:
            self._metrics = get_metrics()
        return self._metrics

    @property
    def hook_base_name(self) -> str:
        return f"{HOOK_PREFIX}/{self.name}/"

    @property
    def process_item_hook(self) -> str:
        return f"{self.hook_base_name}process_item"

    def init(self) -> None:
        self.hooks.add_action(self.process_item_hook, self.handle_process_item)

    async def is_running(self, args: list[Any] | None = None) -> bool:
        return await self.monitor.is_running(self.process_item_hook, args)

    async def can_schedule(self, args: list[Any] | None = None) -> bool:
        return not await self.is_running(args)

    @abstractmethod
    async def schedule(self, args: list[Any] | None = None) -> bool:
        """Start a run of this job. Returns False when nothing was scheduled."""

    @abstractmethod
    async def process_items(self, item_ids: list[int]) -> None:
        """Do the work for one batch of items."""

    async def schedule_process_action(self, item_ids: list[int]) -> None:
        await self.scheduler.schedule_immediate(
            self.process_item_hook, ProcessItemArgs(item_ids=tuple(item_ids)).to_args()
        )

    async def handle_process_item(self, item_ids: list[int]) -> None:
        payload = ProcessItemArgs.from_args([item_ids])
        hook = self.process_item_hook
        args = payload.to_args()

        await self.monitor.validate_failure_rate(self, hook, args)

        try:
            await self.process_items(list(payload.item_ids))
        except self.retryable_errors as exc:
            await self._reschedule(hook, args)
            logger.warning(
                "Process item failed, rescheduled",
                job=self.name,
                item_count=len(payload.item_ids),
                retry_delay_seconds=self.retry_delay_seconds,
                error=str(exc),
            )
            raise

    async def _reschedule(self, hook: str, args: list[Any]) -> None:
        if self.retry_delay_seconds:
            await self.scheduler.schedule_single(self.retry_delay_seconds, hook, args)
        else:
            await self.scheduler.schedule_immediate(hook, args)
        self.metrics.track_reschedule(hook)
