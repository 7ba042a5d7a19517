"""
Job monitor

Answers "is this job already running?" and stops jobs whose actions keep
failing. The failure-rate check is what bounds the retry-forever policy of
process_item: each failed run is recorded by the worker, and once enough
failures pile up inside the timeframe the handler refuses to run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from gla_sync.hooks import HookRegistry
from gla_sync.jobs.scheduler import ActionScheduler
from gla_sync.kernel.errors import JobError
from gla_sync.kernel.time import seconds_ago

if TYPE_CHECKING:
    from gla_sync.jobs.base import AbstractActionJob

logger = structlog.get_logger()

FAILURE_RATE_THRESHOLD_FILTER = "gla/job_failure_rate_threshold"
FAILURE_TIMEFRAME_FILTER = "gla/job_failure_timeframe"


class JobMonitor:
    def __init__(
        self,
        scheduler: ActionScheduler,
        hooks: HookRegistry,
        *,
        failure_rate_threshold: int = 3,
        failure_timeframe_seconds: int = 3600,
    ) -> None:
        self.scheduler = scheduler
        self.hooks = hooks
        self._failure_rate_threshold = failure_rate_threshold
        self._failure_timeframe_seconds = failure_timeframe_seconds

    async def is_running(self, hook: str, args: list[Any] | None = None) -> bool:
        return await self.scheduler.has_scheduled_action(hook, args)

    def get_failure_rate_threshold(self) -> int:
        return int(self.hooks.apply_filters(FAILURE_RATE_THRESHOLD_FILTER, self._failure_rate_threshold))

    def get_failure_timeframe(self) -> int:
        return int(self.hooks.apply_filters(FAILURE_TIMEFRAME_FILTER, self._failure_timeframe_seconds))

    async def validate_failure_rate(
        self, job: "AbstractActionJob", hook: str, args: list[Any] | None = None
    ) -> None:
        """Raise JobError if `hook(args)` failed too often in the recent timeframe."""
        threshold = self.get_failure_rate_threshold()
        if threshold < 1:
            return

        failures = await self.scheduler.count_failed_actions(
            hook,
            args,
            seconds_ago(self.get_failure_timeframe()),
            threshold,
        )
        if failures >= threshold:
            logger.error(
                "Job stopped due to high failure rate",
                job=job.name,
                hook=hook,
                failures=failures,
                threshold=threshold,
            )
            raise JobError.stopped_due_to_high_failure_rate(job.name, failures=failures, threshold=threshold)
