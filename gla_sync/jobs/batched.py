"""
Batched jobs

Two-hook cycle driven entirely through the scheduler:

    create_batch(page) -> fetch page -> full page:  process_item(ids) + create_batch(page + 1)
                                     -> short page: process_item(ids) + handle_complete(page)
                                     -> empty page: handle_complete(page)

No state is kept between invocations; the page number travels in the action
args, so each step can run on any worker.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any

import structlog

from gla_sync.hooks import HookRegistry
from gla_sync.jobs.base import AbstractActionJob
from gla_sync.jobs.monitor import JobMonitor
from gla_sync.jobs.payloads import CreateBatchArgs
from gla_sync.jobs.scheduler import ActionScheduler
from gla_sync.kernel.errors import JobError
from gla_sync.monitoring.metrics import Metrics

logger = structlog.get_logger()

BATCH_SIZE_FILTER = "gla/batched_job_size"
DEFAULT_BATCH_SIZE = 100


class AbstractBatchedJob(AbstractActionJob):
    def __init__(
        self,
        scheduler: ActionScheduler,
        monitor: JobMonitor,
        hooks: HookRegistry,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_delay_seconds: int = 0,
        metrics: Metrics | None = None,
    ) -> None:
        super().__init__(
            scheduler,
            monitor,
            hooks,
            retry_delay_seconds=retry_delay_seconds,
            metrics=metrics,
        )
        self._batch_size = batch_size

    @property
    def create_batch_hook(self) -> str:
        return f"{self.hook_base_name}create_batch"

    def init(self) -> None:
        self.hooks.add_action(self.create_batch_hook, self.handle_create_batch)
        super().init()

    async def is_running(self, args: list[Any] | None = None) -> bool:
        return await self.monitor.is_running(self.create_batch_hook)

    async def schedule(self, args: list[Any] | None = None) -> bool:
        if not await self.can_schedule(args):
            logger.info("Job not scheduled", job=self.name)
            return False

        # can_schedule is a cheap pre-check; reserve closes the race between
        # concurrent callers by checking and inserting in one step.
        reserved = await self.scheduler.reserve(self.create_batch_hook, CreateBatchArgs(page=1).to_args())
        if not reserved:
            logger.info("Job already running", job=self.name)
            return False

        logger.info("Job scheduled", job=self.name, batch_size=self.get_batch_size())
        return True

    def get_batch_size(self) -> int:
        size = self.hooks.apply_filters(BATCH_SIZE_FILTER, self._batch_size, self.name)
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise JobError.invalid_batch_size(self.name, size)
        return size

    def get_query_offset(self, page: int) -> int:
        return self.get_batch_size() * (page - 1)

    @abstractmethod
    async def get_batch(self, page: int) -> list[int]:
        """Return the item ids for `page` (1-based); empty when exhausted."""

    async def schedule_create_batch_action(self, page: int) -> None:
        await self.scheduler.schedule_immediate(self.create_batch_hook, CreateBatchArgs(page=page).to_args())

    async def handle_create_batch(self, page: int) -> None:
        payload = CreateBatchArgs.from_args([page])
        await self.monitor.validate_failure_rate(self, self.create_batch_hook, payload.to_args())

        items = await self.get_batch(payload.page)
        if not items:
            await self.handle_complete(payload.page)
            return

        await self.schedule_process_action(items)
        logger.debug("Batch created", job=self.name, page=payload.page, item_count=len(items))

        if len(items) >= self.get_batch_size():
            # A full page: there may be more items after it.
            await self.schedule_create_batch_action(payload.page + 1)
        else:
            await self.handle_complete(payload.page)

    async def handle_complete(self, final_page: int) -> None:
        logger.info("Batched job complete", job=self.name, final_page=final_page)
