"""Job registry and the default wiring used by the worker and CLI."""

from __future__ import annotations

from typing import Iterable

import structlog

from gla_sync.config import Settings
from gla_sync.hooks import HookRegistry
from gla_sync.jobs.base import AbstractActionJob
from gla_sync.jobs.monitor import JobMonitor
from gla_sync.jobs.scheduler import ActionScheduler
from gla_sync.jobs.update_all_products import UpdateAllProducts
from gla_sync.kernel.errors import NotFoundError
from gla_sync.merchant_center.client import MerchantCenterClient
from gla_sync.products.repository import ProductRepository
from gla_sync.products.syncer import ProductSyncer

logger = structlog.get_logger()


class JobRegistry:
    def __init__(self, jobs: Iterable[AbstractActionJob] = ()) -> None:
        self._jobs: dict[str, AbstractActionJob] = {}
        for job in jobs:
            self.register(job)

    def register(self, job: AbstractActionJob) -> None:
        if job.name in self._jobs:
            raise ValueError(f"Job already registered: {job.name}")
        self._jobs[job.name] = job

    def get(self, name: str) -> AbstractActionJob:
        try:
            return self._jobs[name]
        except KeyError:
            raise NotFoundError(
                message=f"Unknown job: {name}",
                code="job.not_found",
                meta={"job": name, "available": sorted(self._jobs)},
            ) from None

    def names(self) -> list[str]:
        return sorted(self._jobs)

    def init_all(self) -> None:
        for job in self._jobs.values():
            job.init()
        logger.debug("Jobs initialized", jobs=self.names())


def build_job_registry(
    settings: Settings,
    *,
    scheduler: ActionScheduler,
    hooks: HookRegistry,
    repository: ProductRepository,
    merchant_center: MerchantCenterClient,
) -> JobRegistry:
    monitor = JobMonitor(
        scheduler,
        hooks,
        failure_rate_threshold=settings.job_failure_rate_threshold,
        failure_timeframe_seconds=settings.job_failure_timeframe_seconds,
    )
    syncer = ProductSyncer(
        merchant_center,
        repository,
        target_country=settings.target_country,
        content_language=settings.content_language,
    )
    registry = JobRegistry(
        [
            UpdateAllProducts(
                scheduler,
                monitor,
                hooks,
                syncer,
                repository,
                merchant_center,
                batch_size=settings.job_batch_size,
                retry_delay_seconds=settings.job_retry_delay_seconds,
            ),
        ]
    )
    registry.init_all()
    return registry
