"""Sync every sync-ready product to Merchant Center, one batch per action."""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from gla_sync.hooks import HookRegistry
from gla_sync.jobs.batched import DEFAULT_BATCH_SIZE, AbstractBatchedJob
from gla_sync.jobs.monitor import JobMonitor
from gla_sync.jobs.scheduler import ActionScheduler
from gla_sync.merchant_center.client import MerchantCenterClient
from gla_sync.monitoring.metrics import Metrics
from gla_sync.products.repository import ProductRepository
from gla_sync.products.syncer import ProductSyncer, ProductSyncerError

logger = structlog.get_logger()


class UpdateAllProducts(AbstractBatchedJob):
    name = "update_all_products"
    retryable_errors = (ProductSyncerError,)

    def __init__(
        self,
        scheduler: ActionScheduler,
        monitor: JobMonitor,
        hooks: HookRegistry,
        product_syncer: ProductSyncer,
        product_repository: ProductRepository,
        merchant_center: MerchantCenterClient,
        *,
        filters: Mapping[str, Any] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_delay_seconds: int = 0,
        metrics: Metrics | None = None,
    ) -> None:
        super().__init__(
            scheduler,
            monitor,
            hooks,
            batch_size=batch_size,
            retry_delay_seconds=retry_delay_seconds,
            metrics=metrics,
        )
        self.product_syncer = product_syncer
        self.product_repository = product_repository
        self.merchant_center = merchant_center
        self.filters = dict(filters or {})

    async def can_schedule(self, args: list[Any] | None = None) -> bool:
        if not self.merchant_center.is_connected():
            logger.info("Merchant Center not connected, skipping", job=self.name)
            return False
        return await super().can_schedule(args)

    async def get_batch(self, page: int) -> list[int]:
        product_list = await self.product_repository.find_sync_ready_products(
            self.filters,
            self.get_batch_size(),
            self.get_query_offset(page),
        )
        if product_list:
            logger.debug(
                "Fetched product batch",
                job=self.name,
                page=page,
                count=len(product_list),
                total=product_list.total_count,
            )
        return product_list.product_ids

    async def process_items(self, item_ids: list[int]) -> None:
        # Re-read: the catalog may have changed since the batch was created.
        products = await self.product_repository.find_by_ids(item_ids)
        await self.product_syncer.update(products)

    async def handle_complete(self, final_page: int) -> None:
        logger.info(
            "All products scheduled for sync",
            job=self.name,
            final_page=final_page,
            batch_size=self.get_batch_size(),
        )
