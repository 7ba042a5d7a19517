"""
Product syncer

Sends products to Merchant Center and records the outcome on the catalog.
Products that fail local validation are marked invalid and skipped; they
would never succeed remotely, so they do not make the batch fail. Any
transport error or remote rejection raises ProductSyncerError, which the
update_all_products job treats as retryable.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Sequence

import structlog

from gla_sync.kernel.errors import GlaError
from gla_sync.monitoring.metrics import Metrics, get_metrics
from gla_sync.products.models import Product, ProductEntry, ProductSyncError
from gla_sync.products.repository import ProductRepository

if TYPE_CHECKING:
    from gla_sync.merchant_center.client import MerchantCenterClient

logger = structlog.get_logger()


class ProductSyncerError(GlaError):
    def __init__(
        self,
        *,
        message: str = "Product sync failed",
        code: str = "product.sync_failed",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)


def validate_product(product: Product) -> list[str]:
    errors: list[str] = []
    if not product.name.strip():
        errors.append("Product title is required")
    if product.price is None:
        errors.append("Product price is required")
    elif product.price < Decimal("0"):
        errors.append("Product price must not be negative")
    return errors


def build_product_payload(product: Product, *, target_country: str, content_language: str) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "offerId": product.sku or str(product.id),
        "title": product.name,
        "description": product.description or product.name,
        "channel": "online",
        "contentLanguage": content_language,
        "targetCountry": target_country,
        "availability": "in stock" if product.in_stock else "out of stock",
        "price": {"value": str(product.price), "currency": product.currency},
    }
    if product.link:
        payload["link"] = product.link
    if product.image_link:
        payload["imageLink"] = product.image_link
    return payload


class ProductSyncer:
    def __init__(
        self,
        client: "MerchantCenterClient",
        repository: ProductRepository,
        *,
        target_country: str = "US",
        content_language: str = "en",
        metrics: Metrics | None = None,
    ) -> None:
        self.client = client
        self.repository = repository
        self.target_country = target_country
        self.content_language = content_language
        self._metrics = metrics

    @property
    def metrics(self) -> Metrics:
        if self._metrics is None:
            self._metrics = get_metrics()
        return self._metrics

    async def update(self, products: Sequence[Product]) -> None:
        if not self.client.is_connected():
            raise ProductSyncerError(
                message="Merchant Center account is not connected",
                code="product.merchant_center_disconnected",
            )

        entries: list[ProductEntry] = []
        invalid: list[ProductSyncError] = []
        for batch_id, product in enumerate(products):
            errors = validate_product(product)
            if errors:
                invalid.append(ProductSyncError(product_id=product.id, errors=errors, remote=False))
                continue
            entries.append(
                ProductEntry(
                    batch_id=batch_id,
                    product_id=product.id,
                    payload=build_product_payload(
                        product,
                        target_country=self.target_country,
                        content_language=self.content_language,
                    ),
                )
            )

        if invalid:
            await self.repository.mark_as_invalid(invalid)
            self.metrics.track_products("invalid", len(invalid))
            logger.info("Skipped invalid products", product_ids=[e.product_id for e in invalid])

        if not entries:
            return

        try:
            response = await self.client.insert_batch(entries)
        except GlaError as exc:
            raise ProductSyncerError(
                message=f"Merchant Center batch insert failed: {exc.message}",
                meta={"product_ids": [e.product_id for e in entries], **exc.meta},
            ) from exc

        await self.repository.mark_as_synced(response.synced)
        await self.repository.mark_as_invalid(response.errors)
        self.metrics.track_products("synced", len(response.synced))
        self.metrics.track_products("failed", len(response.errors))

        logger.info(
            "Products synced",
            synced=len(response.synced),
            failed=len(response.errors),
            invalid=len(invalid),
        )

        if response.errors:
            raise ProductSyncerError(
                message=f"{len(response.errors)} product(s) failed to sync",
                meta={"product_ids": response.failed_ids()},
            )
