"""Content API for Shopping client (products batch insert only)."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

import httpx
import structlog

from gla_sync.config import Settings, get_settings
from gla_sync.kernel.errors import UpstreamError
from gla_sync.products.models import (
    BatchProductResponse,
    ProductEntry,
    ProductSyncError,
    ProductSyncResult,
)

logger = structlog.get_logger()


class MerchantCenterClient(Protocol):
    def is_connected(self) -> bool: ...

    async def insert_batch(self, entries: Sequence[ProductEntry]) -> BatchProductResponse: ...


class ContentApiClient:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    def is_connected(self) -> bool:
        return bool(self.settings.merchant_center_id and self.settings.merchant_center_access_token)

    async def insert_batch(self, entries: Sequence[ProductEntry]) -> BatchProductResponse:
        if not entries:
            return BatchProductResponse()

        merchant_id = self.settings.merchant_center_id
        body = {
            "entries": [
                {
                    "batchId": entry.batch_id,
                    "merchantId": merchant_id,
                    "method": "insert",
                    "product": entry.payload,
                }
                for entry in entries
            ]
        }
        headers = {
            "Authorization": f"Bearer {self.settings.merchant_center_access_token}",
            "Content-Type": "application/json",
        }
        url = f"{self.settings.content_api_base_url.rstrip('/')}/products/batch"

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.content_api_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(
                message="Content API request failed",
                code="upstream.content_api",
                meta={"error": str(exc)},
            ) from exc

        if response.status_code >= 400:
            logger.warning(
                "Content API batch rejected",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise UpstreamError(
                message="Content API batch rejected",
                code="upstream.content_api",
                meta={"status_code": response.status_code},
            )

        return parse_batch_response(response.json(), entries, self.settings.target_country)


def parse_batch_response(
    data: dict[str, Any],
    entries: Sequence[ProductEntry],
    target_country: str | None = None,
) -> BatchProductResponse:
    """Map batch entries back to store product ids by batchId."""
    product_ids = {entry.batch_id: entry.product_id for entry in entries}
    result = BatchProductResponse()

    for item in data.get("entries") or []:
        product_id = product_ids.get(int(item.get("batchId", -1)))
        if product_id is None:
            continue
        errors = (item.get("errors") or {}).get("errors") or []
        if errors:
            result.errors.append(
                ProductSyncError(
                    product_id=product_id,
                    errors=[str(e.get("message") or e.get("reason") or "unknown") for e in errors],
                )
            )
            continue
        google_id = (item.get("product") or {}).get("id")
        if not google_id:
            result.errors.append(ProductSyncError(product_id=product_id, errors=["Missing product id in response"]))
            continue
        result.synced.append(
            ProductSyncResult(product_id=product_id, google_id=str(google_id), target_country=target_country)
        )

    answered = {r.product_id for r in result.synced} | {e.product_id for e in result.errors}
    for entry in entries:
        if entry.product_id not in answered:
            result.errors.append(ProductSyncError(product_id=entry.product_id, errors=["No response entry"]))

    return result
