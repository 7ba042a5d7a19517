"""Product models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    NOT_SYNCED = "not-synced"
    SYNCED = "synced"
    HAS_ERRORS = "has-errors"


class ChannelVisibility(str, Enum):
    SYNC_AND_SHOW = "sync-and-show"
    DONT_SYNC_AND_SHOW = "dont-sync-and-show"


SUPPORTED_PRODUCT_TYPES: tuple[str, ...] = ("simple", "variation")


class Product(BaseModel):
    """A store product as read from the catalog."""

    id: int
    name: str = ""
    sku: str | None = None
    product_type: str = "simple"
    status: str = "publish"
    visibility: ChannelVisibility = ChannelVisibility.SYNC_AND_SHOW
    price: Decimal | None = None
    currency: str = "USD"
    description: str = ""
    link: str | None = None
    image_link: str | None = None
    in_stock: bool = True
    sync_status: SyncStatus = SyncStatus.NOT_SYNCED
    google_ids: dict[str, str] = Field(default_factory=dict)
    synced_at: datetime | None = None


class FilteredProductList:
    """One page of sync-ready products plus the total eligible count."""

    def __init__(self, products: list[Product], total_count: int) -> None:
        self._products = list(products)
        self.total_count = int(total_count)

    def get(self) -> list[Product]:
        return list(self._products)

    @property
    def product_ids(self) -> list[int]:
        return [p.id for p in self._products]

    def __len__(self) -> int:
        return len(self._products)

    def __bool__(self) -> bool:
        return bool(self._products)


class ProductSyncResult(BaseModel):
    """A product accepted by Merchant Center."""

    product_id: int
    google_id: str
    target_country: str | None = None


class ProductSyncError(BaseModel):
    """A product rejected locally (validation) or remotely (Merchant Center)."""

    product_id: int
    errors: list[str] = Field(default_factory=list)
    remote: bool = True


class BatchProductResponse(BaseModel):
    synced: list[ProductSyncResult] = Field(default_factory=list)
    errors: list[ProductSyncError] = Field(default_factory=list)

    def failed_ids(self) -> list[int]:
        return [e.product_id for e in self.errors]


class ProductEntry(BaseModel):
    """One insert entry of a Content API products batch."""

    batch_id: int
    product_id: int
    payload: dict[str, Any]
