"""
Product repository

Offset pagination over sync-ready products. Ordering is by product id so a
static catalog is paged without skips or repeats.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

import structlog

from gla_sync.db import client as db_client
from gla_sync.kernel.errors import ValidationError
from gla_sync.kernel.time import utc_now
from gla_sync.products.models import (
    SUPPORTED_PRODUCT_TYPES,
    ChannelVisibility,
    FilteredProductList,
    Product,
    ProductSyncError,
    ProductSyncResult,
    SyncStatus,
)

logger = structlog.get_logger()

# Filter key -> column. Anything else is rejected.
FILTERABLE_COLUMNS: dict[str, str] = {
    "product_type": "product_type",
    "sync_status": "sync_status",
    "in_stock": "in_stock",
    "currency": "currency",
}

_PRODUCT_COLUMNS = (
    "id, name, sku, product_type, status, visibility, price, currency, description, "
    "link, image_link, in_stock, sync_status, google_ids, synced_at"
)


class ProductRepository(Protocol):
    async def find_sync_ready_products(
        self, filters: Mapping[str, Any] | None, limit: int, offset: int
    ) -> FilteredProductList: ...

    async def find_by_ids(self, ids: Sequence[int]) -> list[Product]: ...

    async def mark_as_synced(self, results: Sequence[ProductSyncResult]) -> None: ...

    async def mark_as_invalid(self, errors: Sequence[ProductSyncError]) -> None: ...


def validate_filters(filters: Mapping[str, Any] | None) -> dict[str, Any]:
    filters = dict(filters or {})
    unknown = sorted(set(filters) - set(FILTERABLE_COLUMNS))
    if unknown:
        raise ValidationError(
            message="Unsupported product filter",
            code="product.invalid_filter",
            meta={"filters": unknown},
        )
    return filters


def is_sync_ready(product: Product) -> bool:
    return (
        product.status == "publish"
        and product.product_type in SUPPORTED_PRODUCT_TYPES
        and product.visibility != ChannelVisibility.DONT_SYNC_AND_SHOW
    )


class PostgresProductRepository:
    async def find_sync_ready_products(
        self, filters: Mapping[str, Any] | None, limit: int, offset: int
    ) -> FilteredProductList:
        filters = validate_filters(filters)

        clauses = [
            "status = 'publish'",
            "product_type = ANY($1::text[])",
            "visibility <> $2",
        ]
        params: list[Any] = [list(SUPPORTED_PRODUCT_TYPES), ChannelVisibility.DONT_SYNC_AND_SHOW.value]
        for key, value in sorted(filters.items()):
            params.append(value.value if hasattr(value, "value") else value)
            clauses.append(f"{FILTERABLE_COLUMNS[key]} = ${len(params)}")
        where = " AND ".join(clauses)

        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM product WHERE {where}", *params)
            rows = await conn.fetch(
                f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM product
                WHERE {where}
                ORDER BY id ASC
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
                """,
                *params,
                int(limit),
                int(max(0, offset)),
            )

        return FilteredProductList([Product.model_validate(dict(row)) for row in rows], int(total or 0))

    async def find_by_ids(self, ids: Sequence[int]) -> list[Product]:
        if not ids:
            return []
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_PRODUCT_COLUMNS} FROM product WHERE id = ANY($1::bigint[])",
                [int(i) for i in ids],
            )
        by_id = {int(row["id"]): Product.model_validate(dict(row)) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    async def mark_as_synced(self, results: Sequence[ProductSyncResult]) -> None:
        if not results:
            return
        now = utc_now()
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            await conn.executemany(
                """
                UPDATE product
                SET sync_status = 'synced',
                    google_ids = google_ids || jsonb_build_object($2::text, $3::text),
                    sync_errors = '[]'::jsonb,
                    synced_at = $4
                WHERE id = $1
                """,
                [(r.product_id, r.target_country or "", r.google_id, now) for r in results],
            )

    async def mark_as_invalid(self, errors: Sequence[ProductSyncError]) -> None:
        if not errors:
            return
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            await conn.executemany(
                """
                UPDATE product
                SET sync_status = 'has-errors',
                    sync_errors = $2::jsonb
                WHERE id = $1
                """,
                [(e.product_id, list(e.errors)) for e in errors],
            )


class InMemoryProductRepository:
    def __init__(self, products: Sequence[Product] = ()) -> None:
        self.products: dict[int, Product] = {p.id: p for p in products}
        self.sync_errors: dict[int, list[str]] = {}

    async def find_sync_ready_products(
        self, filters: Mapping[str, Any] | None, limit: int, offset: int
    ) -> FilteredProductList:
        filters = validate_filters(filters)
        eligible = [
            p
            for _, p in sorted(self.products.items())
            if is_sync_ready(p) and all(getattr(p, key) == value for key, value in filters.items())
        ]
        offset = max(0, offset)
        return FilteredProductList(eligible[offset : offset + limit], len(eligible))

    async def find_by_ids(self, ids: Sequence[int]) -> list[Product]:
        return [self.products[i] for i in ids if i in self.products]

    async def mark_as_synced(self, results: Sequence[ProductSyncResult]) -> None:
        now = utc_now()
        for result in results:
            product = self.products[result.product_id]
            google_ids = {**product.google_ids, (result.target_country or ""): result.google_id}
            self.products[result.product_id] = product.model_copy(
                update={"sync_status": SyncStatus.SYNCED, "google_ids": google_ids, "synced_at": now}
            )
            self.sync_errors.pop(result.product_id, None)

    async def mark_as_invalid(self, errors: Sequence[ProductSyncError]) -> None:
        for error in errors:
            product = self.products[error.product_id]
            self.products[error.product_id] = product.model_copy(update={"sync_status": SyncStatus.HAS_ERRORS})
            self.sync_errors[error.product_id] = list(error.errors)
