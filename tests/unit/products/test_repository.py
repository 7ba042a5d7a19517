from __future__ import annotations

from decimal import Decimal

import pytest

from gla_sync.kernel.errors import ValidationError
from gla_sync.products.models import ProductSyncError, ProductSyncResult, SyncStatus
from gla_sync.products.repository import (
    InMemoryProductRepository,
    PostgresProductRepository,
    is_sync_ready,
    validate_filters,
)
from tests.support.catalog import make_product, make_products

pytestmark = pytest.mark.unit


def _row(product_id: int, **overrides):
    row = {
        "id": product_id,
        "name": f"Product {product_id}",
        "sku": f"SKU-{product_id}",
        "product_type": "simple",
        "status": "publish",
        "visibility": "sync-and-show",
        "price": Decimal("10.00"),
        "currency": "USD",
        "description": "",
        "link": None,
        "image_link": None,
        "in_stock": True,
        "sync_status": "not-synced",
        "google_ids": {},
        "synced_at": None,
    }
    row.update(overrides)
    return row


class TestValidation:
    def test_unknown_filter_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_filters({"product_type": "simple", "color": "red"})

        assert exc_info.value.code == "product.invalid_filter"
        assert exc_info.value.meta == {"filters": ["color"]}

    def test_none_means_no_filters(self):
        assert validate_filters(None) == {}

    def test_sync_ready(self):
        assert is_sync_ready(make_product(1))
        assert is_sync_ready(make_product(1, product_type="variation"))
        assert not is_sync_ready(make_product(1, status="draft"))
        assert not is_sync_ready(make_product(1, product_type="variable"))
        assert not is_sync_ready(make_product(1, visibility="dont-sync-and-show"))


class TestInMemoryProductRepository:
    @pytest.mark.asyncio
    async def test_pages_in_id_order(self):
        repository = InMemoryProductRepository(list(reversed(make_products(5))))

        first = await repository.find_sync_ready_products({}, 2, 0)
        last = await repository.find_sync_ready_products({}, 2, 4)
        past_end = await repository.find_sync_ready_products({}, 2, 6)

        assert first.product_ids == [1, 2]
        assert first.total_count == 5
        assert last.product_ids == [5]
        assert not past_end
        assert past_end.total_count == 5

    @pytest.mark.asyncio
    async def test_filters_narrow_the_result(self):
        repository = InMemoryProductRepository(
            [make_product(1), make_product(2, product_type="variation"), make_product(3)]
        )

        result = await repository.find_sync_ready_products({"product_type": "simple"}, 10, 0)

        assert result.product_ids == [1, 3]

    @pytest.mark.asyncio
    async def test_find_by_ids_keeps_order_and_skips_missing(self, product_repository):
        products = await product_repository.find_by_ids([3, 99, 1])

        assert [p.id for p in products] == [3, 1]

    @pytest.mark.asyncio
    async def test_mark_as_synced_and_invalid(self, product_repository):
        await product_repository.mark_as_invalid([ProductSyncError(product_id=2, errors=["Bad price"])])
        await product_repository.mark_as_synced(
            [ProductSyncResult(product_id=1, google_id="online:en:US:SKU-1", target_country="US")]
        )

        assert product_repository.products[1].sync_status == SyncStatus.SYNCED
        assert product_repository.products[1].google_ids == {"US": "online:en:US:SKU-1"}
        assert product_repository.products[1].synced_at is not None
        assert product_repository.products[2].sync_status == SyncStatus.HAS_ERRORS
        assert product_repository.sync_errors == {2: ["Bad price"]}


class TestPostgresProductRepository:
    @pytest.mark.asyncio
    async def test_find_sync_ready_products_builds_paged_query(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchval.return_value = 7
        conn.fetch.return_value = [_row(3), _row(4)]

        result = await PostgresProductRepository().find_sync_ready_products({"product_type": "simple"}, 2, 2)

        assert result.product_ids == [3, 4]
        assert result.total_count == 7

        count_sql, *count_params = conn.fetchval.await_args.args
        assert "COUNT(*)" in count_sql
        assert "product_type = $3" in count_sql
        assert count_params == [["simple", "variation"], "dont-sync-and-show", "simple"]

        page_sql, *page_params = conn.fetch.await_args.args
        assert "ORDER BY id ASC" in page_sql
        assert "LIMIT $4 OFFSET $5" in page_sql
        assert page_params[-2:] == [2, 2]

    @pytest.mark.asyncio
    async def test_find_sync_ready_products_rejects_unknown_filters(self, mock_db_pool):
        with pytest.raises(ValidationError):
            await PostgresProductRepository().find_sync_ready_products({"id; DROP": 1}, 2, 0)

        assert not mock_db_pool.acquire.called

    @pytest.mark.asyncio
    async def test_find_by_ids_preserves_requested_order(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.return_value = [_row(1), _row(2), _row(3)]

        products = await PostgresProductRepository().find_by_ids([3, 1, 2])

        assert [p.id for p in products] == [3, 1, 2]
        assert conn.fetch.await_args.args[1] == [3, 1, 2]

    @pytest.mark.asyncio
    async def test_find_by_ids_empty_skips_the_database(self, mock_db_pool):
        assert await PostgresProductRepository().find_by_ids([]) == []
        assert not mock_db_pool.acquire.called

    @pytest.mark.asyncio
    async def test_mark_as_synced_updates_each_product(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value

        await PostgresProductRepository().mark_as_synced(
            [
                ProductSyncResult(product_id=1, google_id="g1", target_country="US"),
                ProductSyncResult(product_id=2, google_id="g2", target_country="US"),
            ]
        )

        sql, rows = conn.executemany.await_args.args
        assert "sync_status = 'synced'" in sql
        assert [(r[0], r[1], r[2]) for r in rows] == [(1, "US", "g1"), (2, "US", "g2")]

    @pytest.mark.asyncio
    async def test_mark_as_invalid_records_errors(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value

        await PostgresProductRepository().mark_as_invalid([ProductSyncError(product_id=5, errors=["Bad GTIN"])])

        sql, rows = conn.executemany.await_args.args
        assert "has-errors" in sql
        assert rows == [(5, ["Bad GTIN"])]
