"""Store catalog: models, repository and the Merchant Center syncer."""

from gla_sync.products.models import FilteredProductList, Product
from gla_sync.products.repository import (
    InMemoryProductRepository,
    PostgresProductRepository,
    ProductRepository,
)
from gla_sync.products.syncer import ProductSyncer, ProductSyncerError

__all__ = [
    "FilteredProductList",
    "InMemoryProductRepository",
    "PostgresProductRepository",
    "Product",
    "ProductRepository",
    "ProductSyncer",
    "ProductSyncerError",
]
