"""Google Merchant Center access."""

from gla_sync.merchant_center.client import ContentApiClient, MerchantCenterClient

__all__ = [
    "ContentApiClient",
    "MerchantCenterClient",
]
