"""Batched product sync jobs for Google Merchant Center."""

__version__ = "0.1.0"
