"""PostgreSQL database module."""

from .client import close_db_pool, get_db_pool

__all__ = [
    "get_db_pool",
    "close_db_pool",
]
