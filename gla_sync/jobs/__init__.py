"""
Background Jobs

Durable scheduled actions and the batched jobs built on them.
"""

from gla_sync.jobs.base import AbstractActionJob
from gla_sync.jobs.batched import BATCH_SIZE_FILTER, AbstractBatchedJob
from gla_sync.jobs.monitor import JobMonitor
from gla_sync.jobs.registry import JobRegistry, build_job_registry
from gla_sync.jobs.scheduler import (
    ActionQueue,
    ActionScheduler,
    InMemoryActionScheduler,
    PostgresActionScheduler,
)
from gla_sync.jobs.update_all_products import UpdateAllProducts

__all__ = [
    # Jobs
    "AbstractActionJob",
    "AbstractBatchedJob",
    "BATCH_SIZE_FILTER",
    "UpdateAllProducts",
    # Scheduling
    "ActionQueue",
    "ActionScheduler",
    "InMemoryActionScheduler",
    "PostgresActionScheduler",
    "JobMonitor",
    # Registry
    "JobRegistry",
    "build_job_registry",
]
