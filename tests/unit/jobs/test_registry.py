from __future__ import annotations

import pytest

from gla_sync.config import Settings
from gla_sync.jobs.registry import JobRegistry, build_job_registry
from gla_sync.jobs.update_all_products import UpdateAllProducts
from gla_sync.kernel.errors import NotFoundError

pytestmark = pytest.mark.unit


@pytest.fixture
def registry(scheduler, hooks, product_repository, merchant_center):
    settings = Settings(job_batch_size=25, job_retry_delay_seconds=60, job_failure_rate_threshold=5)
    return build_job_registry(
        settings,
        scheduler=scheduler,
        hooks=hooks,
        repository=product_repository,
        merchant_center=merchant_center,
    )


def test_build_job_registry_wires_update_all_products(registry, hooks):
    job = registry.get("update_all_products")

    assert registry.names() == ["update_all_products"]
    assert isinstance(job, UpdateAllProducts)
    assert job.get_batch_size() == 25
    assert job.retry_delay_seconds == 60
    assert job.monitor.get_failure_rate_threshold() == 5
    assert hooks.has_action("gla/jobs/update_all_products/create_batch")
    assert hooks.has_action("gla/jobs/update_all_products/process_item")


def test_unknown_job_raises_not_found(registry):
    with pytest.raises(NotFoundError) as exc_info:
        registry.get("update_some_products")

    assert exc_info.value.code == "job.not_found"
    assert exc_info.value.meta["available"] == ["update_all_products"]


def test_duplicate_registration_is_rejected(registry):
    with pytest.raises(ValueError):
        registry.register(registry.get("update_all_products"))


def test_empty_registry():
    assert JobRegistry().names() == []
