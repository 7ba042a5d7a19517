from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from gla_sync import cli
from gla_sync.jobs.scheduler import InMemoryActionScheduler

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def in_memory_scheduler():
    with patch.object(cli, "PostgresActionScheduler", InMemoryActionScheduler):
        yield


def test_jobs_lists_registered_jobs(capsys):
    assert cli.main(["jobs"]) == 0

    assert "update_all_products" in capsys.readouterr().out


def test_schedule_without_merchant_center_is_not_scheduled(capsys):
    assert cli.main(["schedule", "update_all_products"]) == 1

    assert "not scheduled" in capsys.readouterr().out


def test_unknown_job_fails():
    assert cli.main(["schedule", "update_nothing"]) == 1


def test_cancel_reports_count(capsys):
    assert cli.main(["cancel", "update_all_products"]) == 0

    assert "canceled 0 pending action(s)" in capsys.readouterr().out


def test_init_db_applies_schema():
    with patch.object(cli, "apply_schema", new_callable=AsyncMock) as apply_schema:
        assert cli.main(["init-db"]) == 0

    apply_schema.assert_awaited_once()
