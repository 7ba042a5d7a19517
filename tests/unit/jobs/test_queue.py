from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_enqueue_action_inserts_pending_row(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value

    from gla_sync.jobs.queue import ScheduleActionRequest, enqueue_action

    action_id = await enqueue_action(ScheduleActionRequest(hook="gla/jobs/a/create_batch", args=[1]))

    assert action_id
    sql, *params = conn.execute.await_args.args
    assert "INSERT INTO scheduled_action" in sql
    assert params[1] == "gla/jobs/a/create_batch"
    assert params[2] == [1]
    assert params[3] == "gla"


@pytest.mark.asyncio
async def test_reserve_action_returns_none_when_hook_taken(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.fetchrow.return_value = None

    from gla_sync.jobs.queue import ScheduleActionRequest, reserve_action

    assert await reserve_action(ScheduleActionRequest(hook="h", args=[1])) is None
    lock_sql = conn.execute.await_args_list[0].args[0]
    assert "pg_advisory_xact_lock" in lock_sql
    assert conn.transaction.called


@pytest.mark.asyncio
async def test_reserve_action_returns_new_id(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.fetchrow.return_value = {"id": "act_1"}

    from gla_sync.jobs.queue import ScheduleActionRequest, reserve_action

    assert await reserve_action(ScheduleActionRequest(hook="h", args=[1])) == "act_1"


@pytest.mark.asyncio
async def test_has_scheduled_action(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.fetchval.return_value = True

    from gla_sync.jobs.queue import has_scheduled_action

    assert await has_scheduled_action("h", [[1, 2]]) is True
    assert conn.fetchval.await_args.args[1:] == ("h", [[1, 2]])


@pytest.mark.asyncio
async def test_has_scheduled_action_without_args_passes_null(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.fetchval.return_value = False

    from gla_sync.jobs.queue import has_scheduled_action

    assert await has_scheduled_action("h") is False
    assert conn.fetchval.await_args.args[2] is None


@pytest.mark.asyncio
async def test_count_failed_actions_returns_row_count(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.fetch.return_value = [{"id": "a"}, {"id": "b"}]

    from gla_sync.jobs.queue import count_failed_actions

    since = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert await count_failed_actions(hook="h", args=None, since=since, limit=3) == 2


@pytest.mark.asyncio
async def test_claim_next_action_returns_claimed_row(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.fetchrow.return_value = {
        "id": "act_1",
        "hook": "gla/jobs/a/process_item",
        "args": [[1, 2]],
        "action_group": "gla",
        "scheduled_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "attempts": 1,
    }

    from gla_sync.jobs.queue import claim_next_action

    claimed = await claim_next_action(worker_id="w1", lease_seconds=30)

    assert claimed.id == "act_1"
    assert claimed.args == [[1, 2]]
    assert claimed.attempts == 1


@pytest.mark.asyncio
async def test_claim_next_action_returns_none_when_empty(mock_db_pool):
    from gla_sync.jobs.queue import claim_next_action

    assert await claim_next_action(worker_id="w1", lease_seconds=30) is None


@pytest.mark.asyncio
async def test_mark_action_failed_records_error(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value

    from gla_sync.jobs.queue import mark_action_failed

    await mark_action_failed(action_id="act_1", error="product.sync_failed: boom")

    sql, action_id, _now, error = conn.execute.await_args.args
    assert "status = 'failed'" in sql
    assert action_id == "act_1"
    assert error == "product.sync_failed: boom"


@pytest.mark.asyncio
async def test_requeue_expired_running_actions_returns_count(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.fetch.return_value = [{"id": "act_1"}, {"id": "act_2"}]

    from gla_sync.jobs.queue import requeue_expired_running_actions

    assert await requeue_expired_running_actions(limit=123) == 2
    assert conn.fetch.called


@pytest.mark.asyncio
async def test_extend_lease_is_scoped_to_the_holding_worker(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value
    conn.execute.return_value = "UPDATE 1"

    from gla_sync.jobs.queue import extend_lease

    assert await extend_lease(action_id="act_1", worker_id="w1", lease_seconds=30) is True

    sql, action_id, now, lease_until, worker_id = conn.execute.await_args.args
    assert "status = 'running'" in sql
    assert "locked_by = $4" in sql
    assert (action_id, worker_id) == ("act_1", "w1")
    assert lease_until - now == timedelta(seconds=30)


@pytest.mark.asyncio
async def test_extend_lease_reports_a_lost_lease(mock_db_pool):
    from gla_sync.jobs.queue import extend_lease

    assert await extend_lease(action_id="act_1", worker_id="w1", lease_seconds=30) is False
