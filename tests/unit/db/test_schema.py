from __future__ import annotations

import pytest

from gla_sync.db.schema import SCHEMA_STATEMENTS, apply_schema

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_apply_schema_runs_every_statement_in_one_transaction(mock_db_pool):
    conn = mock_db_pool.acquire.return_value.__aenter__.return_value

    await apply_schema()

    assert conn.transaction.call_count == 1
    assert [c.args[0] for c in conn.execute.await_args_list] == list(SCHEMA_STATEMENTS)
