from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gla_sync.kernel.time import coerce_utc, is_tz_aware, isoformat_z, seconds_ago, utc_now

pytestmark = pytest.mark.unit


def test_utc_now_is_tz_aware():
    assert is_tz_aware(utc_now())


def test_coerce_utc():
    naive = datetime(2024, 1, 1, 12, 0)
    offset = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    assert coerce_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert coerce_utc(offset) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        coerce_utc(naive, assume_naive_is_utc=False)


def test_seconds_ago():
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    assert seconds_ago(3600, now=now) == datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)
    assert seconds_ago(-5, now=now) == now


def test_isoformat_z():
    assert isoformat_z(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)) == "2024-01-01T12:00:00Z"
