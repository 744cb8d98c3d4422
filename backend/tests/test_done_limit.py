"""Tests for the done-column visible limit."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from taskhub.services.done_limit import (
    DONE_COLUMN_LIMIT,
    activity_timestamp,
    enforce_done_limit,
    parse_timestamp,
)

BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


def _tasks(count: int) -> list[dict]:
    """T1..Tcount with strictly increasing updated_at (T1 oldest)."""
    return [
        {"id": f"T{i}", "updated_at": (BASE + timedelta(minutes=i)).isoformat()}
        for i in range(1, count + 1)
    ]


def test_default_limit_is_seven() -> None:
    assert DONE_COLUMN_LIMIT == 7


@pytest.mark.parametrize("count", [0, 1, 7])
def test_at_or_below_limit_nothing_is_archived(count: int) -> None:
    tasks = _tasks(count)

    result = enforce_done_limit(tasks)

    assert result.visible == tasks
    assert result.archived == []


def test_eighth_task_archives_the_oldest() -> None:
    tasks = _tasks(8)

    result = enforce_done_limit(tasks)

    assert result.archived_ids == ["T1"]
    assert [t["id"] for t in result.visible] == [f"T{i}" for i in range(2, 9)]


def test_archives_oldest_overflow_and_keeps_caller_order() -> None:
    tasks = _tasks(10)
    shuffled = [tasks[i] for i in (5, 0, 9, 2, 7, 1, 8, 3, 6, 4)]

    result = enforce_done_limit(shuffled)

    assert len(result.visible) == 7
    assert result.archived_ids == ["T1", "T2", "T3"]
    # visible keeps the order it was given in
    assert [t["id"] for t in result.visible] == ["T6", "T10", "T8", "T9", "T4", "T7", "T5"]


def test_custom_limit() -> None:
    result = enforce_done_limit(_tasks(5), limit=2)

    assert result.archived_ids == ["T1", "T2", "T3"]
    assert [t["id"] for t in result.visible] == ["T4", "T5"]


def test_negative_limit_is_rejected() -> None:
    with pytest.raises(ValueError):
        enforce_done_limit(_tasks(3), limit=-1)


def test_created_at_is_used_when_updated_at_is_missing() -> None:
    tasks = [
        {"id": "a", "created_at": BASE + timedelta(minutes=5)},
        {"id": "b", "updated_at": BASE + timedelta(minutes=1)},
        {"id": "c", "created_at": BASE + timedelta(minutes=9)},
    ]

    result = enforce_done_limit(tasks, limit=2)

    assert result.archived_ids == ["b"]


def test_missing_and_malformed_timestamps_never_raise() -> None:
    tasks = [
        {"id": "garbage", "updated_at": "not a date"},
        {"id": "none"},
        {"id": "object", "updated_at": object()},
        {"id": "old", "updated_at": "2020-01-01T00:00:00Z"},
    ]

    result = enforce_done_limit(tasks, limit=3, now=NOW)

    # Tasks without a usable timestamp count as active "now"
    assert result.archived_ids == ["old"]


def test_naive_and_aware_timestamps_compare_as_utc() -> None:
    tasks = [
        {"id": "aware", "updated_at": datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=3)))},
        {"id": "naive", "updated_at": datetime(2026, 1, 1, 10, 0)},
    ]

    # 12:00+03:00 is 09:00 UTC, older than naive 10:00 (UTC)
    result = enforce_done_limit(tasks, limit=1)

    assert result.archived_ids == ["aware"]


def test_ties_are_broken_by_id() -> None:
    same = BASE.isoformat()
    tasks = [{"id": "b", "updated_at": same}, {"id": "a", "updated_at": same}, {"id": "c", "updated_at": same}]

    result = enforce_done_limit(tasks, limit=1)

    assert result.archived_ids == ["a", "b"]


def test_objects_are_accepted() -> None:
    tasks = [
        SimpleNamespace(id=i, updated_at=BASE + timedelta(minutes=i), created_at=None)
        for i in range(9)
    ]

    result = enforce_done_limit(tasks)

    assert [t.id for t in result.archived] == [0, 1]
    assert result.archived_ids == ["0", "1"]


def test_parse_timestamp_formats() -> None:
    assert parse_timestamp("2026-01-01T00:00:00Z") == BASE
    assert parse_timestamp("2026-01-01T03:00:00+03:00") == BASE
    assert parse_timestamp(BASE.timestamp()) == BASE
    assert parse_timestamp("") is None
    assert parse_timestamp(True) is None
    assert parse_timestamp(None) is None


def test_activity_timestamp_falls_back_to_now() -> None:
    assert activity_timestamp({}, NOW) == NOW
    assert activity_timestamp({"updated_at": "bad", "created_at": "worse"}, NOW) == NOW
