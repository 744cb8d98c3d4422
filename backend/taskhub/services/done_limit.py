"""Visible-size limit for done columns.

A done-mapped column shows at most ``limit`` tasks. When it holds more, the
least recently active tasks are selected for archiving. This module only
computes the split; persisting it is ``DoneColumnArchiver``'s job on the
server and the board view mirrors it on the client, so both sides share the
same ordering rules.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

DONE_COLUMN_LIMIT = 7

T = TypeVar("T")


@dataclass(frozen=True)
class DoneLimitResult(Generic[T]):
    """Outcome of applying the limit to one column."""

    visible: list[T] = field(default_factory=list)
    archived: list[T] = field(default_factory=list)

    @property
    def archived_ids(self) -> list[str]:
        return [str(_field(task, "id")) for task in self.archived]


def _field(task: Any, name: str) -> Any:
    if isinstance(task, Mapping):
        return task.get(name)
    return getattr(task, name, None)


def _as_utc(value: datetime) -> datetime:
    # Naive values are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a stored timestamp to an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (including a trailing ``Z``) and
    epoch seconds. Returns ``None`` for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def activity_timestamp(task: Any, now: datetime) -> datetime:
    """Last activity of a task: ``updated_at``, then ``created_at``, then ``now``."""
    for name in ("updated_at", "created_at"):
        parsed = parse_timestamp(_field(task, name))
        if parsed is not None:
            return parsed
    return now


def enforce_done_limit(
    tasks: Sequence[T],
    limit: int = DONE_COLUMN_LIMIT,
    now: datetime | None = None,
) -> DoneLimitResult[T]:
    """Split the tasks of a done column into visible and to-be-archived.

    Args:
        tasks: Non-archived tasks currently in the column, in display order.
            ORM objects and mappings are both accepted.
        limit: Maximum number of visible tasks.
        now: Stand-in timestamp for tasks with no usable timestamps.
            Computed once per call when omitted.

    Returns:
        ``visible`` in the caller's original order and ``archived`` ordered
        oldest first. ``len(visible) == min(len(tasks), limit)``.
    """
    if limit < 0:
        raise ValueError("limit must be non-negative")

    items = list(tasks)
    if len(items) <= limit:
        return DoneLimitResult(visible=items, archived=[])

    now = now or datetime.now(timezone.utc)
    ranked = sorted(
        range(len(items)),
        key=lambda i: (activity_timestamp(items[i], now), str(_field(items[i], "id"))),
    )
    overflow = len(items) - limit
    archived_idx = ranked[:overflow]
    archived_set = set(archived_idx)

    return DoneLimitResult(
        visible=[task for i, task in enumerate(items) if i not in archived_set],
        archived=[items[i] for i in archived_idx],
    )
