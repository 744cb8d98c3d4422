"""Board task filtering."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger()


def _text(value: Any) -> str:
    return str(value).lower() if value is not None else ""


def _safe_id(task: Any) -> str | None:
    try:
        return str(task["id"])
    except Exception:
        return None


@dataclass(frozen=True)
class TaskFilters:
    """Active filter set. Empty fields do not filter."""

    search: str = ""
    assignee_id: str | None = None
    priority: str | None = None
    status: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.search.strip() or self.assignee_id or self.priority or self.status)

    def _matches_search(self, task: Mapping[str, Any]) -> bool:
        needle = self.search.strip().lower()
        if not needle:
            return True
        haystack = [_text(task.get("title")), _text(task.get("description"))]
        haystack.extend(_text(tag) for tag in task.get("tags") or [])
        haystack.extend(_text(a.get("name")) for a in task.get("assignees") or [])
        return any(needle in value for value in haystack)

    def _matches_assignee(self, task: Mapping[str, Any]) -> bool:
        if not self.assignee_id:
            return True
        wanted = str(self.assignee_id)
        ids = {str(a.get("id")) for a in task.get("assignees") or []}
        if task.get("assignee_id"):
            ids.add(str(task["assignee_id"]))
        return wanted in ids

    def matches(self, task: Mapping[str, Any]) -> bool:
        """True if ``task`` passes every active filter.

        A task whose data the filters cannot read is kept rather than hidden.
        """
        try:
            return (
                self._matches_search(task)
                and self._matches_assignee(task)
                and (not self.priority or task.get("priority") == self.priority)
                and (not self.status or task.get("status") == self.status)
            )
        except Exception as exc:
            logger.debug("task_filter_failed_open", task_id=_safe_id(task), error=repr(exc))
            return True


def apply_filters(
    tasks: Iterable[Mapping[str, Any]],
    filters: TaskFilters | None,
) -> list[Mapping[str, Any]]:
    if filters is None or filters.is_empty:
        return list(tasks)
    return [task for task in tasks if filters.matches(task)]
