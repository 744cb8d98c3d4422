"""Column to workflow-status resolution.

A column either carries an explicit ``status`` or gets one inferred from its
display name. Inference is an ordered list of ``(predicate, status)`` rules
over the lower-cased name; the first matching rule wins. Boards are created
with Russian or English column titles, so every rule lists both vocabularies.

Keywords are matched on word boundaries, never as raw substrings: "К
выполнению" (to do) shares the stem "выполн" with "Выполнено" (done) and
must not resolve to ``done``.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger()


class ColumnStatus(str, Enum):
    """Status a column maps to. ``backlog`` exists only at column level."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    DEFERRED = "deferred"
    BACKLOG = "backlog"


# Statuses a task itself may carry
WORKFLOW_STATUSES: tuple[str, ...] = ("todo", "in_progress", "review", "done", "deferred")

NamePredicate = Callable[[str], bool]
StatusRule = tuple[NamePredicate, ColumnStatus]


def whole_words(*words: str) -> NamePredicate:
    """Match any of ``words`` as a complete word (or phrase)."""
    pattern = re.compile(
        r"(?<!\w)(?:" + "|".join(re.escape(w) for w in words) + r")(?!\w)"
    )
    return lambda name: pattern.search(name) is not None


def word_prefixes(*stems: str) -> NamePredicate:
    """Match any of ``stems`` at the start of a word."""
    pattern = re.compile(r"(?<!\w)(?:" + "|".join(re.escape(s) for s in stems) + r")")
    return lambda name: pattern.search(name) is not None


STATUS_RULES: tuple[StatusRule, ...] = (
    (whole_words("выполнено", "готово", "завершено", "done"), ColumnStatus.DONE),
    (word_prefixes("проверк", "review"), ColumnStatus.REVIEW),
    (word_prefixes("работе", "progress", "процессе"), ColumnStatus.IN_PROGRESS),
    (word_prefixes("беклог", "backlog"), ColumnStatus.BACKLOG),
    (word_prefixes("отлож", "deferred"), ColumnStatus.DEFERRED),
)

# Column names the completion toggle accepts for its two targets
TOGGLE_SYNONYMS: dict[ColumnStatus, NamePredicate] = {
    ColumnStatus.DONE: whole_words("выполнено", "готово", "готов", "done"),
    ColumnStatus.REVIEW: whole_words("проверке", "на проверке", "review"),
}


def _field(column: Any, name: str) -> Any:
    if isinstance(column, Mapping):
        return column.get(name)
    return getattr(column, name, None)


def column_display_name(column: Any) -> str:
    """Title of a column, falling back to ``name``, lower-cased and stripped."""
    value = _field(column, "title") or _field(column, "name") or ""
    return str(value).strip().lower()


def classify_name(
    name: str,
    rules: Iterable[StatusRule] = STATUS_RULES,
    default: ColumnStatus = ColumnStatus.TODO,
) -> ColumnStatus:
    """Apply ``rules`` in order to an already lower-cased column name."""
    for predicate, status in rules:
        if predicate(name):
            return status
    return default


def resolve_status(column: Any) -> ColumnStatus:
    """Resolve the workflow status a column represents.

    Args:
        column: ORM ``BoardColumn`` or a mapping with ``status`` and
            ``title``/``name`` keys.

    Returns:
        The explicit status when the column has a known one, otherwise the
        status inferred from its display name (``todo`` when nothing
        matches).
    """
    explicit = _field(column, "status")
    if explicit:
        value = str(explicit).strip().lower()
        try:
            return ColumnStatus(value)
        except ValueError:
            logger.warning(
                "unknown_column_status",
                column_id=str(_field(column, "id")),
                status=value,
            )
    return classify_name(column_display_name(column))


def task_status_for_column(column: Any) -> str:
    """Workflow status a task receives when placed in ``column``."""
    status = resolve_status(column)
    if status is ColumnStatus.BACKLOG:
        return ColumnStatus.TODO.value
    return status.value


def is_done_column(column: Any) -> bool:
    return resolve_status(column) is ColumnStatus.DONE


def toggle_target(current_status: str | None) -> ColumnStatus:
    """Completion toggle only flips between ``done`` and ``review``."""
    if str(current_status or "").strip().lower() == ColumnStatus.DONE.value:
        return ColumnStatus.REVIEW
    return ColumnStatus.DONE


def find_column_for_status(columns: Iterable[Any], target: ColumnStatus) -> Any | None:
    """First column that resolves to ``target`` or carries a toggle synonym."""
    synonym = TOGGLE_SYNONYMS.get(target)
    for column in columns:
        if resolve_status(column) is target:
            return column
        if synonym is not None and synonym(column_display_name(column)):
            return column
    return None
