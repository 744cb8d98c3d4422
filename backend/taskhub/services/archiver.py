"""Persisting side of the done-column limit."""

from uuid import UUID

import structlog

from taskhub.config import get_settings
from taskhub.db.adapter import DatabaseAdapter
from taskhub.db.base import utcnow
from taskhub.models.project import BoardColumn, Task
from taskhub.services.done_limit import DoneLimitResult, enforce_done_limit
from taskhub.services.status_mapping import is_done_column

logger = structlog.get_logger()


class DoneColumnArchiver:
    """Archives the overflow of a done-mapped column.

    Runs inside the caller's transaction and issues one update per archived
    task. Columns that do not resolve to ``done`` are left alone.
    """

    def __init__(self, adapter: DatabaseAdapter, limit: int | None = None):
        self.adapter = adapter
        self.limit = limit if limit is not None else get_settings().done_column_limit

    async def enforce(
        self,
        column: BoardColumn,
        tasks: list[Task] | None = None,
    ) -> DoneLimitResult[Task]:
        """Apply the limit to ``column``.

        Args:
            column: Column to check.
            tasks: Non-archived tasks of the column when the caller already
                loaded them; fetched otherwise.

        Returns:
            The visible/archived split. For non-done columns every task is
            visible.
        """
        if tasks is None:
            tasks = await self.adapter.get_column_tasks(column.id)
        if not is_done_column(column):
            return DoneLimitResult(visible=list(tasks), archived=[])

        result = enforce_done_limit(tasks, limit=self.limit)
        if not result.archived:
            return result

        archived_at = utcnow()
        for task in result.archived:
            await self.adapter.update_task(
                task.id, {"isArchived": True, "archivedAt": archived_at}
            )

        logger.info(
            "tasks_auto_archived",
            column_id=str(column.id),
            count=len(result.archived),
            task_ids=result.archived_ids,
        )
        return result

    async def enforce_many(self, column_ids: set[UUID]) -> list[str]:
        """Enforce on several columns; returns all archived task ids."""
        archived: list[str] = []
        for column_id in sorted(column_ids, key=str):
            column = await self.adapter.get_column_by_id(column_id)
            if column is None:
                continue
            result = await self.enforce(column)
            archived.extend(result.archived_ids)
        return archived
