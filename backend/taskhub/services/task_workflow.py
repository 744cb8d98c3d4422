"""Task placement workflow: create, move, reorder and delete tasks.

Every operation checks access before writing, keeps the task status in step
with its column when the column changes, and enforces the done-column limit
whenever a task lands in a done-mapped column. Nothing here commits; the
route owns the transaction so a failure anywhere rolls back the whole
operation.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import structlog

from taskhub.db.adapter import DatabaseAdapter, normalize_task_fields
from taskhub.db.base import utcnow
from taskhub.exceptions import ValidationError
from taskhub.models.project import BoardColumn, Task
from taskhub.services.access_control import (
    RequestContext,
    require_column,
    require_task,
)
from taskhub.services.archiver import DoneColumnArchiver
from taskhub.services.status_mapping import is_done_column, task_status_for_column

logger = structlog.get_logger()


@dataclass
class ColumnTasks:
    column: BoardColumn
    tasks: list[Task]
    archived_task_ids: list[str] = field(default_factory=list)


@dataclass
class TaskChange:
    task: Task
    archived_task_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PositionUpdate:
    """One entry of a bulk reorder."""

    task_id: UUID
    position: int
    column_id: UUID | None = None


class TaskWorkflowService:
    """Task operations scoped to one request's caller."""

    def __init__(
        self,
        adapter: DatabaseAdapter,
        ctx: RequestContext,
        archiver: DoneColumnArchiver | None = None,
    ):
        self.adapter = adapter
        self.ctx = ctx
        self.archiver = archiver or DoneColumnArchiver(adapter)

    async def list_column_tasks(self, column_id: UUID) -> ColumnTasks:
        """Load a column's visible tasks, archiving any done-column overflow."""
        column, _ = await require_column(self.adapter, self.ctx, column_id)
        tasks = await self.adapter.get_column_tasks(column.id)
        result = await self.archiver.enforce(column, tasks)
        return ColumnTasks(
            column=column,
            tasks=result.visible,
            archived_task_ids=result.archived_ids,
        )

    async def create_task(self, column_id: UUID, data: Mapping[str, Any]) -> TaskChange:
        """Create a task in a column.

        Status defaults to the column's derived status, position to the end
        of the column.
        """
        column, access = await require_column(self.adapter, self.ctx, column_id)

        fields = normalize_task_fields(data)
        fields["column_id"] = column.id
        fields["board_id"] = access.board_id
        fields["project_id"] = access.project_id
        fields["reporter_id"] = self.ctx.user_id
        if not fields.get("status"):
            fields["status"] = task_status_for_column(column)
        if fields.get("position") is None:
            fields["position"] = await self.adapter.next_task_position(column.id)
        if fields.get("tags") is None:
            fields["tags"] = []

        task = await self.adapter.create_task(fields)
        logger.info(
            "task_created",
            task_id=str(task.id),
            column_id=str(column.id),
            status=task.status,
        )

        archived: list[str] = []
        if is_done_column(column):
            archived = (await self.archiver.enforce(column)).archived_ids
        return TaskChange(task=task, archived_task_ids=archived)

    async def get_task(self, task_id: UUID) -> Task:
        return await require_task(self.adapter, self.ctx, task_id)

    async def _placement(
        self, column_id: UUID | None
    ) -> tuple[dict[str, Any], BoardColumn | None]:
        """Fields that place a task into ``column_id`` (``None`` unplaces it)."""
        if column_id is None:
            return {"column_id": None}, None
        column, access = await require_column(self.adapter, self.ctx, column_id)
        return (
            {
                "column_id": column.id,
                "board_id": access.board_id,
                "project_id": access.project_id,
            },
            column,
        )

    async def update_task(self, task_id: UUID, data: Mapping[str, Any]) -> TaskChange:
        """Partially update a task.

        A ``columnId`` change without an explicit ``status`` takes the status
        of the new column; an explicit status always wins. Moving into, or
        restoring a task inside, a done-mapped column enforces the limit.
        """
        task = await require_task(self.adapter, self.ctx, task_id)
        fields = normalize_task_fields(data)
        if not fields:
            raise ValidationError("No fields to update")

        destination: BoardColumn | None = None
        if "column_id" in fields and fields["column_id"] != task.column_id:
            placement, destination = await self._placement(fields.pop("column_id"))
            fields.update(placement)
            if destination is not None and not fields.get("status"):
                fields["status"] = task_status_for_column(destination)
        else:
            fields.pop("column_id", None)
            # Moving between boards only happens through a column change
            fields.pop("board_id", None)
            fields.pop("project_id", None)

        fields.pop("reporter_id", None)

        restored = False
        if "is_archived" in fields:
            if fields["is_archived"]:
                fields.setdefault("archived_at", utcnow())
            else:
                fields["archived_at"] = None
                restored = bool(task.is_archived)

        previous_column_id = task.column_id
        task = await self.adapter.update_task(task.id, fields)

        if destination is None and restored and task.column_id is not None:
            destination = await self.adapter.get_column_by_id(task.column_id)

        archived: list[str] = []
        if destination is not None and is_done_column(destination) and not task.is_archived:
            archived = (await self.archiver.enforce(destination)).archived_ids

        logger.info(
            "task_updated",
            task_id=str(task.id),
            from_column_id=str(previous_column_id),
            to_column_id=str(task.column_id),
            fields=sorted(fields),
        )
        return TaskChange(task=task, archived_task_ids=archived)

    async def reorder(self, column_id: UUID, updates: Sequence[PositionUpdate]) -> list[str]:
        """Apply a batch of position (and optional column) changes.

        Either every entry is applied or, on the first error, none are: the
        caller rolls the transaction back.
        """
        await require_column(self.adapter, self.ctx, column_id)

        seen: set[UUID] = set()
        done_destinations: set[UUID] = set()
        for item in updates:
            if item.task_id in seen:
                raise ValidationError(
                    "Duplicate task in batch",
                    details=[{"field": "tasks", "message": f"{item.task_id} listed twice"}],
                )
            seen.add(item.task_id)

            task = await require_task(self.adapter, self.ctx, item.task_id)
            fields: dict[str, Any] = {"position": item.position}
            if item.column_id is not None and item.column_id != task.column_id:
                placement, destination = await self._placement(item.column_id)
                fields.update(placement)
                fields["status"] = task_status_for_column(destination)
                if is_done_column(destination):
                    done_destinations.add(destination.id)
            await self.adapter.update_task(task.id, fields)

        archived = await self.archiver.enforce_many(done_destinations)
        logger.info(
            "tasks_reordered",
            column_id=str(column_id),
            count=len(updates),
            archived=len(archived),
        )
        return archived

    async def delete_task(self, task_id: UUID) -> None:
        task = await require_task(self.adapter, self.ctx, task_id)
        await self.adapter.delete_task(task.id)
        logger.info("task_deleted", task_id=str(task_id))
