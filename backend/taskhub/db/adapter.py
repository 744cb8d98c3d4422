"""Persistence adapter for boards, columns and tasks.

The task workflow and the HTTP layer talk to the database through
``DatabaseAdapter`` rather than building statements themselves. Field names
coming from API payloads (camelCase) are normalized here, once, into model
attribute names.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Select, and_, delete, func, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.db.base import utcnow
from taskhub.exceptions import ValidationError
from taskhub.models.project import (
    Board,
    BoardColumn,
    Project,
    ProjectMember,
    Task,
    TaskAssignee,
    TaskAttachment,
    TaskComment,
)
from taskhub.models.user import User

logger = structlog.get_logger()

# Incoming name -> Task attribute
TASK_FIELD_ALIASES: dict[str, str] = {
    "columnId": "column_id",
    "boardId": "board_id",
    "projectId": "project_id",
    "dueDate": "due_date",
    "deadline": "due_date",
    "assigneeId": "assignee_id",
    "assigneeIds": "assignee_ids",
    "reporterId": "reporter_id",
    "isArchived": "is_archived",
    "archivedAt": "archived_at",
}

TASK_FIELDS = frozenset(
    {
        "title",
        "description",
        "priority",
        "status",
        "position",
        "due_date",
        "tags",
        "is_archived",
        "archived_at",
        "column_id",
        "board_id",
        "project_id",
        "assignee_id",
        "reporter_id",
    }
)

_UUID_FIELDS = frozenset({"column_id", "board_id", "project_id", "assignee_id", "reporter_id"})
_DATETIME_FIELDS = frozenset({"due_date", "archived_at"})


def _coerce_uuid(field: str, value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(
            f"Invalid {field}",
            details=[{"field": field, "message": "must be a UUID"}],
        ) from None


def _coerce_datetime(field: str, value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            f"Invalid {field}",
            details=[{"field": field, "message": "must be an ISO-8601 date"}],
        ) from None


def normalize_task_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Map payload keys to ``Task`` attributes and coerce id/date values.

    ``assignee_ids`` is passed through untouched; it is not a column and is
    handled by :meth:`DatabaseAdapter.set_task_assignees`.

    Raises:
        ValidationError: for keys that are not task fields.
    """
    normalized: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in fields.items():
        name = TASK_FIELD_ALIASES.get(key, key)
        if name == "assignee_ids":
            normalized[name] = [_coerce_uuid(name, v) for v in (value or [])]
        elif name not in TASK_FIELDS:
            unknown.append(key)
        elif name in _UUID_FIELDS:
            normalized[name] = _coerce_uuid(name, value)
        elif name in _DATETIME_FIELDS:
            normalized[name] = _coerce_datetime(name, value)
        else:
            normalized[name] = value

    if unknown:
        raise ValidationError(
            "Unknown task fields",
            details=[{"field": key, "message": "unknown field"} for key in unknown],
        )
    return normalized


class DatabaseAdapter:
    """Storage operations used by the task workflow.

    The adapter never commits; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def query(
        self,
        statement: str | Select,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a read statement and return rows as dictionaries."""
        if isinstance(statement, str):
            statement = text(statement)
        if params:
            result = await self.db.execute(statement, dict(params))
        else:
            result = await self.db.execute(statement)
        return [dict(row._mapping) for row in result]

    # =========================================================================
    # Access
    # =========================================================================

    async def has_project_access(self, user_id: UUID, project_id: UUID) -> bool:
        """True if the user created the project or is any kind of member."""
        result = await self.db.execute(
            select(Project.id)
            .outerjoin(
                ProjectMember,
                and_(
                    ProjectMember.project_id == Project.id,
                    ProjectMember.user_id == user_id,
                ),
            )
            .where(
                Project.id == project_id,
                or_(Project.creator_id == user_id, ProjectMember.id.is_not(None)),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_accessible_project_ids(self, user_id: UUID) -> set[UUID]:
        created = await self.db.execute(
            select(Project.id).where(Project.creator_id == user_id)
        )
        joined = await self.db.execute(
            select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        )
        return set(created.scalars().all()) | set(joined.scalars().all())

    # =========================================================================
    # Boards and columns
    # =========================================================================

    async def get_board_by_id(self, board_id: UUID) -> Board | None:
        return await self.db.get(Board, board_id)

    async def get_column_by_id(self, column_id: UUID) -> BoardColumn | None:
        return await self.db.get(BoardColumn, column_id)

    async def get_board_columns(self, board_id: UUID) -> list[BoardColumn]:
        result = await self.db.execute(
            select(BoardColumn)
            .where(BoardColumn.board_id == board_id)
            .order_by(BoardColumn.position, BoardColumn.created_at)
        )
        return list(result.scalars().all())

    async def create_column(
        self,
        board_id: UUID,
        title: str,
        position: int | None = None,
        status: str | None = None,
        color: str | None = None,
    ) -> BoardColumn:
        """Append a column; ``position`` defaults to one past the last column."""
        if position is None:
            result = await self.db.execute(
                select(func.max(BoardColumn.position)).where(BoardColumn.board_id == board_id)
            )
            current = result.scalar()
            position = 0 if current is None else current + 1

        column = BoardColumn(
            board_id=board_id,
            title=title,
            position=position,
            status=status,
            color=color,
        )
        self.db.add(column)
        await self.db.flush()
        return column

    async def update_column(self, column_id: UUID, fields: Mapping[str, Any]) -> BoardColumn | None:
        column = await self.get_column_by_id(column_id)
        if column is None:
            return None
        for name, value in fields.items():
            setattr(column, name, value)
        column.updated_at = utcnow()
        await self.db.flush()
        return column

    async def delete_column(self, column_id: UUID) -> bool:
        """Delete a column. Its tasks stay on the board with no column."""
        column = await self.get_column_by_id(column_id)
        if column is None:
            return False
        await self.db.execute(
            update(Task)
            .where(Task.column_id == column_id)
            .values(column_id=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(column)
        await self.db.flush()
        return True

    # =========================================================================
    # Tasks
    # =========================================================================

    async def get_task_by_id(self, task_id: UUID) -> Task | None:
        return await self.db.get(Task, task_id)

    async def get_column_tasks(
        self,
        column_id: UUID,
        include_archived: bool = False,
    ) -> list[Task]:
        stmt = select(Task).where(Task.column_id == column_id)
        if not include_archived:
            stmt = stmt.where(Task.is_archived.is_(False))
        result = await self.db.execute(stmt.order_by(Task.position, Task.created_at))
        return list(result.scalars().all())

    async def get_archived_tasks(self, board_id: UUID) -> list[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.board_id == board_id, Task.is_archived.is_(True))
            .order_by(Task.archived_at.desc(), Task.updated_at.desc())
        )
        return list(result.scalars().all())

    async def next_task_position(self, column_id: UUID) -> int:
        result = await self.db.execute(
            select(func.max(Task.position)).where(
                Task.column_id == column_id,
                Task.is_archived.is_(False),
            )
        )
        current = result.scalar()
        return 0 if current is None else current + 1

    async def create_task(self, fields: Mapping[str, Any]) -> Task:
        values = normalize_task_fields(fields)
        assignee_ids = values.pop("assignee_ids", None)
        task = Task(**values)
        self.db.add(task)
        await self.db.flush()
        if assignee_ids is not None:
            await self.set_task_assignees(task.id, assignee_ids)
        return task

    async def update_task(self, task_id: UUID, fields: Mapping[str, Any]) -> Task | None:
        """Apply a partial update. ``updated_at`` is always refreshed."""
        task = await self.get_task_by_id(task_id)
        if task is None:
            return None

        values = normalize_task_fields(fields)
        assignee_ids = values.pop("assignee_ids", None)
        for name, value in values.items():
            setattr(task, name, value)
        task.updated_at = utcnow()
        await self.db.flush()

        if assignee_ids is not None:
            await self.set_task_assignees(task.id, assignee_ids)
        return task

    async def delete_task(self, task_id: UUID) -> bool:
        task = await self.get_task_by_id(task_id)
        if task is None:
            return False
        await self._delete_task_children(select(Task.id).where(Task.id == task_id))
        await self.db.delete(task)
        await self.db.flush()
        return True

    async def set_task_assignees(self, task_id: UUID, user_ids: Iterable[UUID]) -> None:
        """Replace the assignee set of a task."""
        unique_ids = list(dict.fromkeys(user_ids))
        await self.db.execute(
            delete(TaskAssignee)
            .where(TaskAssignee.task_id == task_id)
            .execution_options(synchronize_session=False)
        )
        for user_id in unique_ids:
            self.db.add(TaskAssignee(task_id=task_id, user_id=user_id))
        await self.db.flush()

    async def get_task_assignees(self, task_ids: Iterable[UUID]) -> dict[UUID, list[dict[str, Any]]]:
        """Assignee user summaries keyed by task id."""
        ids = list(task_ids)
        assignees: dict[UUID, list[dict[str, Any]]] = {task_id: [] for task_id in ids}
        if not ids:
            return assignees

        rows = await self.query(
            select(
                TaskAssignee.task_id,
                User.id,
                User.name,
                User.email,
                User.avatar_url,
            )
            .join(User, User.id == TaskAssignee.user_id)
            .where(TaskAssignee.task_id.in_(ids))
            .order_by(TaskAssignee.created_at)
        )
        for row in rows:
            assignees.setdefault(row["task_id"], []).append(
                {
                    "id": row["id"],
                    "name": row["name"],
                    "email": row["email"],
                    "avatar_url": row["avatar_url"],
                }
            )
        return assignees

    # =========================================================================
    # Cascades
    # =========================================================================

    async def _delete_task_children(self, task_ids: Select) -> None:
        for model in (TaskAssignee, TaskComment, TaskAttachment):
            await self.db.execute(
                delete(model)
                .where(model.task_id.in_(task_ids))
                .execution_options(synchronize_session=False)
            )

    async def delete_board(self, board_id: UUID) -> bool:
        board = await self.get_board_by_id(board_id)
        if board is None:
            return False
        task_ids = select(Task.id).where(Task.board_id == board_id)
        await self._delete_task_children(task_ids)
        for stmt in (
            delete(Task).where(Task.board_id == board_id),
            delete(BoardColumn).where(BoardColumn.board_id == board_id),
        ):
            await self.db.execute(stmt.execution_options(synchronize_session=False))
        await self.db.delete(board)
        await self.db.flush()
        return True

    async def delete_project(self, project_id: UUID) -> bool:
        """Delete a project with its boards, columns, tasks and memberships."""
        project = await self.db.get(Project, project_id)
        if project is None:
            return False
        board_ids = select(Board.id).where(Board.project_id == project_id)
        task_ids = select(Task.id).where(Task.project_id == project_id)
        await self._delete_task_children(task_ids)
        for stmt in (
            delete(Task).where(Task.project_id == project_id),
            delete(BoardColumn).where(BoardColumn.board_id.in_(board_ids)),
            delete(Board).where(Board.project_id == project_id),
            delete(ProjectMember).where(ProjectMember.project_id == project_id),
        ):
            await self.db.execute(stmt.execution_options(synchronize_session=False))
        await self.db.delete(project)
        await self.db.flush()
        logger.info("project_deleted", project_id=str(project_id))
        return True
