"""Request/response models for columns, tasks, comments and attachments.

Request bodies accept the camelCase names the board client sends
(``columnId``, ``dueDate``, ``isArchived`` ...) as well as snake_case.
Responses are always snake_case.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, model_validator

from taskhub.models.project import BoardColumn, Task
from taskhub.services.status_mapping import ColumnStatus, resolve_status

TaskPriority = Literal["low", "medium", "high", "urgent"]
TaskStatus = Literal["todo", "in_progress", "review", "done", "deferred"]

# Fields that may be omitted on update but never set to null
_NON_NULLABLE_UPDATE_FIELDS = ("title", "priority", "status", "position", "tags", "is_archived")


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# =============================================================================
# Tasks
# =============================================================================


class TaskCreate(BaseModel):
    """Create a task in a column."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    priority: TaskPriority = "medium"
    status: TaskStatus | None = None
    position: int | None = Field(None, ge=0)
    due_date: datetime | None = Field(
        None, validation_alias=_alias("due_date", "dueDate", "deadline")
    )
    tags: list[str] = Field(default_factory=list)
    assignee_id: UUID | None = Field(None, validation_alias=_alias("assignee_id", "assigneeId"))
    assignee_ids: list[UUID] | None = Field(
        None, validation_alias=_alias("assignee_ids", "assigneeIds")
    )

    @model_validator(mode="before")
    @classmethod
    def strip_title(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("title"), str):
            data = {**data, "title": data["title"].strip()}
        return data


class TaskUpdate(BaseModel):
    """Partial task update; only fields present in the body are applied."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    position: int | None = Field(None, ge=0)
    column_id: UUID | None = Field(None, validation_alias=_alias("column_id", "columnId"))
    due_date: datetime | None = Field(
        None, validation_alias=_alias("due_date", "dueDate", "deadline")
    )
    tags: list[str] | None = None
    assignee_id: UUID | None = Field(None, validation_alias=_alias("assignee_id", "assigneeId"))
    assignee_ids: list[UUID] | None = Field(
        None, validation_alias=_alias("assignee_ids", "assigneeIds")
    )
    is_archived: bool | None = Field(None, validation_alias=_alias("is_archived", "isArchived"))

    @model_validator(mode="before")
    @classmethod
    def strip_title(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("title"), str):
            data = {**data, "title": data["title"].strip()}
        return data

    @model_validator(mode="after")
    def reject_nulls(self) -> "TaskUpdate":
        for name in _NON_NULLABLE_UPDATE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class AssigneeSummary(BaseModel):
    id: UUID
    name: str
    email: str
    avatar_url: str | None = None


class TaskResponse(BaseModel):
    """Task response."""

    id: UUID
    project_id: UUID
    board_id: UUID
    column_id: UUID | None
    title: str
    description: str | None
    priority: str
    status: str
    position: int
    due_date: datetime | None
    tags: list[str]
    is_archived: bool
    archived_at: datetime | None
    reporter_id: UUID
    assignee_id: UUID | None
    assignees: list[AssigneeSummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskMutationResponse(TaskResponse):
    """Task plus the ids archived by the done-column limit as a side effect."""

    archived_task_ids: list[str] = Field(default_factory=list)


def serialize_task(
    task: Task,
    assignees: list[dict[str, Any]] | None = None,
    archived_task_ids: list[str] | None = None,
) -> TaskMutationResponse:
    data = task.to_dict()
    data["tags"] = data.get("tags") or []
    data["assignees"] = assignees or []
    data["archived_task_ids"] = archived_task_ids or []
    return TaskMutationResponse.model_validate(data)


class BulkTaskPosition(BaseModel):
    id: UUID
    position: int = Field(..., ge=0)
    column_id: UUID | None = Field(None, validation_alias=_alias("column_id", "columnId"))


class BulkPositionUpdate(BaseModel):
    """Body of ``PATCH /columns/{id}/tasks``."""

    tasks: list[BulkTaskPosition] = Field(..., min_length=1)


class BulkPositionResponse(BaseModel):
    updated: int
    archived_task_ids: list[str] = Field(default_factory=list)


# =============================================================================
# Columns
# =============================================================================


class ColumnCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    position: int | None = Field(None, ge=0)
    status: ColumnStatus | None = None
    color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")


class ColumnUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    position: int | None = Field(None, ge=0)
    status: ColumnStatus | None = None
    color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")

    @model_validator(mode="after")
    def reject_nulls(self) -> "ColumnUpdate":
        for name in ("title", "position"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ColumnResponse(BaseModel):
    """Column response. ``resolved_status`` is what the column maps to."""

    id: UUID
    board_id: UUID
    title: str
    position: int
    status: str | None
    resolved_status: ColumnStatus
    color: str | None
    created_at: datetime
    updated_at: datetime


def serialize_column(column: BoardColumn) -> ColumnResponse:
    return ColumnResponse(
        id=column.id,
        board_id=column.board_id,
        title=column.title,
        position=column.position,
        status=column.status,
        resolved_status=resolve_status(column),
        color=column.color,
        created_at=column.created_at,
        updated_at=column.updated_at,
    )


class ColumnTasksResponse(BaseModel):
    """Body of ``GET /columns/{id}/tasks``."""

    column: ColumnResponse
    tasks: list[TaskResponse]
    archived_task_ids: list[str] = Field(default_factory=list)
    done_limit: int


# =============================================================================
# Comments and attachments
# =============================================================================


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    parent_comment_id: UUID | None = Field(
        None, validation_alias=_alias("parent_comment_id", "parentCommentId")
    )


class CommentResponse(BaseModel):
    id: UUID
    task_id: UUID
    author_id: UUID
    author_name: str | None = None
    content: str
    parent_comment_id: UUID | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AttachmentCreate(BaseModel):
    """Metadata for a file already stored in the external file store."""

    filename: str = Field(..., min_length=1, max_length=255)
    size_bytes: int = Field(0, ge=0, validation_alias=_alias("size_bytes", "sizeBytes", "size"))
    mime_type: str | None = Field(None, max_length=100, validation_alias=_alias("mime_type", "mimeType"))
    storage_key: str = Field(
        ..., min_length=1, max_length=500, validation_alias=_alias("storage_key", "storageKey")
    )


class AttachmentResponse(BaseModel):
    id: UUID
    task_id: UUID
    uploaded_by_id: UUID
    filename: str
    size_bytes: int
    mime_type: str | None
    storage_key: str
    created_at: datetime

    class Config:
        from_attributes = True
