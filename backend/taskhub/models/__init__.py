"""SQLAlchemy models package."""

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

__all__ = [
    "Board",
    "BoardColumn",
    "Project",
    "ProjectMember",
    "Task",
    "TaskAssignee",
    "TaskAttachment",
    "TaskComment",
    "User",
]
