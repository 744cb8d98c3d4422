"""Project access control service.

Access is binary: a user may touch a project's boards, columns and tasks if
they created the project or hold any membership row in it. Admins get no
implicit access to projects.

Checks run against a ``RequestContext`` built once per request, which holds
the caller and a snapshot of the project ids they can reach.
"""

from dataclasses import dataclass, field
from uuid import UUID

import structlog

from taskhub.db.adapter import DatabaseAdapter
from taskhub.exceptions import AuthorizationError, NotFoundError
from taskhub.models.project import Board, BoardColumn, Project, Task
from taskhub.models.user import User

logger = structlog.get_logger()


# Role hierarchy for membership management (higher = more permissions)
ROLE_HIERARCHY = {"owner": 3, "admin": 2, "member": 1}


def has_sufficient_role(user_role: str, required_role: str) -> bool:
    """Check if user_role meets or exceeds required_role."""
    return ROLE_HIERARCHY.get(user_role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


@dataclass
class RequestContext:
    """Authenticated caller plus the projects they can access."""

    user: User
    project_ids: set[UUID] = field(default_factory=set)

    @property
    def user_id(self) -> UUID:
        return self.user.id

    def can_access(self, project_id: UUID | None) -> bool:
        return project_id is not None and project_id in self.project_ids

    def grant(self, project_id: UUID) -> None:
        """Record access to a project created during this request."""
        self.project_ids.add(project_id)


@dataclass(frozen=True)
class ColumnAccess:
    """Result of a column access check."""

    allowed: bool
    project_id: UUID
    board_id: UUID


async def build_request_context(adapter: DatabaseAdapter, user: User) -> RequestContext:
    project_ids = await adapter.get_accessible_project_ids(user.id)
    return RequestContext(user=user, project_ids=project_ids)


async def has_access(adapter: DatabaseAdapter, user_id: UUID, project_id: UUID) -> bool:
    """Direct check against storage, bypassing any snapshot."""
    return await adapter.has_project_access(user_id, project_id)


def _deny(ctx: RequestContext, resource: str, resource_id: UUID) -> AuthorizationError:
    logger.warning(
        "access_denied",
        user_id=str(ctx.user_id),
        resource=resource,
        resource_id=str(resource_id),
    )
    return AuthorizationError(f"Access denied to this {resource}")


async def check_column_access(
    adapter: DatabaseAdapter,
    ctx: RequestContext,
    column_id: UUID,
) -> ColumnAccess | None:
    """Resolve column -> board -> project and test membership.

    Returns ``None`` when the column or its board does not exist.
    """
    column = await adapter.get_column_by_id(column_id)
    if column is None:
        return None
    board = await adapter.get_board_by_id(column.board_id)
    if board is None:
        return None
    return ColumnAccess(
        allowed=ctx.can_access(board.project_id),
        project_id=board.project_id,
        board_id=board.id,
    )


async def check_board_access(
    adapter: DatabaseAdapter,
    ctx: RequestContext,
    board_id: UUID,
) -> bool | None:
    """Membership test for a board's project; ``None`` if the board is missing."""
    board = await adapter.get_board_by_id(board_id)
    if board is None:
        return None
    return ctx.can_access(board.project_id)


async def require_project(
    adapter: DatabaseAdapter,
    ctx: RequestContext,
    project_id: UUID,
) -> Project:
    """Load a project the caller may access.

    Raises:
        NotFoundError: if the project does not exist.
        AuthorizationError: if the caller is neither creator nor member.
    """
    project = await adapter.db.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    if not ctx.can_access(project.id):
        raise _deny(ctx, "project", project_id)
    return project


async def require_board(
    adapter: DatabaseAdapter,
    ctx: RequestContext,
    board_id: UUID,
) -> Board:
    allowed = await check_board_access(adapter, ctx, board_id)
    if allowed is None:
        raise NotFoundError("Board", board_id)
    if not allowed:
        raise _deny(ctx, "board", board_id)
    return await adapter.get_board_by_id(board_id)


async def require_column(
    adapter: DatabaseAdapter,
    ctx: RequestContext,
    column_id: UUID,
) -> tuple[BoardColumn, ColumnAccess]:
    access = await check_column_access(adapter, ctx, column_id)
    if access is None:
        raise NotFoundError("Column", column_id)
    if not access.allowed:
        raise _deny(ctx, "column", column_id)
    column = await adapter.get_column_by_id(column_id)
    return column, access


async def require_task(
    adapter: DatabaseAdapter,
    ctx: RequestContext,
    task_id: UUID,
) -> Task:
    task = await adapter.get_task_by_id(task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    if not ctx.can_access(task.project_id):
        raise _deny(ctx, "task", task_id)
    return task
