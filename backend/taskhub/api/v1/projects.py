"""Projects API endpoints."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import Context
from taskhub.config import get_settings
from taskhub.db.adapter import DatabaseAdapter
from taskhub.db.session import get_db_session
from taskhub.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from taskhub.models.project import Board, Project, ProjectMember
from taskhub.models.user import User
from taskhub.schemas.projects import (
    BoardCreate,
    BoardDetailResponse,
    BoardResponse,
    MemberCreate,
    MemberResponse,
    MemberUpdate,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
)
from taskhub.schemas.tasks import serialize_column
from taskhub.services.access_control import RequestContext, has_sufficient_role, require_project

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


async def _member_role(db: AsyncSession, project: Project, user_id: UUID) -> str | None:
    if project.creator_id == user_id:
        return "owner"
    result = await db.execute(
        select(ProjectMember.role).where(
            ProjectMember.project_id == project.id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def _require_manager(db: AsyncSession, ctx: RequestContext, project: Project) -> None:
    """Membership and project settings changes need owner or admin role."""
    role = await _member_role(db, project, ctx.user_id)
    if role is None or not has_sufficient_role(role, "admin"):
        raise AuthorizationError("Only project owners and admins can do this")


async def create_board_with_columns(
    adapter: DatabaseAdapter,
    project_id: UUID,
    body: BoardCreate,
) -> Board:
    """Create a board and its columns; the default titles when none are given."""
    board = Board(
        project_id=project_id,
        name=body.name,
        description=body.description,
        color=body.color,
        is_default=body.is_default,
    )
    adapter.db.add(board)
    await adapter.db.flush()

    if body.columns:
        for index, column in enumerate(body.columns):
            await adapter.create_column(
                board.id,
                title=column.title,
                position=column.position if column.position is not None else index,
                status=column.status.value if column.status else None,
                color=column.color,
            )
    else:
        for index, title in enumerate(settings.default_board_columns):
            await adapter.create_column(board.id, title=title, position=index)
    return board


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
    include_archived: bool = False,
) -> list[Project]:
    """List projects the caller created or is a member of."""
    if not ctx.project_ids:
        return []
    query = select(Project).where(Project.id.in_(list(ctx.project_ids)))
    if not include_archived:
        query = query.where(Project.is_archived.is_(False))
    result = await db.execute(query.order_by(Project.created_at.desc()))
    return list(result.scalars().all())


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    """Create a project. The creator becomes its owner."""
    project = Project(
        name=body.name.strip(),
        description=body.description,
        color=body.color,
        icon=body.icon,
        creator_id=ctx.user_id,
    )
    db.add(project)
    await db.flush()
    db.add(ProjectMember(project_id=project.id, user_id=ctx.user_id, role="owner"))

    if body.create_default_board:
        await create_board_with_columns(
            DatabaseAdapter(db),
            project.id,
            BoardCreate(name="Main board", is_default=True),
        )
    await db.commit()

    logger.info("project_created", project_id=str(project.id), creator_id=str(ctx.user_id))
    return project


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await require_project(DatabaseAdapter(db), ctx, project_id)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    body: ProjectUpdate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    project = await require_project(DatabaseAdapter(db), ctx, project_id)
    await _require_manager(db, ctx, project)

    update_data = body.model_dump(exclude_unset=True)
    if "name" in update_data and update_data["name"] is None:
        raise ValidationError("Project name cannot be null")
    for field, value in update_data.items():
        setattr(project, field, value)
    await db.commit()

    logger.info("project_updated", project_id=str(project_id), fields=sorted(update_data))
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a project with everything in it. Creator only."""
    adapter = DatabaseAdapter(db)
    project = await require_project(adapter, ctx, project_id)
    if project.creator_id != ctx.user_id:
        raise AuthorizationError("Only the project creator can delete it")

    await adapter.delete_project(project_id)
    await db.commit()


# =============================================================================
# Members
# =============================================================================


def _member_response(member: ProjectMember, user: User | None) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        project_id=member.project_id,
        user_id=member.user_id,
        role=member.role,
        joined_at=member.joined_at,
        user_name=user.name if user else None,
        user_email=user.email if user else None,
    )


@router.get("/{project_id}/members", response_model=list[MemberResponse])
async def list_members(
    project_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> list[MemberResponse]:
    await require_project(DatabaseAdapter(db), ctx, project_id)
    result = await db.execute(
        select(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at)
    )
    return [_member_response(member, user) for member, user in result.all()]


@router.post(
    "/{project_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    project_id: UUID,
    body: MemberCreate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> MemberResponse:
    project = await require_project(DatabaseAdapter(db), ctx, project_id)
    await _require_manager(db, ctx, project)

    user = await db.get(User, body.user_id)
    if user is None:
        raise NotFoundError("User", body.user_id)
    if not user.is_approved:
        raise ValidationError("Only approved users can be added to projects")

    member = ProjectMember(project_id=project_id, user_id=body.user_id, role=body.role)
    db.add(member)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("User is already a member of this project") from None

    logger.info("project_member_added", project_id=str(project_id), user_id=str(body.user_id))
    return _member_response(member, user)


async def _get_member(db: AsyncSession, project_id: UUID, user_id: UUID) -> ProjectMember:
    result = await db.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFoundError("Project member", user_id)
    return member


@router.patch("/{project_id}/members/{user_id}", response_model=MemberResponse)
async def update_member(
    project_id: UUID,
    user_id: UUID,
    body: MemberUpdate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> MemberResponse:
    project = await require_project(DatabaseAdapter(db), ctx, project_id)
    await _require_manager(db, ctx, project)

    member = await _get_member(db, project_id, user_id)
    if user_id == project.creator_id and body.role != "owner":
        raise ValidationError("The project creator must stay an owner")
    member.role = body.role
    await db.commit()

    user = await db.get(User, user_id)
    return _member_response(member, user)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    project_id: UUID,
    user_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Remove a member. Members may remove themselves."""
    project = await require_project(DatabaseAdapter(db), ctx, project_id)
    if user_id != ctx.user_id:
        await _require_manager(db, ctx, project)
    if user_id == project.creator_id:
        raise ValidationError("The project creator cannot be removed")

    member = await _get_member(db, project_id, user_id)
    await db.delete(member)
    await db.commit()

    logger.info("project_member_removed", project_id=str(project_id), user_id=str(user_id))


# =============================================================================
# Boards
# =============================================================================


@router.get("/{project_id}/boards", response_model=list[BoardResponse])
async def list_boards(
    project_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> list[Board]:
    await require_project(DatabaseAdapter(db), ctx, project_id)
    result = await db.execute(
        select(Board)
        .where(Board.project_id == project_id)
        .order_by(Board.is_default.desc(), Board.created_at)
    )
    return list(result.scalars().all())


@router.post(
    "/{project_id}/boards",
    response_model=BoardDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_board(
    project_id: UUID,
    body: BoardCreate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> BoardDetailResponse:
    """Create a board. Without explicit columns the default set is added."""
    adapter = DatabaseAdapter(db)
    await require_project(adapter, ctx, project_id)

    board = await create_board_with_columns(adapter, project_id, body)
    columns = await adapter.get_board_columns(board.id)
    await db.commit()

    logger.info("board_created", board_id=str(board.id), project_id=str(project_id))
    return BoardDetailResponse(
        **BoardResponse.model_validate(board).model_dump(),
        columns=[serialize_column(column) for column in columns],
    )
