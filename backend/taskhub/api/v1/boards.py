"""Boards API endpoints."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import Context
from taskhub.db.adapter import DatabaseAdapter
from taskhub.db.session import get_db_session
from taskhub.exceptions import ValidationError
from taskhub.models.project import Board
from taskhub.schemas.projects import BoardDetailResponse, BoardResponse, BoardUpdate
from taskhub.schemas.tasks import (
    ColumnCreate,
    ColumnResponse,
    TaskResponse,
    serialize_column,
    serialize_task,
)
from taskhub.services.access_control import require_board

router = APIRouter()
logger = structlog.get_logger()


@router.get("/{board_id}", response_model=BoardDetailResponse)
async def get_board(
    board_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> BoardDetailResponse:
    """Get a board with its ordered columns."""
    adapter = DatabaseAdapter(db)
    board = await require_board(adapter, ctx, board_id)
    columns = await adapter.get_board_columns(board.id)
    return BoardDetailResponse(
        **BoardResponse.model_validate(board).model_dump(),
        columns=[serialize_column(column) for column in columns],
    )


@router.patch("/{board_id}", response_model=BoardResponse)
async def update_board(
    board_id: UUID,
    body: BoardUpdate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> Board:
    board = await require_board(DatabaseAdapter(db), ctx, board_id)

    update_data = body.model_dump(exclude_unset=True)
    for field in ("name", "is_default"):
        if field in update_data and update_data[field] is None:
            raise ValidationError(f"{field} cannot be null")
    for field, value in update_data.items():
        setattr(board, field, value)
    await db.commit()

    logger.info("board_updated", board_id=str(board_id), fields=sorted(update_data))
    return board


@router.delete("/{board_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_board(
    board_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a board with its columns and tasks."""
    adapter = DatabaseAdapter(db)
    await require_board(adapter, ctx, board_id)
    await adapter.delete_board(board_id)
    await db.commit()

    logger.info("board_deleted", board_id=str(board_id))


@router.get("/{board_id}/columns", response_model=list[ColumnResponse])
async def list_columns(
    board_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> list[ColumnResponse]:
    adapter = DatabaseAdapter(db)
    await require_board(adapter, ctx, board_id)
    return [serialize_column(column) for column in await adapter.get_board_columns(board_id)]


@router.post(
    "/{board_id}/columns",
    response_model=ColumnResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_column(
    board_id: UUID,
    body: ColumnCreate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> ColumnResponse:
    """Add a column; without ``position`` it goes last."""
    adapter = DatabaseAdapter(db)
    await require_board(adapter, ctx, board_id)

    column = await adapter.create_column(
        board_id,
        title=body.title.strip(),
        position=body.position,
        status=body.status.value if body.status else None,
        color=body.color,
    )
    await db.commit()

    logger.info("column_created", column_id=str(column.id), board_id=str(board_id))
    return serialize_column(column)


@router.get("/{board_id}/archived-tasks", response_model=list[TaskResponse])
async def list_archived_tasks(
    board_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> list[TaskResponse]:
    """Tasks archived on this board, most recently archived first."""
    adapter = DatabaseAdapter(db)
    await require_board(adapter, ctx, board_id)

    tasks = await adapter.get_archived_tasks(board_id)
    assignees = await adapter.get_task_assignees(task.id for task in tasks)
    return [serialize_task(task, assignees.get(task.id)) for task in tasks]
