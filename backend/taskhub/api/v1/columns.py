"""Column endpoints, including the column task list with its done limit."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import Context
from taskhub.db.adapter import DatabaseAdapter
from taskhub.db.session import get_db_session
from taskhub.schemas.tasks import (
    BulkPositionResponse,
    BulkPositionUpdate,
    ColumnResponse,
    ColumnTasksResponse,
    ColumnUpdate,
    TaskCreate,
    TaskMutationResponse,
    serialize_column,
    serialize_task,
)
from taskhub.services.access_control import require_column
from taskhub.services.task_workflow import PositionUpdate, TaskWorkflowService

router = APIRouter()
logger = structlog.get_logger()


@router.get("/{column_id}/tasks", response_model=ColumnTasksResponse)
async def list_column_tasks(
    column_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> ColumnTasksResponse:
    """List the visible tasks of a column.

    For a done-mapped column the overflow beyond the limit is archived
    before the list is returned; the archived ids are reported alongside.
    """
    adapter = DatabaseAdapter(db)
    workflow = TaskWorkflowService(adapter, ctx)

    result = await workflow.list_column_tasks(column_id)
    assignees = await adapter.get_task_assignees(task.id for task in result.tasks)
    await db.commit()

    return ColumnTasksResponse(
        column=serialize_column(result.column),
        tasks=[serialize_task(task, assignees.get(task.id)) for task in result.tasks],
        archived_task_ids=result.archived_task_ids,
        done_limit=workflow.archiver.limit,
    )


@router.post(
    "/{column_id}/tasks",
    response_model=TaskMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_column_task(
    column_id: UUID,
    body: TaskCreate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> TaskMutationResponse:
    """Create a task in this column."""
    adapter = DatabaseAdapter(db)
    workflow = TaskWorkflowService(adapter, ctx)

    change = await workflow.create_task(column_id, body.model_dump(exclude_unset=True))
    assignees = await adapter.get_task_assignees([change.task.id])
    await db.commit()

    return serialize_task(change.task, assignees.get(change.task.id), change.archived_task_ids)


@router.patch("/{column_id}/tasks", response_model=BulkPositionResponse)
async def update_column_task_positions(
    column_id: UUID,
    body: BulkPositionUpdate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> BulkPositionResponse:
    """Reorder tasks, optionally moving them between columns.

    Applied in a single transaction: any invalid entry leaves every task
    untouched.
    """
    workflow = TaskWorkflowService(DatabaseAdapter(db), ctx)
    archived = await workflow.reorder(
        column_id,
        [
            PositionUpdate(task_id=item.id, position=item.position, column_id=item.column_id)
            for item in body.tasks
        ],
    )
    await db.commit()

    return BulkPositionResponse(updated=len(body.tasks), archived_task_ids=archived)


@router.patch("/{column_id}", response_model=ColumnResponse)
async def update_column(
    column_id: UUID,
    body: ColumnUpdate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> ColumnResponse:
    """Rename, reorder or recolor a column, or pin its status."""
    adapter = DatabaseAdapter(db)
    await require_column(adapter, ctx, column_id)

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("status") is not None:
        update_data["status"] = update_data["status"].value
    if isinstance(update_data.get("title"), str):
        update_data["title"] = update_data["title"].strip()

    column = await adapter.update_column(column_id, update_data)
    await db.commit()

    logger.info("column_updated", column_id=str(column_id), fields=sorted(update_data))
    return serialize_column(column)


@router.delete("/{column_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_column(
    column_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a column. Its tasks stay on the board without a column."""
    adapter = DatabaseAdapter(db)
    await require_column(adapter, ctx, column_id)
    await adapter.delete_column(column_id)
    await db.commit()

    logger.info("column_deleted", column_id=str(column_id))
