"""Tasks API endpoints."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import Context
from taskhub.db.adapter import DatabaseAdapter
from taskhub.db.session import get_db_session
from taskhub.exceptions import AuthorizationError, NotFoundError, ValidationError
from taskhub.models.project import TaskAttachment, TaskComment
from taskhub.models.user import User
from taskhub.schemas.tasks import (
    AttachmentCreate,
    AttachmentResponse,
    CommentCreate,
    CommentResponse,
    TaskMutationResponse,
    TaskResponse,
    TaskUpdate,
    serialize_task,
)
from taskhub.services.access_control import require_task
from taskhub.services.task_workflow import TaskWorkflowService

router = APIRouter()
logger = structlog.get_logger()


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    """Get a task, archived or not."""
    adapter = DatabaseAdapter(db)
    task = await TaskWorkflowService(adapter, ctx).get_task(task_id)
    assignees = await adapter.get_task_assignees([task.id])
    return serialize_task(task, assignees.get(task.id))


@router.patch("/{task_id}", response_model=TaskMutationResponse)
@router.put("/{task_id}", response_model=TaskMutationResponse)
async def update_task(
    task_id: UUID,
    updates: TaskUpdate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> TaskMutationResponse:
    """Partially update a task.

    Moving a task (``columnId``) without an explicit ``status`` gives it the
    status of the destination column. ``isArchived: false`` restores an
    archived task. ``assigneeIds`` replaces the assignee set. PUT behaves
    exactly like PATCH.
    """
    adapter = DatabaseAdapter(db)
    workflow = TaskWorkflowService(adapter, ctx)

    change = await workflow.update_task(task_id, updates.model_dump(exclude_unset=True))
    assignees = await adapter.get_task_assignees([change.task.id])
    await db.commit()

    return serialize_task(change.task, assignees.get(change.task.id), change.archived_task_ids)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a task with its comments, attachments and assignees."""
    await TaskWorkflowService(DatabaseAdapter(db), ctx).delete_task(task_id)
    await db.commit()


# =============================================================================
# Comments
# =============================================================================


@router.get("/{task_id}/comments", response_model=list[CommentResponse])
async def list_task_comments(
    task_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> list[CommentResponse]:
    """Comments oldest first; replies carry ``parent_comment_id``."""
    await require_task(DatabaseAdapter(db), ctx, task_id)
    result = await db.execute(
        select(TaskComment, User.name)
        .join(User, User.id == TaskComment.author_id)
        .where(TaskComment.task_id == task_id)
        .order_by(TaskComment.created_at)
    )
    return [
        CommentResponse(
            id=comment.id,
            task_id=comment.task_id,
            author_id=comment.author_id,
            author_name=author_name,
            content=comment.content,
            parent_comment_id=comment.parent_comment_id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )
        for comment, author_name in result.all()
    ]


@router.post(
    "/{task_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_task_comment(
    task_id: UUID,
    body: CommentCreate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> CommentResponse:
    """Add a comment. Replies may only target top-level comments."""
    await require_task(DatabaseAdapter(db), ctx, task_id)

    if body.parent_comment_id is not None:
        parent = await db.get(TaskComment, body.parent_comment_id)
        if parent is None or parent.task_id != task_id:
            raise NotFoundError("Parent comment", body.parent_comment_id)
        if parent.parent_comment_id is not None:
            raise ValidationError(
                "Replies can only be one level deep",
                details=[{"field": "parent_comment_id", "message": "parent is itself a reply"}],
            )

    comment = TaskComment(
        task_id=task_id,
        author_id=ctx.user_id,
        content=body.content.strip(),
        parent_comment_id=body.parent_comment_id,
    )
    db.add(comment)
    await db.commit()

    logger.info("task_comment_created", task_id=str(task_id), comment_id=str(comment.id))
    return CommentResponse(
        id=comment.id,
        task_id=comment.task_id,
        author_id=comment.author_id,
        author_name=ctx.user.name,
        content=comment.content,
        parent_comment_id=comment.parent_comment_id,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


@router.delete("/{task_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_comment(
    task_id: UUID,
    comment_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a comment and its replies. Authors and admins only."""
    await require_task(DatabaseAdapter(db), ctx, task_id)

    comment = await db.get(TaskComment, comment_id)
    if comment is None or comment.task_id != task_id:
        raise NotFoundError("Comment", comment_id)
    if comment.author_id != ctx.user_id and not ctx.user.is_admin:
        raise AuthorizationError("Only the author can delete this comment")

    # Replies first, then the comment itself
    await db.execute(delete(TaskComment).where(TaskComment.parent_comment_id == comment_id))
    await db.execute(delete(TaskComment).where(TaskComment.id == comment_id))
    await db.commit()


# =============================================================================
# Attachments
# =============================================================================


@router.get("/{task_id}/attachments", response_model=list[AttachmentResponse])
async def list_task_attachments(
    task_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> list[TaskAttachment]:
    await require_task(DatabaseAdapter(db), ctx, task_id)
    result = await db.execute(
        select(TaskAttachment)
        .where(TaskAttachment.task_id == task_id)
        .order_by(TaskAttachment.created_at)
    )
    return list(result.scalars().all())


@router.post(
    "/{task_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_task_attachment(
    task_id: UUID,
    body: AttachmentCreate,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> TaskAttachment:
    """Record metadata for a file already uploaded to the file store."""
    await require_task(DatabaseAdapter(db), ctx, task_id)

    attachment = TaskAttachment(
        task_id=task_id,
        uploaded_by_id=ctx.user_id,
        filename=body.filename,
        size_bytes=body.size_bytes,
        mime_type=body.mime_type,
        storage_key=body.storage_key,
    )
    db.add(attachment)
    await db.commit()

    logger.info("task_attachment_created", task_id=str(task_id), attachment_id=str(attachment.id))
    return attachment


@router.delete(
    "/{task_id}/attachments/{attachment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_task_attachment(
    task_id: UUID,
    attachment_id: UUID,
    ctx: Context,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await require_task(DatabaseAdapter(db), ctx, task_id)

    attachment = await db.get(TaskAttachment, attachment_id)
    if attachment is None or attachment.task_id != task_id:
        raise NotFoundError("Attachment", attachment_id)
    await db.delete(attachment)
    await db.commit()
