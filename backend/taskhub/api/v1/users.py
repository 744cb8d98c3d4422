"""User administration endpoints."""

from typing import Literal
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import AdminUser, CurrentUser
from taskhub.db.session import get_db_session
from taskhub.exceptions import NotFoundError, ValidationError
from taskhub.models.user import User
from taskhub.schemas.users import UserResponse

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=list[UserResponse])
async def list_users(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    approval_status: Literal["pending", "approved", "rejected"] | None = Query(None),
) -> list[User]:
    """List users. Non-admins only see approved, active accounts."""
    query = select(User).order_by(User.name)
    if not current_user.is_admin:
        query = query.where(User.approval_status == "approved", User.is_active.is_(True))
    elif approval_status:
        query = query.where(User.approval_status == approval_status)

    result = await db.execute(query)
    return list(result.scalars().all())


async def _set_approval(db: AsyncSession, user_id: UUID, admin: User, approval_status: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    if user.id == admin.id:
        raise ValidationError("Admins cannot change their own approval status")

    user.approval_status = approval_status
    await db.commit()

    logger.info(
        "user_approval_changed",
        user_id=str(user_id),
        approval_status=approval_status,
        admin_id=str(admin.id),
    )
    return user


@router.post("/{user_id}/approve", response_model=UserResponse)
async def approve_user(
    user_id: UUID,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Approve a pending account."""
    return await _set_approval(db, user_id, admin, "approved")


@router.post("/{user_id}/reject", response_model=UserResponse)
async def reject_user(
    user_id: UUID,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Reject an account; rejected users cannot sign in."""
    return await _set_approval(db, user_id, admin, "rejected")
