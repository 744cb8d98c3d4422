"""Authentication endpoints: registration, password login, current user."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config import get_settings
from taskhub.db.adapter import DatabaseAdapter
from taskhub.db.base import utcnow
from taskhub.db.session import get_db_session
from taskhub.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ValidationError,
)
from taskhub.models.user import User
from taskhub.schemas.users import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserResponse,
)
from taskhub.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from taskhub.services.access_control import RequestContext, build_request_context

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Get the current authenticated user from JWT token."""
    if not credentials:
        raise AuthenticationError("Not authenticated")

    user_id = decode_access_token(credentials.credentials)
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    if not user.is_approved:
        raise AuthenticationError("Account is not approved", code="ACCOUNT_NOT_APPROVED")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_request_context(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> RequestContext:
    """Caller plus their accessible project ids, loaded once per request."""
    return await build_request_context(DatabaseAdapter(db), current_user)


Context = Annotated[RequestContext, Depends(get_request_context)]


async def require_admin(current_user: CurrentUser) -> User:
    if not current_user.is_admin:
        raise AuthorizationError("Admin role required")
    return current_user


AdminUser = Annotated[User, Depends(require_admin)]


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Register a new account. It stays pending until an admin approves it."""
    if len(body.password) < settings.password_min_length:
        raise ValidationError(
            "Password is too short",
            details=[
                {
                    "field": "password",
                    "message": f"must be at least {settings.password_min_length} characters",
                }
            ],
        )

    email = body.email.lower()
    existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("A user with this email already exists", code="EMAIL_TAKEN")

    user = User(
        email=email,
        name=body.name.strip(),
        password_hash=hash_password(body.password),
        role="user",
        approval_status="pending",
    )
    db.add(user)
    await db.commit()

    logger.info("user_registered", user_id=str(user.id))
    return user


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Exchange email and password for an access token."""
    result = await db.execute(select(User).where(func.lower(User.email) == body.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        logger.warning("login_failed", email=body.email.lower())
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    if not user.is_active:
        raise AuthenticationError("Account is disabled", code="ACCOUNT_DISABLED")
    if user.approval_status == "rejected":
        raise AuthorizationError("Account was rejected", code="ACCOUNT_REJECTED")
    if not user.is_approved:
        raise AuthorizationError("Account is awaiting approval", code="ACCOUNT_NOT_APPROVED")

    user.last_login_at = utcnow()
    await db.commit()

    logger.info("user_logged_in", user_id=str(user.id))
    return {
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
        "expires_in": settings.jwt_access_token_expire_minutes * 60,
        "user": user,
    }


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser) -> User:
    """Get current user information."""
    return current_user
