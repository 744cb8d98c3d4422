"""User model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from taskhub.db.base import BaseModel

USER_ROLES = ("admin", "manager", "user")
APPROVAL_STATUSES = ("pending", "approved", "rejected")


class User(BaseModel):
    """Registered account; must be approved by an admin before signing in."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # admin, manager, user
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    # pending, approved, rejected
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_approved(self) -> bool:
        return self.approval_status == "approved"

    def __repr__(self) -> str:
        return f"<User {self.email}>"
