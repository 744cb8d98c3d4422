"""Request/response models for projects, members and boards."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from taskhub.schemas.tasks import ColumnCreate, ColumnResponse

MemberRole = Literal["owner", "admin", "member"]
HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class ProjectCreate(BaseModel):
    """Create a new project."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    color: str | None = Field(None, pattern=HEX_COLOR)
    icon: str | None = Field(None, max_length=50)
    # Create a default board with the default columns
    create_default_board: bool = True


class ProjectUpdate(BaseModel):
    """Update a project."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    color: str | None = Field(None, pattern=HEX_COLOR)
    icon: str | None = Field(None, max_length=50)
    is_archived: bool | None = None


class ProjectResponse(BaseModel):
    """Project response."""

    id: UUID
    name: str
    description: str | None
    color: str | None
    icon: str | None
    creator_id: UUID
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MemberCreate(BaseModel):
    user_id: UUID
    role: MemberRole = "member"


class MemberUpdate(BaseModel):
    role: MemberRole


class MemberResponse(BaseModel):
    """Project member with basic user info."""

    id: UUID
    project_id: UUID
    user_id: UUID
    role: str
    joined_at: datetime
    user_name: str | None = None
    user_email: str | None = None


class BoardCreate(BaseModel):
    """Create a board; without ``columns`` the default set is created."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    color: str | None = Field(None, pattern=HEX_COLOR)
    is_default: bool = False
    columns: list[ColumnCreate] | None = None


class BoardUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    color: str | None = Field(None, pattern=HEX_COLOR)
    is_default: bool | None = None


class BoardResponse(BaseModel):
    """Board response."""

    id: UUID
    project_id: UUID
    name: str
    description: str | None
    color: str | None
    is_default: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BoardDetailResponse(BoardResponse):
    columns: list[ColumnResponse] = Field(default_factory=list)
