"""Workspace model: belongs to exactly one company."""

import uuid
from datetime import datetime

from pydantic import EmailStr
from sqlmodel import Field, SQLModel

from backoffice.models.base import SoftDeleteMixin, TimestampMixin, new_uuid
from backoffice.models.user import UserRead


class Workspace(TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "workspaces"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    # Immutable after creation
    company_id: uuid.UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    name: str = Field(max_length=255, nullable=False)
    description: str | None = Field(default=None, max_length=1000)
    is_active: bool = Field(default=True)
    created_by_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class WorkspaceCreate(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    admin_email: EmailStr
    admin_name: str | None = Field(default=None, max_length=255)


class WorkspaceUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class WorkspaceRead(SQLModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    description: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class WorkspaceWithAdmin(SQLModel):
    workspace: WorkspaceRead
    admin: UserRead
