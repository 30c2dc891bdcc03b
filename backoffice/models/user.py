"""User model: a global identity; tenancy comes from memberships."""

import uuid
from datetime import datetime

from pydantic import EmailStr
from sqlmodel import Field, SQLModel

from backoffice.models.base import SoftDeleteMixin, TimestampMixin, new_uuid


class User(TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    # Unique among non-deleted rows; enforced by the services
    email: str = Field(max_length=320, nullable=False, index=True)
    password_hash: str = Field(nullable=False)
    name: str = Field(default="", max_length=255)
    phone: str | None = Field(default=None, max_length=50)

    # Superuser is an out-of-band tier, never a membership row
    is_superuser: bool = Field(default=False)
    must_reset_password: bool = Field(default=True)
    is_active: bool = Field(default=True)


# ── Pydantic schemas ─────────────────────────────────────────

class UserRead(SQLModel):
    """Public projection without the password hash."""
    id: uuid.UUID
    email: str
    name: str
    phone: str | None
    is_active: bool
    is_superuser: bool
    must_reset_password: bool
    created_at: datetime


class UserSummary(SQLModel):
    id: uuid.UUID
    name: str
    email: str
    phone: str | None
    is_active: bool


class UserUpdate(SQLModel):
    """Superadmin edit of another account."""
    is_active: bool | None = None
    name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    password: str | None = Field(default=None, min_length=8, max_length=128)


class ProfileUpdate(SQLModel):
    """Self edit of the caller's own profile."""
    name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    password: str | None = Field(default=None, min_length=8, max_length=128)


class MemberUpdate(SQLModel):
    """Company-admin edit of a tenant member: activation only."""
    is_active: bool | None = None
