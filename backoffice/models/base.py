"""Shared base fields for all models."""

import uuid
from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlmodel import Field, SQLModel

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class TimestampMixin(SQLModel):
    """Created / updated timestamps injected into every table."""

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class SoftDeleteMixin(SQLModel):
    """Rows are retired by timestamp, never physically removed."""

    deleted_at: datetime | None = Field(default=None, index=True)

    def soft_delete(self) -> None:
        now = utcnow()
        self.deleted_at = now
        self.updated_at = now  # type: ignore[attr-defined]


def not_deleted(model):
    """WHERE clause fragment every read of a soft-deletable table must carry."""
    return model.deleted_at.is_(None)


class Page(BaseModel, Generic[T]):
    """List envelope returned by every paginated endpoint."""
    data: list[T]
    total: int
    page: int
    limit: int
