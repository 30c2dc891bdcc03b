"""One-time credential tokens: password reset and first access links."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from backoffice.models.base import TimestampMixin, new_uuid


class TokenKind(StrEnum):
    PASSWORD_RESET = "password_reset"  # short-lived, user-initiated
    FIRST_ACCESS = "first_access"  # long-lived, system-initiated onboarding


class CredentialToken(TimestampMixin, SQLModel, table=True):
    __tablename__ = "credential_tokens"
    __table_args__ = (
        Index("ix_credential_tokens_lookup", "user_id", "kind", "used_at", "expires_at"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    kind: TokenKind = Field(nullable=False)

    # SHA-256 hash of the raw token; the raw value only leaves in a link
    token_hash: str = Field(nullable=False, unique=True, index=True)

    expires_at: datetime = Field(nullable=False)
    used_at: datetime | None = Field(default=None)
