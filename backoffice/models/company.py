"""Company model: tenant root."""

import uuid
from datetime import datetime

from pydantic import EmailStr
from sqlmodel import Field, SQLModel

from backoffice.models.base import SoftDeleteMixin, TimestampMixin, new_uuid
from backoffice.models.membership import MembershipRole
from backoffice.models.user import UserRead, UserSummary


class Company(TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "companies"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    legal_name: str = Field(max_length=255, nullable=False)
    # Globally unique among non-deleted companies
    tax_id: str = Field(max_length=32, nullable=False, index=True)
    is_active: bool = Field(default=True)
    created_by_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class CompanyCreate(SQLModel):
    legal_name: str = Field(min_length=1, max_length=255)
    tax_id: str = Field(min_length=1, max_length=32)
    admin_email: EmailStr
    # Ignored when the email already belongs to an existing user
    admin_name: str | None = Field(default=None, max_length=255)


class CompanyUpdate(SQLModel):
    legal_name: str | None = Field(default=None, min_length=1, max_length=255)
    tax_id: str | None = Field(default=None, min_length=1, max_length=32)


class CompanyRead(SQLModel):
    id: uuid.UUID
    legal_name: str
    tax_id: str
    is_active: bool
    created_by_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class CompanySummary(SQLModel):
    id: uuid.UUID
    legal_name: str
    tax_id: str
    is_active: bool


class CompanyCreated(SQLModel):
    company: CompanyRead
    admin: UserRead
    # True when a first-access email was queued for a new admin account
    email_sent: bool
    magic_link: str | None = None


class CompanyAdminEntry(SQLModel):
    membership_id: uuid.UUID
    role: MembershipRole
    created_at: datetime
    user: UserSummary


class CompanyDetail(CompanyRead):
    created_by: UserSummary | None
    admins: list[CompanyAdminEntry]
    workspaces_count: int


class MyCompany(SQLModel):
    company_id: uuid.UUID
    legal_name: str
    role: MembershipRole


class UserCompanyMembership(SQLModel):
    membership_id: uuid.UUID
    role: MembershipRole
    created_at: datetime
    company: CompanySummary | None


class UserDetail(UserRead):
    memberships: list[UserCompanyMembership]
