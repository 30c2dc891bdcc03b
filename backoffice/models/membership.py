"""Membership model: "user U holds role R at scope S".

The scope is polymorphic: ``resource_id`` points at a company or a workspace
depending on ``resource_type``. In Python code the pair only travels as a
:data:`Scope` value so the two halves cannot drift apart.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import ClassVar

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from backoffice.models.base import SoftDeleteMixin, TimestampMixin, new_uuid
from backoffice.models.user import UserRead, UserSummary


class MembershipRole(StrEnum):
    ADMIN = "admin"
    WORKSPACE_ADMIN = "workspace_admin"
    MEMBER = "member"


class ResourceType(StrEnum):
    COMPANY = "company"
    WORKSPACE = "workspace"


# Highest first; used to collapse several rows into one consolidated role
ROLE_RANK: dict[MembershipRole, int] = {
    MembershipRole.ADMIN: 3,
    MembershipRole.WORKSPACE_ADMIN: 2,
    MembershipRole.MEMBER: 1,
}


@dataclass(frozen=True)
class CompanyScope:
    id: uuid.UUID
    resource_type: ClassVar[ResourceType] = ResourceType.COMPANY


@dataclass(frozen=True)
class WorkspaceScope:
    id: uuid.UUID
    resource_type: ClassVar[ResourceType] = ResourceType.WORKSPACE


Scope = CompanyScope | WorkspaceScope


class Membership(TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "memberships"
    __table_args__ = (
        Index("ix_memberships_user_scope", "user_id", "resource_type", "resource_id"),
        Index("ix_memberships_scope", "resource_type", "resource_id"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    resource_type: ResourceType = Field(nullable=False)
    resource_id: uuid.UUID = Field(nullable=False)
    role: MembershipRole = Field(nullable=False)

    @classmethod
    def for_scope(
        cls, user_id: uuid.UUID, scope: Scope, role: MembershipRole
    ) -> "Membership":
        return cls(
            user_id=user_id,
            resource_type=scope.resource_type,
            resource_id=scope.id,
            role=role,
        )

    @property
    def scope(self) -> Scope:
        if self.resource_type == ResourceType.COMPANY:
            return CompanyScope(self.resource_id)
        return WorkspaceScope(self.resource_id)


# ── Pydantic schemas ─────────────────────────────────────────

class MembershipRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    resource_type: ResourceType
    resource_id: uuid.UUID
    role: MembershipRole
    created_at: datetime


class PromoteMember(SQLModel):
    user_id: uuid.UUID


class WorkspaceRoleEntry(SQLModel):
    """A user's raw role in one workspace (``None`` when not a member)."""
    workspace_id: uuid.UUID
    workspace_name: str
    is_active: bool
    membership_id: uuid.UUID | None = None
    role: MembershipRole | None = None


class EffectiveRoles(SQLModel):
    company_role: MembershipRole | None
    company_membership_id: uuid.UUID | None
    workspace_roles: list[WorkspaceRoleEntry]


class MemberRolesRead(EffectiveRoles):
    user: UserSummary


class MemberWorkspaceRole(SQLModel):
    workspace_id: uuid.UUID
    workspace_name: str
    role: MembershipRole
    membership_id: uuid.UUID


class MemberEntry(SQLModel):
    """One row of a company's member list: every path into the tenant collapsed."""
    membership_id: uuid.UUID
    role: MembershipRole
    member_since: datetime
    workspace_roles: list[MemberWorkspaceRole]
    user: UserRead
