"""Import all models so SQLModel.metadata picks them up."""

from backoffice.models.company import (
    Company,
    CompanyCreate,
    CompanyCreated,
    CompanyDetail,
    CompanyRead,
    CompanySummary,
    CompanyUpdate,
    MyCompany,
    UserDetail,
)
from backoffice.models.credential_token import CredentialToken, TokenKind
from backoffice.models.membership import (
    CompanyScope,
    EffectiveRoles,
    MemberEntry,
    MemberRolesRead,
    Membership,
    MembershipRead,
    MembershipRole,
    PromoteMember,
    ResourceType,
    Scope,
    WorkspaceRoleEntry,
    WorkspaceScope,
)
from backoffice.models.user import (
    MemberUpdate,
    ProfileUpdate,
    User,
    UserRead,
    UserSummary,
    UserUpdate,
)
from backoffice.models.workspace import (
    Workspace,
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceUpdate,
    WorkspaceWithAdmin,
)

__all__ = [
    "Company",
    "CompanyCreate",
    "CompanyCreated",
    "CompanyDetail",
    "CompanyRead",
    "CompanyScope",
    "CompanySummary",
    "CompanyUpdate",
    "CredentialToken",
    "EffectiveRoles",
    "MemberEntry",
    "MemberRolesRead",
    "MemberUpdate",
    "Membership",
    "MembershipRead",
    "MembershipRole",
    "MyCompany",
    "ProfileUpdate",
    "PromoteMember",
    "ResourceType",
    "Scope",
    "TokenKind",
    "User",
    "UserDetail",
    "UserRead",
    "UserSummary",
    "UserUpdate",
    "Workspace",
    "WorkspaceCreate",
    "WorkspaceRead",
    "WorkspaceRoleEntry",
    "WorkspaceScope",
    "WorkspaceUpdate",
    "WorkspaceWithAdmin",
]
