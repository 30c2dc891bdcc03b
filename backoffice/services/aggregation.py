"""Read-only views derived from raw membership rows on every call."""

from __future__ import annotations

import uuid

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from backoffice.models.base import Page, not_deleted
from backoffice.models.company import (
    Company,
    CompanyAdminEntry,
    CompanyDetail,
    CompanyRead,
    CompanySummary,
    MyCompany,
    UserCompanyMembership,
    UserDetail,
)
from backoffice.models.membership import (
    CompanyScope,
    MemberEntry,
    Membership,
    MembershipRole,
    MemberWorkspaceRole,
    ResourceType,
)
from backoffice.models.user import User, UserRead, UserSummary
from backoffice.services.companies import get_company_or_404
from backoffice.services.membership import (
    company_workspaces,
    consolidate_memberships,
    scope_clause,
    tenant_memberships,
)
from backoffice.services.users import get_user_or_404, search_clause


async def my_companies(session: AsyncSession, user_id: uuid.UUID) -> list[MyCompany]:
    """Active companies the user administers, by legal name."""
    stmt = (
        select(Company, Membership.role)
        .join(
            Membership,
            (Membership.resource_id == Company.id)
            & (Membership.resource_type == ResourceType.COMPANY),
        )
        .where(
            Membership.user_id == user_id,
            Membership.role == MembershipRole.ADMIN,
            not_deleted(Membership),
            not_deleted(Company),
            Company.is_active.is_(True),  # type: ignore[attr-defined]
        )
        .order_by(Company.legal_name.asc())  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    return [
        MyCompany(company_id=company.id, legal_name=company.legal_name, role=role)
        for company, role in result.all()
    ]


async def list_members(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[MemberEntry]:
    """Everyone tied to the tenant, one entry per user.

    Each entry carries the user's highest role across company and workspace
    rows, the earliest of their dates, and every workspace role held.
    """
    workspaces = await company_workspaces(session, company_id)
    names = {w.id: w.name for w in workspaces}
    rows = await tenant_memberships(session, company_id, list(names))
    if not rows:
        return Page[MemberEntry](data=[], total=0, page=page, limit=limit)

    consolidated = consolidate_memberships(rows)
    workspace_roles: dict[uuid.UUID, list[MemberWorkspaceRole]] = {}
    for m in rows:
        if m.resource_type == ResourceType.WORKSPACE:
            workspace_roles.setdefault(m.user_id, []).append(
                MemberWorkspaceRole(
                    workspace_id=m.resource_id,
                    workspace_name=names.get(m.resource_id, str(m.resource_id)),
                    role=m.role,
                    membership_id=m.id,
                )
            )

    conditions = [User.id.in_(list(consolidated)), not_deleted(User)]  # type: ignore[attr-defined]
    if search:
        conditions.append(search_clause(search))
    if is_active is not None:
        conditions.append(User.is_active == is_active)

    total = (await session.execute(
        select(func.count()).select_from(User).where(*conditions)
    )).scalar_one()

    stmt = (
        select(User)
        .where(*conditions)
        .order_by(User.name.asc())  # type: ignore[attr-defined]
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = (await session.execute(stmt)).scalars().all()

    data = []
    for u in users:
        c = consolidated[u.id]
        data.append(
            MemberEntry(
                membership_id=c.membership_id,
                role=c.role,
                member_since=c.member_since,
                workspace_roles=workspace_roles.get(u.id, []),
                user=UserRead.model_validate(u),
            )
        )
    return Page[MemberEntry](data=data, total=total, page=page, limit=limit)


async def company_detail(session: AsyncSession, company_id: uuid.UUID) -> CompanyDetail:
    company = await get_company_or_404(session, company_id)
    creator = await session.get(User, company.created_by_id)

    stmt = (
        select(Membership, User)
        .join(User, User.id == Membership.user_id)
        .where(scope_clause(CompanyScope(company_id)), not_deleted(Membership))
        .order_by(Membership.created_at.asc())  # type: ignore[attr-defined]
    )
    rows = (await session.execute(stmt)).all()

    workspaces_count = len(await company_workspaces(session, company_id))

    return CompanyDetail(
        **CompanyRead.model_validate(company).model_dump(),
        created_by=UserSummary.model_validate(creator) if creator else None,
        admins=[
            CompanyAdminEntry(
                membership_id=m.id,
                role=m.role,
                created_at=m.created_at,
                user=UserSummary.model_validate(u),
            )
            for m, u in rows
        ],
        workspaces_count=workspaces_count,
    )


async def user_detail(session: AsyncSession, user_id: uuid.UUID) -> UserDetail:
    """A user plus every company they hold a direct row in."""
    user = await get_user_or_404(session, user_id)

    stmt = (
        select(Membership)
        .where(
            Membership.user_id == user_id,
            Membership.resource_type == ResourceType.COMPANY,
            not_deleted(Membership),
        )
        .order_by(Membership.created_at.asc())  # type: ignore[attr-defined]
    )
    memberships = (await session.execute(stmt)).scalars().all()

    companies: dict[uuid.UUID, Company] = {}
    if memberships:
        company_stmt = select(Company).where(
            Company.id.in_([m.resource_id for m in memberships]),  # type: ignore[attr-defined]
            not_deleted(Company),
        )
        companies = {c.id: c for c in (await session.execute(company_stmt)).scalars().all()}

    return UserDetail(
        **UserRead.model_validate(user).model_dump(),
        memberships=[
            UserCompanyMembership(
                membership_id=m.id,
                role=m.role,
                created_at=m.created_at,
                company=(
                    CompanySummary.model_validate(companies[m.resource_id])
                    if m.resource_id in companies
                    else None
                ),
            )
            for m in memberships
        ],
    )
