"""Membership resolver: role lookups and authority guards over current rows.

Company-admin authority over workspaces is a rule evaluated here on every
call (query the company-scope admin rows), never a cached hierarchy.
All reads filter soft-deleted rows.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from backoffice.core.errors import BadRequest, Forbidden
from backoffice.models.base import not_deleted, utcnow
from backoffice.models.membership import (
    ROLE_RANK,
    CompanyScope,
    EffectiveRoles,
    Membership,
    MembershipRole,
    ResourceType,
    Scope,
    WorkspaceRoleEntry,
)
from backoffice.models.workspace import Workspace

logger = logging.getLogger(__name__)


# ── Query fragments ───────────────────────────────────────────

def scope_clause(scope: Scope):
    return and_(
        Membership.resource_type == scope.resource_type,
        Membership.resource_id == scope.id,
    )


def tenant_clause(company_id: uuid.UUID, workspace_ids: Sequence[uuid.UUID]):
    """Rows tying a user to a company directly or through any of its workspaces."""
    clauses = [scope_clause(CompanyScope(company_id))]
    if workspace_ids:
        clauses.append(
            and_(
                Membership.resource_type == ResourceType.WORKSPACE,
                Membership.resource_id.in_(workspace_ids),  # type: ignore[attr-defined]
            )
        )
    return or_(*clauses)


async def company_workspaces(
    session: AsyncSession, company_id: uuid.UUID
) -> list[Workspace]:
    stmt = (
        select(Workspace)
        .where(Workspace.company_id == company_id, not_deleted(Workspace))
        .order_by(Workspace.name.asc())  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def company_workspace_ids(
    session: AsyncSession, company_id: uuid.UUID
) -> list[uuid.UUID]:
    stmt = select(Workspace.id).where(
        Workspace.company_id == company_id, not_deleted(Workspace)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def find_active_membership(
    session: AsyncSession,
    user_id: uuid.UUID,
    scope: Scope,
    role: MembershipRole | None = None,
) -> Membership | None:
    stmt = select(Membership).where(
        Membership.user_id == user_id,
        scope_clause(scope),
        not_deleted(Membership),
    )
    if role is not None:
        stmt = stmt.where(Membership.role == role)
    result = await session.execute(stmt)
    return result.scalars().first()


async def find_any_active_membership(
    session: AsyncSession,
    user_id: uuid.UUID,
    company_id: uuid.UUID,
    workspace_ids: Sequence[uuid.UUID],
) -> Membership | None:
    """Is this user part of the tenant at all, by any path?"""
    stmt = select(Membership).where(
        Membership.user_id == user_id,
        not_deleted(Membership),
        tenant_clause(company_id, workspace_ids),
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def tenant_memberships(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_ids: Sequence[uuid.UUID],
    user_id: uuid.UUID | None = None,
) -> list[Membership]:
    stmt = select(Membership).where(
        not_deleted(Membership),
        tenant_clause(company_id, workspace_ids),
    )
    if user_id is not None:
        stmt = stmt.where(Membership.user_id == user_id)
    stmt = stmt.order_by(Membership.created_at.asc())  # type: ignore[attr-defined]
    result = await session.execute(stmt)
    return list(result.scalars().all())


# ── Guards ────────────────────────────────────────────────────

async def assert_not_company_admin(
    session: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID
) -> None:
    """Company admins are only managed through the admin-specific operations."""
    admin = await find_active_membership(
        session, user_id, CompanyScope(company_id), role=MembershipRole.ADMIN
    )
    if admin is not None:
        raise Forbidden("Cannot change the roles of a company administrator")


def assert_sole_actor_guard(
    actor_id: uuid.UUID,
    target_id: uuid.UUID,
    detail: str = "This operation cannot be applied to yourself",
) -> None:
    if actor_id == target_id:
        raise BadRequest(detail)


async def count_other_active_admins(
    session: AsyncSession,
    scope: Scope,
    excluding_membership_id: uuid.UUID,
    *,
    lock: bool = False,
) -> int:
    """Active admin rows at ``scope`` other than the excluded one.

    With ``lock=True`` every active admin row of the scope is locked
    (``FOR UPDATE``, ordered by id) so concurrent revocations serialise and
    the second one re-reads the first one's soft delete.
    """
    stmt = (
        select(Membership.id)
        .where(
            scope_clause(scope),
            Membership.role == MembershipRole.ADMIN,
            not_deleted(Membership),
        )
        .order_by(Membership.id)
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return sum(1 for mid in result.scalars().all() if mid != excluding_membership_id)


async def revoke_admin_membership(
    session: AsyncSession,
    membership: Membership,
    performed_by: uuid.UUID,
    *,
    demote: bool = False,
) -> None:
    """Drop an admin row's authority unless it is the scope's last one.

    With ``demote`` the row stays active as a plain member, otherwise it is
    soft-deleted. The recount and the write share one transaction.
    """
    others = await count_other_active_admins(
        session, membership.scope, membership.id, lock=True
    )
    if others == 0:
        raise BadRequest(
            "Cannot remove the only administrator of the company. "
            "Add another administrator first."
        )
    if demote:
        membership.role = MembershipRole.MEMBER
        membership.updated_at = utcnow()
    else:
        membership.soft_delete()
    session.add(membership)
    await session.commit()
    logger.info(
        "Admin membership %s %s at %s %s by %s",
        membership.id, "demoted" if demote else "revoked",
        membership.resource_type, membership.resource_id, performed_by,
    )


# ── Role resolution ───────────────────────────────────────────

async def resolve_effective_role(
    session: AsyncSession, user_id: uuid.UUID, company_id: uuid.UUID
) -> EffectiveRoles:
    """Raw company role plus one entry per workspace of the company.

    Company admins get no synthetic workspace entries; hierarchy is left
    to the caller.
    """
    workspaces = await company_workspaces(session, company_id)
    rows = await tenant_memberships(
        session, company_id, [w.id for w in workspaces], user_id=user_id
    )

    company_row = next(
        (m for m in rows if m.resource_type == ResourceType.COMPANY), None
    )
    by_workspace = {
        m.resource_id: m for m in rows if m.resource_type == ResourceType.WORKSPACE
    }

    entries = []
    for ws in workspaces:
        m = by_workspace.get(ws.id)
        entries.append(
            WorkspaceRoleEntry(
                workspace_id=ws.id,
                workspace_name=ws.name,
                is_active=ws.is_active,
                membership_id=m.id if m else None,
                role=m.role if m else None,
            )
        )

    return EffectiveRoles(
        company_role=company_row.role if company_row else None,
        company_membership_id=company_row.id if company_row else None,
        workspace_roles=entries,
    )


@dataclass
class ConsolidatedRole:
    membership_id: uuid.UUID
    role: MembershipRole
    member_since: datetime


def consolidate_memberships(
    rows: Iterable[Membership],
) -> dict[uuid.UUID, ConsolidatedRole]:
    """Collapse each user's rows into one: highest rank, earliest date.

    On a rank tie the row seen first keeps its id, so callers pass rows
    oldest first.
    """
    consolidated: dict[uuid.UUID, ConsolidatedRole] = {}
    for m in rows:
        current = consolidated.get(m.user_id)
        if current is None:
            consolidated[m.user_id] = ConsolidatedRole(m.id, m.role, m.created_at)
            continue
        if ROLE_RANK[m.role] > ROLE_RANK[current.role]:
            current.membership_id = m.id
            current.role = m.role
        if m.created_at < current.member_since:
            current.member_since = m.created_at
    return consolidated
