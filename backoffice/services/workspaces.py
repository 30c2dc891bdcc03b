"""Workspace lifecycle: workspaces, their admins and the company's members.

Every operation runs on behalf of a company admin already checked by the
API guard; the rules about *whom* they may act on live here.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from backoffice.core.errors import Conflict, NotFound
from backoffice.models.base import Page, not_deleted, utcnow
from backoffice.models.membership import (
    CompanyScope,
    MemberRolesRead,
    Membership,
    MembershipRead,
    MembershipRole,
    WorkspaceScope,
)
from backoffice.models.user import MemberUpdate, UserRead, UserSummary
from backoffice.models.workspace import (
    Workspace,
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceUpdate,
    WorkspaceWithAdmin,
)
from backoffice.services.credentials import send_first_access
from backoffice.services.membership import (
    assert_not_company_admin,
    assert_sole_actor_guard,
    company_workspace_ids,
    find_active_membership,
    find_any_active_membership,
    resolve_effective_role,
    tenant_clause,
)
from backoffice.services.notifications import Notifier
from backoffice.services.users import get_user_or_404, resolve_admin_identity

logger = logging.getLogger(__name__)

MEMBER_NOT_FOUND = "Member not found in this company"


async def get_workspace_or_404(
    session: AsyncSession, company_id: uuid.UUID, workspace_id: uuid.UUID
) -> Workspace:
    stmt = select(Workspace).where(
        Workspace.id == workspace_id,
        Workspace.company_id == company_id,
        not_deleted(Workspace),
    )
    result = await session.execute(stmt)
    workspace = result.scalars().first()
    if workspace is None:
        raise NotFound("Workspace not found")
    return workspace


# ── Workspaces ────────────────────────────────────────────────

async def create_workspace(
    session: AsyncSession,
    notifier: Notifier,
    company_id: uuid.UUID,
    body: WorkspaceCreate,
    created_by_id: uuid.UUID,
) -> WorkspaceWithAdmin:
    """Create a workspace bound to its first workspace admin.

    An unknown ``admin_email`` becomes a new account that also gets a
    company-scope ``member`` row and a first-access email. A known one is
    linked as-is and nobody is notified.
    """
    admin, created = await resolve_admin_identity(session, body.admin_email, body.admin_name)

    workspace = Workspace(
        company_id=company_id,
        name=body.name,
        description=body.description,
        created_by_id=created_by_id,
    )
    session.add(workspace)
    await session.flush()

    if created:
        session.add(
            Membership.for_scope(admin.id, CompanyScope(company_id), MembershipRole.MEMBER)
        )
    session.add(
        Membership.for_scope(
            admin.id, WorkspaceScope(workspace.id), MembershipRole.WORKSPACE_ADMIN
        )
    )
    await session.commit()
    await session.refresh(workspace)
    await session.refresh(admin)

    if created:
        await send_first_access(session, notifier, admin)

    logger.info(
        "Workspace %s created in company %s with %s admin %s by %s",
        workspace.id, company_id, "new" if created else "existing", admin.id, created_by_id,
    )
    return WorkspaceWithAdmin(
        workspace=WorkspaceRead.model_validate(workspace),
        admin=UserRead.model_validate(admin),
    )


async def list_workspaces(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[WorkspaceRead]:
    conditions = [Workspace.company_id == company_id, not_deleted(Workspace)]
    if is_active is not None:
        conditions.append(Workspace.is_active == is_active)

    total = (await session.execute(
        select(func.count()).select_from(Workspace).where(*conditions)
    )).scalar_one()

    stmt = (
        select(Workspace)
        .where(*conditions)
        .order_by(Workspace.created_at.desc())  # type: ignore[attr-defined]
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return Page[WorkspaceRead](
        data=[WorkspaceRead.model_validate(w) for w in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
    )


async def get_workspace(
    session: AsyncSession, company_id: uuid.UUID, workspace_id: uuid.UUID
) -> WorkspaceRead:
    workspace = await get_workspace_or_404(session, company_id, workspace_id)
    return WorkspaceRead.model_validate(workspace)


async def update_workspace(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    body: WorkspaceUpdate,
    performed_by: uuid.UUID,
) -> WorkspaceRead:
    workspace = await get_workspace_or_404(session, company_id, workspace_id)

    update_data = body.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(workspace, field, value)

    workspace.updated_at = utcnow()
    session.add(workspace)
    await session.commit()
    await session.refresh(workspace)

    logger.info(
        "Workspace %s updated by %s (fields: %s)",
        workspace_id, performed_by, sorted(update_data),
    )
    return WorkspaceRead.model_validate(workspace)


async def _set_workspace_active(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    is_active: bool,
    performed_by: uuid.UUID,
) -> WorkspaceRead:
    workspace = await get_workspace_or_404(session, company_id, workspace_id)
    workspace.is_active = is_active
    workspace.updated_at = utcnow()
    session.add(workspace)
    await session.commit()
    await session.refresh(workspace)

    logger.info(
        "Workspace %s %s by %s",
        workspace_id, "activated" if is_active else "deactivated", performed_by,
    )
    return WorkspaceRead.model_validate(workspace)


async def activate_workspace(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> WorkspaceRead:
    return await _set_workspace_active(session, company_id, workspace_id, True, performed_by)


async def deactivate_workspace(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> WorkspaceRead:
    return await _set_workspace_active(session, company_id, workspace_id, False, performed_by)


async def delete_workspace(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> None:
    workspace = await get_workspace_or_404(session, company_id, workspace_id)
    workspace.soft_delete()
    session.add(workspace)
    await session.commit()
    logger.info("Workspace %s soft-deleted by %s", workspace_id, performed_by)


# ── Members ───────────────────────────────────────────────────

async def update_member(
    session: AsyncSession,
    company_id: uuid.UUID,
    target_user_id: uuid.UUID,
    body: MemberUpdate,
    performed_by: uuid.UUID,
) -> UserRead:
    assert_sole_actor_guard(performed_by, target_user_id, "Cannot change your own user")
    await assert_not_company_admin(session, company_id, target_user_id)

    ws_ids = await company_workspace_ids(session, company_id)
    if await find_any_active_membership(session, target_user_id, company_id, ws_ids) is None:
        raise NotFound(MEMBER_NOT_FOUND)

    user = await get_user_or_404(session, target_user_id)
    update_data = body.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(user, field, value)

    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(
        "Member %s of company %s updated by %s (fields: %s)",
        target_user_id, company_id, performed_by, sorted(update_data),
    )
    return UserRead.model_validate(user)


async def remove_member(
    session: AsyncSession,
    company_id: uuid.UUID,
    target_user_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> int:
    """Soft-delete every active row tying the user to the tenant. Returns the count."""
    assert_sole_actor_guard(
        performed_by, target_user_id, "Cannot remove yourself from the company"
    )
    await assert_not_company_admin(session, company_id, target_user_id)

    ws_ids = await company_workspace_ids(session, company_id)
    now = utcnow()
    result = await session.execute(
        update(Membership)
        .where(
            Membership.user_id == target_user_id,
            not_deleted(Membership),
            tenant_clause(company_id, ws_ids),
        )
        .values(deleted_at=now, updated_at=now)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise NotFound(MEMBER_NOT_FOUND)
    await session.commit()

    logger.info(
        "Member %s removed from company %s and its workspaces by %s (%d memberships)",
        target_user_id, company_id, performed_by, result.rowcount,
    )
    return result.rowcount


async def get_member_roles(
    session: AsyncSession, company_id: uuid.UUID, target_user_id: uuid.UUID
) -> MemberRolesRead:
    user = await get_user_or_404(session, target_user_id)
    roles = await resolve_effective_role(session, target_user_id, company_id)
    return MemberRolesRead(
        user=UserSummary.model_validate(user),
        **roles.model_dump(),
    )


# ── Workspace admins ──────────────────────────────────────────

async def promote_to_workspace_admin(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    user_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> MembershipRead:
    """Grant ``workspace_admin`` on one workspace to someone already in the tenant.

    An existing workspace row is upgraded in place. Without one, a new row
    is inserted, preceded by an implicit company ``member`` row when the
    user had no company-scope tie yet.
    """
    await assert_not_company_admin(session, company_id, user_id)
    await get_workspace_or_404(session, company_id, workspace_id)

    ws_ids = await company_workspace_ids(session, company_id)
    if await find_any_active_membership(session, user_id, company_id, ws_ids) is None:
        raise NotFound("User is not a member of this company")

    scope = WorkspaceScope(workspace_id)
    existing = await find_active_membership(session, user_id, scope)
    if existing is not None:
        if existing.role == MembershipRole.WORKSPACE_ADMIN:
            raise Conflict("User is already an administrator of this workspace")
        existing.role = MembershipRole.WORKSPACE_ADMIN
        existing.updated_at = utcnow()
        session.add(existing)
        await session.commit()
        await session.refresh(existing)
        logger.info(
            "User %s promoted to workspace_admin of %s by %s (membership %s upgraded)",
            user_id, workspace_id, performed_by, existing.id,
        )
        return MembershipRead.model_validate(existing)

    company_scope = CompanyScope(company_id)
    if await find_active_membership(session, user_id, company_scope) is None:
        session.add(Membership.for_scope(user_id, company_scope, MembershipRole.MEMBER))

    membership = Membership.for_scope(user_id, scope, MembershipRole.WORKSPACE_ADMIN)
    session.add(membership)
    await session.commit()
    await session.refresh(membership)

    logger.info(
        "User %s promoted to workspace_admin of %s by %s",
        user_id, workspace_id, performed_by,
    )
    return MembershipRead.model_validate(membership)


async def revoke_workspace_admin(
    session: AsyncSession,
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    target_user_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> None:
    assert_sole_actor_guard(
        performed_by, target_user_id, "Cannot revoke your own administrator role"
    )
    await assert_not_company_admin(session, company_id, target_user_id)
    await get_workspace_or_404(session, company_id, workspace_id)

    membership = await find_active_membership(
        session,
        target_user_id,
        WorkspaceScope(workspace_id),
        role=MembershipRole.WORKSPACE_ADMIN,
    )
    if membership is None:
        raise NotFound("Workspace administrator role not found for this user")

    membership.soft_delete()
    session.add(membership)
    await session.commit()

    logger.info(
        "Workspace admin role of %s on %s revoked by %s",
        target_user_id, workspace_id, performed_by,
    )
