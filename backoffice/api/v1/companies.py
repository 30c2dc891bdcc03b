"""Company-admin endpoints: workspaces, members and admin roles of one company."""

import uuid

from fastapi import APIRouter, Depends, status

from backoffice.api.deps import CompanyAdmin, Notify, Session, require_company_admin
from backoffice.models.base import Page
from backoffice.models.membership import (
    MemberEntry,
    MemberRolesRead,
    MembershipRead,
    PromoteMember,
)
from backoffice.models.user import MemberUpdate, UserRead
from backoffice.models.workspace import (
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceUpdate,
    WorkspaceWithAdmin,
)
from backoffice.services import aggregation, companies, workspaces

router = APIRouter(
    prefix="/companies/{company_id}",
    tags=["companies"],
    dependencies=[Depends(require_company_admin)],
)


# ── Workspaces ───────────────────────────────────────────────

@router.post(
    "/workspaces",
    response_model=WorkspaceWithAdmin,
    status_code=status.HTTP_201_CREATED,
)
async def create_workspace(
    company_id: uuid.UUID,
    body: WorkspaceCreate,
    auth: CompanyAdmin,
    session: Session,
    notifier: Notify,
) -> WorkspaceWithAdmin:
    return await workspaces.create_workspace(session, notifier, company_id, body, auth.user_id)


@router.get("/workspaces", response_model=Page[WorkspaceRead])
async def list_workspaces(
    company_id: uuid.UUID,
    session: Session,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[WorkspaceRead]:
    return await workspaces.list_workspaces(
        session,
        company_id,
        is_active=is_active,
        page=max(page, 1),
        limit=min(max(limit, 1), 100),
    )


@router.get("/workspaces/{workspace_id}", response_model=WorkspaceRead)
async def get_workspace(
    company_id: uuid.UUID, workspace_id: uuid.UUID, session: Session
) -> WorkspaceRead:
    return await workspaces.get_workspace(session, company_id, workspace_id)


@router.patch("/workspaces/{workspace_id}", response_model=WorkspaceRead)
async def update_workspace(
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    body: WorkspaceUpdate,
    auth: CompanyAdmin,
    session: Session,
) -> WorkspaceRead:
    return await workspaces.update_workspace(
        session, company_id, workspace_id, body, auth.user_id
    )


@router.patch("/workspaces/{workspace_id}/activate", response_model=WorkspaceRead)
async def activate_workspace(
    company_id: uuid.UUID, workspace_id: uuid.UUID, auth: CompanyAdmin, session: Session
) -> WorkspaceRead:
    return await workspaces.activate_workspace(session, company_id, workspace_id, auth.user_id)


@router.patch("/workspaces/{workspace_id}/deactivate", response_model=WorkspaceRead)
async def deactivate_workspace(
    company_id: uuid.UUID, workspace_id: uuid.UUID, auth: CompanyAdmin, session: Session
) -> WorkspaceRead:
    return await workspaces.deactivate_workspace(
        session, company_id, workspace_id, auth.user_id
    )


@router.delete("/workspaces/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(
    company_id: uuid.UUID, workspace_id: uuid.UUID, auth: CompanyAdmin, session: Session
) -> None:
    await workspaces.delete_workspace(session, company_id, workspace_id, auth.user_id)


# ── Members ──────────────────────────────────────────────────

@router.get("/members", response_model=Page[MemberEntry])
async def list_members(
    company_id: uuid.UUID,
    session: Session,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[MemberEntry]:
    return await aggregation.list_members(
        session,
        company_id,
        search=search,
        is_active=is_active,
        page=max(page, 1),
        limit=min(max(limit, 1), 100),
    )


@router.get("/members/{user_id}/roles", response_model=MemberRolesRead)
async def get_member_roles(
    company_id: uuid.UUID, user_id: uuid.UUID, session: Session
) -> MemberRolesRead:
    return await workspaces.get_member_roles(session, company_id, user_id)


@router.patch("/members/{user_id}", response_model=UserRead)
async def update_member(
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    body: MemberUpdate,
    auth: CompanyAdmin,
    session: Session,
) -> UserRead:
    return await workspaces.update_member(session, company_id, user_id, body, auth.user_id)


@router.delete("/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    company_id: uuid.UUID, user_id: uuid.UUID, auth: CompanyAdmin, session: Session
) -> None:
    await workspaces.remove_member(session, company_id, user_id, auth.user_id)


# ── Company admins ───────────────────────────────────────────

@router.post(
    "/admins",
    response_model=MembershipRead,
    status_code=status.HTTP_201_CREATED,
)
async def promote_to_admin(
    company_id: uuid.UUID, body: PromoteMember, auth: CompanyAdmin, session: Session
) -> MembershipRead:
    return await companies.promote_to_admin(session, company_id, body.user_id, auth.user_id)


@router.delete("/admins/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_admin(
    company_id: uuid.UUID, user_id: uuid.UUID, auth: CompanyAdmin, session: Session
) -> None:
    await companies.revoke_admin(session, company_id, user_id, auth.user_id)


# ── Workspace admins ─────────────────────────────────────────

@router.post(
    "/workspaces/{workspace_id}/admins",
    response_model=MembershipRead,
    status_code=status.HTTP_201_CREATED,
)
async def promote_to_workspace_admin(
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    body: PromoteMember,
    auth: CompanyAdmin,
    session: Session,
) -> MembershipRead:
    return await workspaces.promote_to_workspace_admin(
        session, company_id, workspace_id, body.user_id, auth.user_id
    )


@router.delete(
    "/workspaces/{workspace_id}/admins/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def revoke_workspace_admin(
    company_id: uuid.UUID,
    workspace_id: uuid.UUID,
    user_id: uuid.UUID,
    auth: CompanyAdmin,
    session: Session,
) -> None:
    await workspaces.revoke_workspace_admin(
        session, company_id, workspace_id, user_id, auth.user_id
    )
