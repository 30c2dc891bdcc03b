"""Superadmin endpoints: companies, users and the caller's own profile."""

import uuid

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from backoffice.api.deps import Notify, Session, SuperUser, require_superuser
from backoffice.models.base import Page
from backoffice.models.company import (
    CompanyCreate,
    CompanyCreated,
    CompanyDetail,
    CompanyRead,
    CompanyUpdate,
    UserDetail,
)
from backoffice.models.user import ProfileUpdate, UserRead, UserUpdate
from backoffice.services import aggregation, companies, credentials, users
from backoffice.services.credentials import FIRST_ACCESS_PATH, frontend_link

router = APIRouter(
    prefix="/superadmin",
    tags=["superadmin"],
    dependencies=[Depends(require_superuser)],
)


class MagicLinkResponse(BaseModel):
    magic_link: str | None


def _magic_link(raw_token: str | None) -> MagicLinkResponse:
    if raw_token is None:
        return MagicLinkResponse(magic_link=None)
    return MagicLinkResponse(magic_link=frontend_link(FIRST_ACCESS_PATH, raw_token))


# ── Companies ────────────────────────────────────────────────

@router.post(
    "/companies",
    response_model=CompanyCreated,
    status_code=status.HTTP_201_CREATED,
)
async def create_company(
    body: CompanyCreate, auth: SuperUser, session: Session, notifier: Notify
) -> CompanyCreated:
    return await companies.create_company(session, notifier, body, auth.user_id)


@router.get("/companies", response_model=Page[CompanyRead])
async def list_companies(
    session: Session,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[CompanyRead]:
    return await companies.list_companies(
        session,
        search=search,
        is_active=is_active,
        page=max(page, 1),
        limit=min(max(limit, 1), 100),
    )


@router.get("/companies/{company_id}", response_model=CompanyDetail)
async def get_company(company_id: uuid.UUID, session: Session) -> CompanyDetail:
    return await aggregation.company_detail(session, company_id)


@router.patch("/companies/{company_id}", response_model=CompanyRead)
async def update_company(
    company_id: uuid.UUID, body: CompanyUpdate, auth: SuperUser, session: Session
) -> CompanyRead:
    return await companies.update_company(session, company_id, body, auth.user_id)


@router.patch("/companies/{company_id}/deactivate", response_model=CompanyRead)
async def deactivate_company(
    company_id: uuid.UUID, auth: SuperUser, session: Session
) -> CompanyRead:
    return await companies.deactivate_company(session, company_id, auth.user_id)


@router.delete("/companies/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_company(company_id: uuid.UUID, auth: SuperUser, session: Session) -> None:
    await companies.delete_company(session, company_id, auth.user_id)


@router.patch(
    "/companies/{company_id}/memberships/{membership_id}/deactivate",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def deactivate_membership(
    company_id: uuid.UUID,
    membership_id: uuid.UUID,
    auth: SuperUser,
    session: Session,
) -> None:
    await companies.deactivate_membership(session, company_id, membership_id, auth.user_id)


# ── Users ────────────────────────────────────────────────────

@router.get("/users", response_model=Page[UserRead])
async def list_users(
    session: Session,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[UserRead]:
    return await users.list_users(
        session,
        search=search,
        is_active=is_active,
        page=max(page, 1),
        limit=min(max(limit, 1), 100),
    )


@router.get("/users/{user_id}", response_model=UserDetail)
async def get_user(user_id: uuid.UUID, session: Session) -> UserDetail:
    return await aggregation.user_detail(session, user_id)


@router.patch("/users/{user_id}", response_model=UserRead)
async def update_user(
    user_id: uuid.UUID, body: UserUpdate, auth: SuperUser, session: Session
) -> UserRead:
    return await users.update_user(session, user_id, body, auth.user_id)


@router.post("/users/{user_id}/invalidate-credentials", response_model=MagicLinkResponse)
async def invalidate_credentials(
    user_id: uuid.UUID, auth: SuperUser, session: Session
) -> MagicLinkResponse:
    """Force a credential reset; the returned link is the only way back in."""
    raw_token = await credentials.invalidate_user_credentials(session, user_id, auth.user_id)
    return _magic_link(raw_token)


@router.get("/users/{user_id}/magic-link", response_model=MagicLinkResponse)
async def get_magic_link(user_id: uuid.UUID, session: Session) -> MagicLinkResponse:
    """Fresh first-access link, or ``null`` once onboarding is complete."""
    raw_token = await credentials.get_or_regenerate_first_access(session, user_id)
    return _magic_link(raw_token)


# ── Own profile ──────────────────────────────────────────────

@router.patch("/profile", response_model=UserRead)
async def update_profile(body: ProfileUpdate, auth: SuperUser, session: Session) -> UserRead:
    return await users.update_profile(session, auth.user_id, body)
