"""Company lifecycle: tenant roots, their admins, superadmin membership edits."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from backoffice.core.errors import Conflict, NotFound
from backoffice.models.base import Page, not_deleted, utcnow
from backoffice.models.company import (
    Company,
    CompanyCreate,
    CompanyCreated,
    CompanyRead,
    CompanyUpdate,
)
from backoffice.models.membership import (
    CompanyScope,
    Membership,
    MembershipRead,
    MembershipRole,
)
from backoffice.models.user import UserRead
from backoffice.services.credentials import send_first_access
from backoffice.services.membership import (
    assert_sole_actor_guard,
    find_active_membership,
    revoke_admin_membership,
    scope_clause,
)
from backoffice.services.notifications import Notifier
from backoffice.services.users import resolve_admin_identity

logger = logging.getLogger(__name__)

TAX_ID_TAKEN = "A company with this tax id already exists"


async def get_company_or_404(session: AsyncSession, company_id: uuid.UUID) -> Company:
    stmt = select(Company).where(Company.id == company_id, not_deleted(Company))
    result = await session.execute(stmt)
    company = result.scalars().first()
    if company is None:
        raise NotFound("Company not found")
    return company


async def _assert_tax_id_free(
    session: AsyncSession, tax_id: str, excluding_id: uuid.UUID | None = None
) -> None:
    stmt = select(Company.id).where(Company.tax_id == tax_id, not_deleted(Company))
    if excluding_id is not None:
        stmt = stmt.where(Company.id != excluding_id)
    result = await session.execute(stmt)
    if result.scalars().first() is not None:
        raise Conflict(TAX_ID_TAKEN)


# ── Companies ─────────────────────────────────────────────────

async def create_company(
    session: AsyncSession,
    notifier: Notifier,
    body: CompanyCreate,
    created_by_id: uuid.UUID,
) -> CompanyCreated:
    """Create a company bound to its first admin.

    The tax id is checked before anything is written. A new admin account
    gets a first-access link, returned as ``magic_link`` and emailed.
    """
    await _assert_tax_id_free(session, body.tax_id)

    admin, created = await resolve_admin_identity(session, body.admin_email, body.admin_name)

    company = Company(
        legal_name=body.legal_name,
        tax_id=body.tax_id,
        created_by_id=created_by_id,
    )
    session.add(company)
    await session.flush()
    session.add(Membership.for_scope(admin.id, CompanyScope(company.id), MembershipRole.ADMIN))
    await session.commit()
    await session.refresh(company)
    await session.refresh(admin)

    magic_link = None
    if created:
        magic_link = await send_first_access(session, notifier, admin)

    logger.info(
        "Company %s created with %s admin %s by %s",
        company.id, "new" if created else "existing", admin.id, created_by_id,
    )
    return CompanyCreated(
        company=CompanyRead.model_validate(company),
        admin=UserRead.model_validate(admin),
        email_sent=created,
        magic_link=magic_link,
    )


async def list_companies(
    session: AsyncSession,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[CompanyRead]:
    conditions = [not_deleted(Company)]
    if search:
        pattern = f"%{search}%"
        conditions.append(
            or_(
                Company.legal_name.ilike(pattern),  # type: ignore[attr-defined]
                Company.tax_id.ilike(pattern),  # type: ignore[attr-defined]
            )
        )
    if is_active is not None:
        conditions.append(Company.is_active == is_active)

    total = (await session.execute(
        select(func.count()).select_from(Company).where(*conditions)
    )).scalar_one()

    stmt = (
        select(Company)
        .where(*conditions)
        .order_by(Company.created_at.desc())  # type: ignore[attr-defined]
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return Page[CompanyRead](
        data=[CompanyRead.model_validate(c) for c in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
    )


async def update_company(
    session: AsyncSession,
    company_id: uuid.UUID,
    body: CompanyUpdate,
    performed_by: uuid.UUID,
) -> CompanyRead:
    company = await get_company_or_404(session, company_id)

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("tax_id") and update_data["tax_id"] != company.tax_id:
        await _assert_tax_id_free(session, update_data["tax_id"], excluding_id=company_id)

    for field, value in update_data.items():
        setattr(company, field, value)

    company.updated_at = utcnow()
    session.add(company)
    await session.commit()
    await session.refresh(company)

    logger.info(
        "Company %s updated by %s (fields: %s)", company_id, performed_by, sorted(update_data)
    )
    return CompanyRead.model_validate(company)


async def deactivate_company(
    session: AsyncSession, company_id: uuid.UUID, performed_by: uuid.UUID
) -> CompanyRead:
    company = await get_company_or_404(session, company_id)
    company.is_active = False
    company.updated_at = utcnow()
    session.add(company)
    await session.commit()
    await session.refresh(company)
    logger.info("Company %s deactivated by %s", company_id, performed_by)
    return CompanyRead.model_validate(company)


async def delete_company(
    session: AsyncSession, company_id: uuid.UUID, performed_by: uuid.UUID
) -> None:
    company = await get_company_or_404(session, company_id)
    company.soft_delete()
    session.add(company)
    await session.commit()
    logger.info("Company %s soft-deleted by %s", company_id, performed_by)


# ── Company admins ────────────────────────────────────────────

async def promote_to_admin(
    session: AsyncSession,
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> MembershipRead:
    """Upgrade the user's company-scope row to ``admin`` in place."""
    scope = CompanyScope(company_id)
    membership = await find_active_membership(session, user_id, scope)
    if membership is None:
        raise NotFound("User is not a member of this company")
    if membership.role == MembershipRole.ADMIN:
        raise Conflict("User is already an administrator of this company")

    membership.role = MembershipRole.ADMIN
    membership.updated_at = utcnow()
    session.add(membership)
    await session.commit()
    await session.refresh(membership)

    logger.info(
        "User %s promoted to admin of company %s by %s", user_id, company_id, performed_by
    )
    return MembershipRead.model_validate(membership)


async def revoke_admin(
    session: AsyncSession,
    company_id: uuid.UUID,
    target_user_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> None:
    assert_sole_actor_guard(
        performed_by, target_user_id, "Cannot revoke your own administrator role"
    )
    membership = await find_active_membership(
        session, target_user_id, CompanyScope(company_id), role=MembershipRole.ADMIN
    )
    if membership is None:
        raise NotFound("Administrator role not found for this user")

    await revoke_admin_membership(session, membership, performed_by, demote=True)


async def deactivate_membership(
    session: AsyncSession,
    company_id: uuid.UUID,
    membership_id: uuid.UUID,
    performed_by: uuid.UUID,
) -> None:
    """Superadmin removal of one company-scope row, admin or not."""
    stmt = select(Membership).where(
        Membership.id == membership_id,
        scope_clause(CompanyScope(company_id)),
        not_deleted(Membership),
    )
    membership = (await session.execute(stmt)).scalars().first()
    if membership is None:
        raise NotFound("Membership not found")

    if membership.role == MembershipRole.ADMIN:
        await revoke_admin_membership(session, membership, performed_by)
        return

    membership.soft_delete()
    session.add(membership)
    await session.commit()
    logger.info(
        "Membership %s of company %s deactivated by superadmin %s",
        membership_id, company_id, performed_by,
    )
