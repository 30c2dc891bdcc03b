"""User administration: lookups shared by the lifecycles, superadmin edits, profile."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from backoffice.core.errors import Conflict, NotFound
from backoffice.core.security import hash_password, placeholder_password_hash
from backoffice.models.base import Page, not_deleted, utcnow
from backoffice.models.user import ProfileUpdate, User, UserRead, UserUpdate
from backoffice.services.membership import assert_sole_actor_guard

logger = logging.getLogger(__name__)


async def find_user_by_email(session: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == email, not_deleted(User))
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    stmt = select(User).where(User.id == user_id, not_deleted(User))
    result = await session.execute(stmt)
    user = result.scalars().first()
    if user is None:
        raise NotFound("User not found")
    return user


async def _assert_email_free(
    session: AsyncSession, email: str, excluding_user_id: uuid.UUID
) -> None:
    stmt = select(User.id).where(
        User.email == email, User.id != excluding_user_id, not_deleted(User)
    )
    result = await session.execute(stmt)
    if result.scalars().first() is not None:
        raise Conflict("A user with this email already exists")


def search_clause(search: str):
    pattern = f"%{search}%"
    return or_(User.name.ilike(pattern), User.email.ilike(pattern))  # type: ignore[attr-defined]


async def list_users(
    session: AsyncSession,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[UserRead]:
    conditions = [not_deleted(User)]
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
        .order_by(User.created_at.desc())  # type: ignore[attr-defined]
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return Page[UserRead](
        data=[UserRead.model_validate(u) for u in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
    )


async def update_user(
    session: AsyncSession,
    user_id: uuid.UUID,
    body: UserUpdate,
    performed_by: uuid.UUID,
) -> UserRead:
    """Superadmin edit. A password set here must be changed on next login."""
    user = await get_user_or_404(session, user_id)
    assert_sole_actor_guard(performed_by, user_id, "Cannot change your own user here")

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("email") and update_data["email"] != user.email:
        await _assert_email_free(session, update_data["email"], user_id)

    password = update_data.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
        user.must_reset_password = True
    for field, value in update_data.items():
        setattr(user, field, value)

    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(
        "User %s updated by superadmin %s (fields: %s)",
        user_id, performed_by, sorted(body.model_dump(exclude_unset=True)),
    )
    return UserRead.model_validate(user)


async def update_profile(
    session: AsyncSession, user_id: uuid.UUID, body: ProfileUpdate
) -> UserRead:
    user = await get_user_or_404(session, user_id)

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("email") and update_data["email"] != user.email:
        await _assert_email_free(session, update_data["email"], user_id)

    password = update_data.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for field, value in update_data.items():
        setattr(user, field, value)

    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("User %s updated own profile", user_id)
    return UserRead.model_validate(user)


async def resolve_admin_identity(
    session: AsyncSession, email: str, name: str | None = None
) -> tuple[User, bool]:
    """Reuse the account behind ``email`` or stage a new one.

    A new account gets a display name (explicit, else the email local-part),
    a placeholder password and ``must_reset_password``. It is added and
    flushed but not committed: the caller binds it in its own transaction.
    Returns ``(user, created)``.
    """
    existing = await find_user_by_email(session, email)
    if existing is not None:
        return existing, False

    display_name = name.strip() if name and name.strip() else email.split("@", 1)[0]
    user = User(
        email=email,
        password_hash=placeholder_password_hash(),
        name=display_name,
        must_reset_password=True,
    )
    session.add(user)
    await session.flush()
    return user, True


async def ensure_superuser(session: AsyncSession, email: str, password: str) -> User:
    """Create the root superuser unless one already exists. Idempotent."""
    stmt = select(User).where(User.is_superuser.is_(True), not_deleted(User))  # type: ignore[attr-defined]
    existing = (await session.execute(stmt)).scalars().first()
    if existing is not None:
        logger.info("Superuser already exists: %s", existing.email)
        return existing

    if not password:
        raise RuntimeError("SEED_SUPERUSER_PASSWORD is not configured")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name="Super Admin",
        is_superuser=True,
        must_reset_password=False,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("Superuser created: %s", user.email)
    return user
