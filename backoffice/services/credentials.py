"""Credential provisioning: one-time tokens and the flows that consume them.

Two token kinds share one table: ``password_reset`` (user asked, 1 hour) and
``first_access`` (account created on the user's behalf, 7 days). Only the
SHA-256 hash is stored; the raw value leaves once, inside a link.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from backoffice.core.config import get_settings
from backoffice.core.errors import BadRequest, Unauthorized
from backoffice.core.security import (
    create_jwt,
    generate_token,
    hash_password,
    hash_token,
    verify_password,
)
from backoffice.models.base import utcnow
from backoffice.models.credential_token import CredentialToken, TokenKind
from backoffice.models.user import User, UserRead
from backoffice.services.notifications import NotificationKind, Notifier
from backoffice.services.users import find_user_by_email, get_user_or_404

logger = logging.getLogger(__name__)

INVALID_TOKEN = "Invalid or expired token"
PASSWORDS_DIFFER = "Passwords do not match"

FIRST_ACCESS_PATH = "first-access"
PASSWORD_RESET_PATH = "reset-password"


class LoginResult(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


def default_ttl(kind: TokenKind) -> timedelta:
    settings = get_settings()
    if kind == TokenKind.PASSWORD_RESET:
        return timedelta(seconds=settings.password_reset_expires_in)
    return timedelta(days=settings.first_access_expires_days)


def frontend_link(path: str, raw_token: str) -> str:
    frontend_url = get_settings().frontend_url
    if not frontend_url:
        raise RuntimeError("FRONTEND_URL is not configured")
    return f"{frontend_url.rstrip('/')}/{path}?token={raw_token}"


# ── Token primitives ──────────────────────────────────────────

async def issue(
    session: AsyncSession,
    user_id: uuid.UUID,
    kind: TokenKind,
    ttl: timedelta | None = None,
) -> str:
    """Invalidate the user's unused tokens of ``kind`` and mint a new one."""
    now = utcnow()
    await session.execute(
        update(CredentialToken)
        .where(
            CredentialToken.user_id == user_id,
            CredentialToken.kind == kind,
            CredentialToken.used_at.is_(None),  # type: ignore[union-attr]
        )
        .values(used_at=now, updated_at=now)
    )

    raw_token = generate_token()
    expires_at = now + (ttl or default_ttl(kind))
    session.add(
        CredentialToken(
            user_id=user_id,
            kind=kind,
            token_hash=hash_token(raw_token),
            expires_at=expires_at,
        )
    )
    await session.commit()

    logger.info("%s token issued for user %s (expires %s)", kind, user_id, expires_at)
    return raw_token


async def _find_valid(
    session: AsyncSession, raw_token: str, kind: TokenKind
) -> CredentialToken:
    token_hash = hash_token(raw_token)
    stmt = select(CredentialToken).where(CredentialToken.token_hash == token_hash)
    record = (await session.execute(stmt)).scalars().first()

    if (
        record is None
        or record.kind != kind
        or record.used_at is not None
        or record.expires_at < utcnow()
    ):
        logger.warning(
            "Invalid or expired %s token used (hash prefix %s)", kind, token_hash[:8]
        )
        raise BadRequest(INVALID_TOKEN)
    return record


async def _token_owner(session: AsyncSession, record: CredentialToken) -> User:
    user = await session.get(User, record.user_id)
    if user is None or user.deleted_at is not None or not user.is_active:
        raise BadRequest(INVALID_TOKEN)
    return user


async def peek(session: AsyncSession, raw_token: str, kind: TokenKind) -> User:
    """Validate a token without consuming it."""
    record = await _find_valid(session, raw_token, kind)
    return await _token_owner(session, record)


async def consume(
    session: AsyncSession,
    raw_token: str,
    kind: TokenKind,
    new_password: str,
    name: str | None = None,
) -> User:
    """Mark the token used and apply the credential change in one commit."""
    record = await _find_valid(session, raw_token, kind)
    user = await _token_owner(session, record)

    now = utcnow()
    user.password_hash = hash_password(new_password)
    user.must_reset_password = False
    if name and name.strip():
        user.name = name.strip()
    user.updated_at = now
    record.used_at = now
    record.updated_at = now
    session.add(user)
    session.add(record)
    await session.commit()
    await session.refresh(user)

    logger.info("%s token consumed by user %s", kind, user.id)
    return user


# ── First access ──────────────────────────────────────────────

async def send_first_access(
    session: AsyncSession, notifier: Notifier, user: User
) -> str:
    """Issue a first-access link for a freshly provisioned account and email it.

    Runs after the provisioning transaction committed; delivery is
    best-effort. Returns the link.
    """
    raw_token = await issue(session, user.id, TokenKind.FIRST_ACCESS)
    magic_link = frontend_link(FIRST_ACCESS_PATH, raw_token)
    notifier.dispatch(
        NotificationKind.FIRST_ACCESS,
        user.email,
        {
            "name": user.name,
            "link": magic_link,
            "expires_days": get_settings().first_access_expires_days,
        },
    )
    return magic_link


async def get_or_regenerate_first_access(
    session: AsyncSession, user_id: uuid.UUID
) -> str | None:
    """Always reissue, unless the account no longer needs a credential reset."""
    user = await get_user_or_404(session, user_id)
    if not user.must_reset_password:
        return None
    return await issue(session, user_id, TokenKind.FIRST_ACCESS)


async def invalidate_user_credentials(
    session: AsyncSession, user_id: uuid.UUID, performed_by: uuid.UUID
) -> str:
    user = await get_user_or_404(session, user_id)
    user.must_reset_password = True
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()

    raw_token = await issue(session, user_id, TokenKind.FIRST_ACCESS)
    logger.info("Credentials of user %s invalidated by %s", user_id, performed_by)
    return raw_token


async def consume_first_access(
    session: AsyncSession,
    raw_token: str,
    name: str,
    new_password: str,
    confirm_password: str,
) -> LoginResult:
    if new_password != confirm_password:
        raise BadRequest(PASSWORDS_DIFFER)
    user = await consume(session, raw_token, TokenKind.FIRST_ACCESS, new_password, name=name)
    return login(user)


# ── Password reset ────────────────────────────────────────────

async def request_password_reset(
    session: AsyncSession, notifier: Notifier, email: str
) -> None:
    """Email a reset link. Unknown or inactive emails succeed silently."""
    user = await find_user_by_email(session, email)
    if user is None or not user.is_active:
        logger.warning("Password reset requested for unknown or inactive email %s", email)
        return

    raw_token = await issue(session, user.id, TokenKind.PASSWORD_RESET)
    notifier.dispatch(
        NotificationKind.PASSWORD_RESET,
        user.email,
        {
            "link": frontend_link(PASSWORD_RESET_PATH, raw_token),
            "expires_minutes": get_settings().password_reset_expires_in // 60,
        },
    )


async def confirm_password_reset(
    session: AsyncSession, raw_token: str, new_password: str, confirm_password: str
) -> None:
    if new_password != confirm_password:
        raise BadRequest(PASSWORDS_DIFFER)
    await consume(session, raw_token, TokenKind.PASSWORD_RESET, new_password)


async def reset_own_password(
    session: AsyncSession,
    user_id: uuid.UUID,
    new_password: str,
    confirm_password: str,
    name: str | None = None,
) -> None:
    """Authenticated password change, e.g. right after a forced reset."""
    if new_password != confirm_password:
        raise BadRequest(PASSWORDS_DIFFER)
    user = await get_user_or_404(session, user_id)
    user.password_hash = hash_password(new_password)
    user.must_reset_password = False
    if name and name.strip():
        user.name = name.strip()
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    logger.info("User %s changed password", user_id)


# ── Login ─────────────────────────────────────────────────────

async def authenticate(session: AsyncSession, email: str, password: str) -> User:
    user = await find_user_by_email(session, email)
    if user is None:
        logger.warning("Login attempt for unknown email %s", email)
        raise Unauthorized("Invalid email or password")
    if not user.is_active:
        logger.warning("Login attempt for inactive user %s", user.id)
        raise Unauthorized("Account is disabled")
    if not verify_password(password, user.password_hash):
        logger.warning("Login attempt with invalid password for user %s", user.id)
        raise Unauthorized("Invalid email or password")
    return user


def login(user: User) -> LoginResult:
    token = create_jwt(
        subject=str(user.id),
        email=user.email,
        is_superuser=user.is_superuser,
        must_reset_password=user.must_reset_password,
    )
    logger.info("User %s logged in", user.id)
    return LoginResult(access_token=token, user=UserRead.model_validate(user))
