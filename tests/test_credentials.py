"""Tests for one-time credential tokens: issue, validate, consume."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from httpx import AsyncClient
from sqlmodel import select

from backoffice.core.errors import BadRequest
from backoffice.core.security import hash_token, verify_password
from backoffice.models.credential_token import CredentialToken, TokenKind
from backoffice.services import credentials
from backoffice.services.credentials import INVALID_TOKEN
from backoffice.services.notifications import NotificationKind
from factories import make_user


def _token_from(link: str) -> str:
    return parse_qs(urlparse(link).query)["token"][0]


@pytest.mark.asyncio
async def test_reset_token_is_single_use(client: AsyncClient, session, notifier, sender):
    """forgot-password → reset → the same link is rejected the second time."""
    user = await make_user(session, "forgetful@acme.com", password="old-password")

    # 1. Ask for a reset link
    resp = await client.post("/v1/auth/forgot-password", json={"email": "forgetful@acme.com"})
    assert resp.status_code == 200
    await notifier.drain()
    kind, recipient, payload = sender.sent[0]
    assert kind == NotificationKind.PASSWORD_RESET
    assert recipient == "forgetful@acme.com"
    assert payload["link"].startswith("https://app.test/reset-password?token=")
    assert payload["expires_minutes"] == 60
    raw = _token_from(payload["link"])

    # 2. Use it
    body = {"new_password": "brand-new-pass", "confirm_password": "brand-new-pass"}
    resp = await client.post(f"/v1/auth/reset-password/{raw}", json=body)
    assert resp.status_code == 200

    await session.refresh(user)
    assert verify_password("brand-new-pass", user.password_hash)
    assert user.must_reset_password is False

    # 3. Replay is rejected
    resp = await client.post(f"/v1/auth/reset-password/{raw}", json=body)
    assert resp.status_code == 400
    assert resp.json()["detail"] == INVALID_TOKEN


@pytest.mark.asyncio
async def test_mismatched_passwords_leave_token_usable(client: AsyncClient, session):
    user = await make_user(session, "typo@acme.com")
    raw = await credentials.issue(session, user.id, TokenKind.PASSWORD_RESET)

    resp = await client.post(f"/v1/auth/reset-password/{raw}", json={
        "new_password": "first-try-pw", "confirm_password": "second-try-pw",
    })
    assert resp.status_code == 400
    assert resp.json()["detail"] == credentials.PASSWORDS_DIFFER

    assert (await credentials.peek(session, raw, TokenKind.PASSWORD_RESET)).id == user.id


@pytest.mark.asyncio
async def test_new_token_invalidates_previous_of_same_kind(session):
    user = await make_user(session, "twice@acme.com")
    first = await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)
    second = await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)

    with pytest.raises(BadRequest):
        await credentials.peek(session, first, TokenKind.FIRST_ACCESS)
    assert (await credentials.peek(session, second, TokenKind.FIRST_ACCESS)).id == user.id


@pytest.mark.asyncio
async def test_kinds_do_not_interfere(session):
    """A reset request never burns a pending first-access link, and vice versa."""
    user = await make_user(session, "both@acme.com")
    onboarding = await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)
    reset = await credentials.issue(session, user.id, TokenKind.PASSWORD_RESET)

    assert (await credentials.peek(session, onboarding, TokenKind.FIRST_ACCESS)).id == user.id
    assert (await credentials.peek(session, reset, TokenKind.PASSWORD_RESET)).id == user.id

    # Presenting a token under the wrong kind fails
    with pytest.raises(BadRequest):
        await credentials.peek(session, onboarding, TokenKind.PASSWORD_RESET)


@pytest.mark.asyncio
async def test_expired_token_is_rejected(session):
    user = await make_user(session, "late@acme.com")
    raw = await credentials.issue(
        session, user.id, TokenKind.PASSWORD_RESET, ttl=timedelta(seconds=-1)
    )
    with pytest.raises(BadRequest) as exc:
        await credentials.consume(session, raw, TokenKind.PASSWORD_RESET, "whatever-pass")
    assert exc.value.detail == INVALID_TOKEN


@pytest.mark.asyncio
async def test_unknown_token_is_rejected(session):
    with pytest.raises(BadRequest):
        await credentials.peek(session, "not-a-real-token", TokenKind.FIRST_ACCESS)


@pytest.mark.asyncio
async def test_only_the_hash_is_stored(session):
    user = await make_user(session, "hashed@acme.com")
    raw = await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)

    record = (await session.execute(
        select(CredentialToken).where(CredentialToken.user_id == user.id)
    )).scalars().one()
    assert record.token_hash == hash_token(raw)
    assert record.token_hash != raw


@pytest.mark.asyncio
async def test_default_ttls(session):
    user = await make_user(session, "ttl@acme.com")
    await credentials.issue(session, user.id, TokenKind.PASSWORD_RESET)
    await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)

    records = {
        r.kind: r for r in (await session.execute(
            select(CredentialToken).where(CredentialToken.user_id == user.id)
        )).scalars().all()
    }
    reset_ttl = records[TokenKind.PASSWORD_RESET].expires_at - records[TokenKind.PASSWORD_RESET].created_at
    onboarding_ttl = (
        records[TokenKind.FIRST_ACCESS].expires_at - records[TokenKind.FIRST_ACCESS].created_at
    )
    assert timedelta(minutes=59) < reset_ttl <= timedelta(hours=1)
    assert timedelta(days=6, hours=23) < onboarding_ttl <= timedelta(days=7)


# ── First access ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_regenerate_first_access(session):
    pending = await make_user(session, "pending@acme.com", must_reset_password=True)
    done = await make_user(session, "done@acme.com")

    first = await credentials.get_or_regenerate_first_access(session, pending.id)
    second = await credentials.get_or_regenerate_first_access(session, pending.id)
    assert first != second
    with pytest.raises(BadRequest):
        await credentials.peek(session, first, TokenKind.FIRST_ACCESS)

    assert await credentials.get_or_regenerate_first_access(session, done.id) is None


@pytest.mark.asyncio
async def test_invalidate_user_credentials(session, superuser):
    user = await make_user(session, "reset.me@acme.com")
    pending_reset = await credentials.issue(session, user.id, TokenKind.PASSWORD_RESET)

    raw = await credentials.invalidate_user_credentials(session, user.id, superuser.id)

    await session.refresh(user)
    assert user.must_reset_password is True
    assert (await credentials.peek(session, raw, TokenKind.FIRST_ACCESS)).id == user.id
    # A reset link is a different kind and survives
    assert (await credentials.peek(session, pending_reset, TokenKind.PASSWORD_RESET)).id == user.id


@pytest.mark.asyncio
async def test_first_access_flow(client: AsyncClient, session):
    """GET validates without consuming; POST sets name + password and logs in."""
    user = await make_user(session, "newbie@acme.com", must_reset_password=True)
    raw = await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)

    resp = await client.get(f"/v1/auth/first-access/{raw}")
    assert resp.status_code == 200
    assert resp.json() == {"email": "newbie@acme.com", "name": "newbie"}

    # Validating twice is fine
    resp = await client.get(f"/v1/auth/first-access/{raw}")
    assert resp.status_code == 200

    resp = await client.post(f"/v1/auth/first-access/{raw}", json={
        "name": "Nina Newbie",
        "new_password": "onboarded-pw",
        "confirm_password": "onboarded-pw",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["name"] == "Nina Newbie"
    assert data["user"]["must_reset_password"] is False

    resp = await client.get(
        "/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert resp.status_code == 200
    assert resp.json()["email"] == "newbie@acme.com"

    resp = await client.get(f"/v1/auth/first-access/{raw}")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_first_access_token_cannot_reset_password(client: AsyncClient, session):
    user = await make_user(session, "mixup@acme.com", must_reset_password=True)
    raw = await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)

    resp = await client.post(f"/v1/auth/reset-password/{raw}", json={
        "new_password": "sneaky-pass", "confirm_password": "sneaky-pass",
    })
    assert resp.status_code == 400
    assert resp.json()["detail"] == INVALID_TOKEN


@pytest.mark.asyncio
async def test_deactivated_account_cannot_use_first_access(client: AsyncClient, session):
    user = await make_user(session, "disabled@acme.com", must_reset_password=True)
    raw = await credentials.issue(session, user.id, TokenKind.FIRST_ACCESS)
    user.is_active = False
    session.add(user)
    await session.commit()

    resp = await client.get(f"/v1/auth/first-access/{raw}")
    assert resp.status_code == 400

    resp = await client.post(f"/v1/auth/first-access/{raw}", json={
        "name": "Dee Sabled",
        "new_password": "let-me-in-pw",
        "confirm_password": "let-me-in-pw",
    })
    assert resp.status_code == 400
    assert resp.json()["detail"] == INVALID_TOKEN
    assert "access_token" not in resp.json()

    await session.refresh(user)
    assert user.must_reset_password is True
