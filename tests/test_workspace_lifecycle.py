"""Tests for workspace creation with its first admin, and workspace CRUD."""

import uuid

import pytest
from httpx import AsyncClient
from sqlmodel import select

from backoffice.models.credential_token import CredentialToken, TokenKind
from backoffice.models.membership import Membership, MembershipRole, ResourceType
from backoffice.models.user import User
from backoffice.services.notifications import NotificationKind
from factories import headers_for, make_company, make_user


def _url(company_id, suffix: str = "") -> str:
    return f"/v1/companies/{company_id}/workspaces{suffix}"


@pytest.mark.asyncio
async def test_create_workspace_with_new_admin(
    client: AsyncClient, session, company, company_admin, notifier, sender
):
    """Unknown email: a new account is provisioned and gets one first-access email."""
    resp = await client.post(_url(company.id), json={
        "name": "Sales",
        "description": "Field team",
        "admin_email": "new.lead@acme.com",
    }, headers=headers_for(company_admin))
    assert resp.status_code == 201
    data = resp.json()

    assert uuid.UUID(data["workspace"]["id"])
    assert data["workspace"]["company_id"] == str(company.id)
    admin = data["admin"]
    assert admin["email"] == "new.lead@acme.com"
    assert admin["name"] == "new.lead"
    assert admin["must_reset_password"] is True
    assert "password_hash" not in admin
    assert "password" not in admin

    await notifier.drain()
    assert len(sender.sent) == 1
    kind, recipient, payload = sender.sent[0]
    assert kind == NotificationKind.FIRST_ACCESS
    assert recipient == "new.lead@acme.com"
    assert payload["link"].startswith("https://app.test/first-access?token=")

    rows = (await session.execute(
        select(Membership).where(Membership.user_id == uuid.UUID(admin["id"]))
    )).scalars().all()
    assert sorted((m.resource_type, m.role) for m in rows) == sorted([
        (ResourceType.COMPANY, MembershipRole.MEMBER),
        (ResourceType.WORKSPACE, MembershipRole.WORKSPACE_ADMIN),
    ])


@pytest.mark.asyncio
async def test_create_workspace_with_explicit_admin_name(
    client: AsyncClient, company, company_admin
):
    resp = await client.post(_url(company.id), json={
        "name": "Legal",
        "admin_email": "jr@acme.com",
        "admin_name": "Joana Ribeiro",
    }, headers=headers_for(company_admin))
    assert resp.status_code == 201
    assert resp.json()["admin"]["name"] == "Joana Ribeiro"


@pytest.mark.asyncio
async def test_create_workspace_with_existing_admin(
    client: AsyncClient, session, company, company_admin, notifier, sender
):
    """Known email: reuse the account, no token, no email, no company row added."""
    existing = await make_user(session, "veteran@acme.com", name="Veteran")

    resp = await client.post(_url(company.id), json={
        "name": "Finance",
        "admin_email": "veteran@acme.com",
    }, headers=headers_for(company_admin))
    assert resp.status_code == 201
    assert resp.json()["admin"]["id"] == str(existing.id)
    assert resp.json()["admin"]["name"] == "Veteran"

    await notifier.drain()
    assert sender.sent == []

    tokens = (await session.execute(
        select(CredentialToken).where(CredentialToken.user_id == existing.id)
    )).scalars().all()
    assert tokens == []

    rows = (await session.execute(
        select(Membership).where(Membership.user_id == existing.id)
    )).scalars().all()
    assert [(m.resource_type, m.role) for m in rows] == [
        (ResourceType.WORKSPACE, MembershipRole.WORKSPACE_ADMIN)
    ]


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_workspace(
    client: AsyncClient, session, company, company_admin, notifier, sender
):
    sender.fail = True

    resp = await client.post(_url(company.id), json={
        "name": "Support",
        "admin_email": "helpdesk@acme.com",
    }, headers=headers_for(company_admin))
    assert resp.status_code == 201

    await notifier.drain()
    assert sender.sent == []

    user = (await session.execute(
        select(User).where(User.email == "helpdesk@acme.com")
    )).scalars().first()
    assert user is not None
    token = (await session.execute(
        select(CredentialToken).where(CredentialToken.user_id == user.id)
    )).scalars().first()
    assert token.kind == TokenKind.FIRST_ACCESS

    resp = await client.get(
        _url(company.id, f"/{resp.json()['workspace']['id']}"),
        headers=headers_for(company_admin),
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_non_admin_cannot_create_workspace(client: AsyncClient, session, company):
    outsider = await make_user(session, "outsider@else.com")
    resp = await client.post(_url(company.id), json={
        "name": "Nope",
        "admin_email": "x@else.com",
    }, headers=headers_for(outsider))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_superuser_has_no_implicit_company_access(
    client: AsyncClient, company, superuser
):
    resp = await client.get(_url(company.id), headers=headers_for(superuser))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_inactive_company_blocks_its_admins(
    client: AsyncClient, session, company, company_admin
):
    company.is_active = False
    session.add(company)
    await session.commit()

    resp = await client.get(_url(company.id), headers=headers_for(company_admin))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_workspace_crud(client: AsyncClient, company, company_admin):
    headers = headers_for(company_admin)
    for name in ("Alpha", "Beta", "Gamma"):
        resp = await client.post(_url(company.id), json={
            "name": name, "admin_email": company_admin.email,
        }, headers=headers)
        assert resp.status_code == 201
    ws_id = resp.json()["workspace"]["id"]

    resp = await client.get(_url(company.id), params={"limit": 2}, headers=headers)
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 3
    assert page["page"] == 1
    assert page["limit"] == 2
    assert len(page["data"]) == 2

    resp = await client.patch(_url(company.id, f"/{ws_id}"), json={
        "name": "Gamma Prime",
    }, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Gamma Prime"

    resp = await client.patch(_url(company.id, f"/{ws_id}/deactivate"), headers=headers)
    assert resp.json()["is_active"] is False
    resp = await client.get(_url(company.id), params={"is_active": "false"}, headers=headers)
    assert [w["id"] for w in resp.json()["data"]] == [ws_id]

    resp = await client.patch(_url(company.id, f"/{ws_id}/activate"), headers=headers)
    assert resp.json()["is_active"] is True

    resp = await client.delete(_url(company.id, f"/{ws_id}"), headers=headers)
    assert resp.status_code == 204
    resp = await client.get(_url(company.id, f"/{ws_id}"), headers=headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Workspace not found"


@pytest.mark.asyncio
async def test_workspace_of_another_company_is_not_found(
    client: AsyncClient, session, company, company_admin
):
    other_admin = await make_user(session, "boss@other.com")
    other = await make_company(session, other_admin, tax_id="99888777000166")
    resp = await client.post(_url(other.id), json={
        "name": "Theirs", "admin_email": other_admin.email,
    }, headers=headers_for(other_admin))
    ws_id = resp.json()["workspace"]["id"]

    resp = await client.get(_url(company.id, f"/{ws_id}"), headers=headers_for(company_admin))
    assert resp.status_code == 404
