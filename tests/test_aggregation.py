"""Tests for the read-only views: my companies, member list, user detail."""

import pytest
from httpx import AsyncClient

from backoffice.models.membership import CompanyScope, MembershipRole, WorkspaceScope
from backoffice.models.workspace import Workspace
from factories import add_membership, headers_for, make_company, make_user


async def _workspace(session, company, name: str) -> Workspace:
    ws = Workspace(company_id=company.id, name=name, created_by_id=company.created_by_id)
    session.add(ws)
    await session.commit()
    await session.refresh(ws)
    return ws


@pytest.mark.asyncio
async def test_my_companies_lists_only_active_admin_rows(
    client: AsyncClient, session, company, company_admin
):
    zeta = await make_company(session, company_admin, tax_id="22333444000155", legal_name="Zeta")
    dormant = await make_company(
        session, company_admin, tax_id="33444555000166", legal_name="Dormant"
    )
    dormant.is_active = False
    session.add(dormant)

    other_admin = await make_user(session, "boss@beta.com")
    beta = await make_company(session, other_admin, tax_id="44555666000177", legal_name="Beta")
    await add_membership(session, company_admin, CompanyScope(beta.id), MembershipRole.MEMBER)

    resp = await client.get("/v1/me/companies", headers=headers_for(company_admin))
    assert resp.status_code == 200
    assert resp.json() == [
        {"company_id": str(company.id), "legal_name": "Acme Ltda", "role": "admin"},
        {"company_id": str(zeta.id), "legal_name": "Zeta", "role": "admin"},
    ]


@pytest.mark.asyncio
async def test_my_companies_empty_for_plain_users(client: AsyncClient, session, company):
    plain = await make_user(session, "plain@acme.com")
    await add_membership(session, plain, CompanyScope(company.id), MembershipRole.MEMBER)

    resp = await client.get("/v1/me/companies", headers=headers_for(plain))
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_member_list_consolidates_paths(
    client: AsyncClient, session, company, company_admin
):
    """One entry per user: highest role, earliest date, every workspace role."""
    sales = await _workspace(session, company, "Sales")
    ops = await _workspace(session, company, "Ops")

    alice = await make_user(session, "alice@acme.com", name="Alice")
    first = await add_membership(session, alice, CompanyScope(company.id), MembershipRole.MEMBER)
    lead = await add_membership(
        session, alice, WorkspaceScope(sales.id), MembershipRole.WORKSPACE_ADMIN
    )
    await add_membership(session, alice, WorkspaceScope(ops.id), MembershipRole.MEMBER)

    bob = await make_user(session, "bob@acme.com", name="Bob")
    await add_membership(session, bob, WorkspaceScope(ops.id), MembershipRole.MEMBER)

    resp = await client.get(f"/v1/companies/{company.id}/members", headers=headers_for(company_admin))
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 3
    by_email = {m["user"]["email"]: m for m in page["data"]}
    assert [m["user"]["name"] for m in page["data"]] == ["Alice", "Bob", "Boss"]

    a = by_email["alice@acme.com"]
    assert a["role"] == "workspace_admin"
    assert a["membership_id"] == str(lead.id)
    assert a["member_since"].startswith(first.created_at.isoformat()[:19])
    assert sorted((w["workspace_name"], w["role"]) for w in a["workspace_roles"]) == [
        ("Ops", "member"),
        ("Sales", "workspace_admin"),
    ]

    assert by_email["bob@acme.com"]["role"] == "member"
    assert by_email["boss@acme.com"]["role"] == "admin"
    assert by_email["boss@acme.com"]["workspace_roles"] == []


@pytest.mark.asyncio
async def test_member_list_search_filter_and_pagination(
    client: AsyncClient, session, company, company_admin
):
    for name in ("Carla", "Carlos", "Dora"):
        user = await make_user(session, f"{name.lower()}@acme.com", name=name)
        await add_membership(session, user, CompanyScope(company.id), MembershipRole.MEMBER)
    dora = await make_user(session, "dora2@acme.com", name="Dora Two")
    dora.is_active = False
    session.add(dora)
    await session.commit()
    await add_membership(session, dora, CompanyScope(company.id), MembershipRole.MEMBER)
    headers = headers_for(company_admin)
    url = f"/v1/companies/{company.id}/members"

    resp = await client.get(url, params={"search": "carl"}, headers=headers)
    assert [m["user"]["name"] for m in resp.json()["data"]] == ["Carla", "Carlos"]

    resp = await client.get(url, params={"is_active": "false"}, headers=headers)
    assert [m["user"]["name"] for m in resp.json()["data"]] == ["Dora Two"]

    resp = await client.get(url, params={"page": 2, "limit": 2}, headers=headers)
    page = resp.json()
    assert page["total"] == 5
    assert page["page"] == 2
    assert [m["user"]["name"] for m in page["data"]] == ["Carlos", "Dora"]


@pytest.mark.asyncio
async def test_member_list_excludes_removed_rows_and_other_tenants(
    client: AsyncClient, session, company, company_admin
):
    gone = await make_user(session, "gone@acme.com")
    row = await add_membership(session, gone, CompanyScope(company.id), MembershipRole.MEMBER)
    row.soft_delete()
    session.add(row)
    await session.commit()

    other_admin = await make_user(session, "boss@other.com")
    await make_company(session, other_admin, tax_id="55666777000188", legal_name="Other")

    resp = await client.get(f"/v1/companies/{company.id}/members", headers=headers_for(company_admin))
    assert [m["user"]["email"] for m in resp.json()["data"]] == ["boss@acme.com"]


@pytest.mark.asyncio
async def test_user_detail_lists_company_rows(
    client: AsyncClient, session, superuser, company, company_admin
):
    resp = await client.get(
        f"/v1/superadmin/users/{company_admin.id}", headers=headers_for(superuser)
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["email"] == "boss@acme.com"
    assert len(data["memberships"]) == 1
    assert data["memberships"][0]["role"] == "admin"
    assert data["memberships"][0]["company"]["legal_name"] == "Acme Ltda"
