"""Tests for account listing, pre-registration and renaming."""

import pytest
from httpx import AsyncClient


async def _librarian_headers(client: AsyncClient, admin_headers: dict) -> dict:
    resp = await client.post("/v1/invitations", json={"target_role": "librarian"}, headers=admin_headers)
    await client.post("/v1/invitations/redeem", json={
        "secret": resp.json()["secret"],
        "name": "Bia",
        "email": "bia@x.com",
        "password": "biapass1",
        "confirm_password": "biapass1",
    })
    resp = await client.post("/v1/auth/login", json={"identifier": "bia@x.com", "password": "biapass1"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.mark.asyncio
async def test_list_accounts(client: AsyncClient, school):
    """Administrator sees the school's members, never the operator."""
    resp = await client.get("/v1/accounts", headers=school["admin_headers"])
    assert resp.status_code == 200
    accounts = resp.json()
    assert [a["email"] for a in accounts] == ["g@x.com"]
    assert accounts[0]["tenant_id"] == school["tenant_id"]


@pytest.mark.asyncio
async def test_preregister_requires_enrollment_for_learners(client: AsyncClient, school):
    resp = await client.post("/v1/accounts", json={
        "name": "Lia", "email": "lia@x.com", "role": "learner",
    }, headers=school["admin_headers"])
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_preregister_duplicates(client: AsyncClient, school):
    payload = {"name": "Lia", "email": "lia@x.com", "role": "learner", "enrollment_id": "555666"}
    resp = await client.post("/v1/accounts", json=payload, headers=school["admin_headers"])
    assert resp.status_code == 201
    assert resp.json()["activated"] is False

    resp = await client.post("/v1/accounts", json=payload, headers=school["admin_headers"])
    assert resp.status_code == 409

    resp = await client.post("/v1/accounts", json={
        **payload, "email": "lia2@x.com", "enrollment_id": "555 666",
    }, headers=school["admin_headers"])
    assert resp.status_code == 409
    assert resp.json()["error"] == "duplicate_account"


@pytest.mark.asyncio
async def test_cannot_preregister_administrator(client: AsyncClient, school):
    resp = await client.post("/v1/accounts", json={
        "name": "Boss", "email": "boss@x.com", "role": "administrator",
    }, headers=school["admin_headers"])
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_rename_account(client: AsyncClient, school):
    resp = await client.patch(
        f"/v1/accounts/{school['admin_id']}", json={"name": "Gestora Geral"},
        headers=school["admin_headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Gestora Geral"


@pytest.mark.asyncio
async def test_librarian_cannot_rename_administrator(client: AsyncClient, school):
    headers = await _librarian_headers(client, school["admin_headers"])

    resp = await client.patch(
        f"/v1/accounts/{school['admin_id']}", json={"name": "Hijacked"}, headers=headers,
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_librarian_can_preregister_teacher(client: AsyncClient, school):
    headers = await _librarian_headers(client, school["admin_headers"])

    resp = await client.post("/v1/accounts", json={
        "name": "Prof", "email": "prof@x.com", "role": "teacher",
    }, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["tenant_id"] == school["tenant_id"]


@pytest.mark.asyncio
async def test_learner_cannot_manage_accounts(client: AsyncClient, school):
    resp = await client.post("/v1/invitations", json={"target_role": "learner"}, headers=school["admin_headers"])
    await client.post("/v1/invitations/redeem", json={
        "secret": resp.json()["secret"], "name": "Aluno", "enrollment_id": "123456",
    })
    resp = await client.post("/v1/auth/login", json={"identifier": "123456", "password": "123456"})
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    resp = await client.get("/v1/accounts", headers=headers)
    assert resp.status_code == 403
