"""Tests for tenant provisioning, host routing and tenant toggling."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import DuplicateSubdomainError, ForbiddenError, ValidationError
from app.models.invitation import TenantBootstrapInvite
from app.models.tenant import Tenant
from app.services.provisioning import provision_tenant
from app.services.routing import HostMode, resolve_host
from app.services.tenants import validate_subdomain


async def _provision(client: AsyncClient, headers: dict, subdomain: str, **extra) -> dict:
    resp = await client.post("/v1/tenants", json={
        "name": f"Escola {subdomain}",
        "subdomain": subdomain,
        **extra,
    }, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Host routing ─────────────────────────────────────────────

@pytest.mark.parametrize("host, mode, subdomain", [
    ("escola-x.bibliotecai.com", HostMode.TENANT, "escola-x"),
    ("Escola-X.bibliotecai.com:443", HostMode.TENANT, "escola-x"),
    ("admin.bibliotecai.com", HostMode.ADMIN, None),
    ("bibliotecai.com", HostMode.ROOT, None),
    ("a.b.bibliotecai.com", HostMode.ROOT, None),
    ("example.org", HostMode.ROOT, None),
])
def test_resolve_host(host, mode, subdomain):
    resolution = resolve_host(host, "bibliotecai.com")
    assert resolution.mode is mode
    assert resolution.subdomain == subdomain


def test_resolve_localhost_overrides():
    assert resolve_host("localhost:5173", "bibliotecai.com", {"tenant": "demo"}).subdomain == "demo"
    assert resolve_host("localhost", "bibliotecai.com", {"admin": "1"}).mode is HostMode.ADMIN
    assert resolve_host("127.0.0.1", "bibliotecai.com").mode is HostMode.ROOT


@pytest.mark.parametrize("subdomain", ["", "Bad_Name", "-lead", "trail-", "www", "a" * 64])
def test_invalid_subdomains_rejected(subdomain):
    with pytest.raises(ValidationError):
        validate_subdomain(subdomain)


def test_subdomain_normalized():
    assert validate_subdomain("  Escola-Norte ") == "escola-norte"


# ── Provisioning ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_provision_tenant_returns_onboarding_link(client: AsyncClient, operator_headers):
    """Operator provisioning creates the tenant and one unused bootstrap invite."""
    data = await _provision(client, operator_headers, "escola-x")

    assert data["tenant_name"] == "Escola escola-x"
    assert data["tenant"]["subdomain"] == "escola-x"
    assert data["tenant"]["active"] is True
    assert data["tenant"]["schema_name"].startswith("tenant_")
    assert data["invite_token"]
    assert data["onboarding_url"] == (
        f"https://escola-x.bibliotecai.com/onboarding/{data['invite_token']}"
    )


@pytest.mark.asyncio
async def test_provision_duplicate_subdomain(client: AsyncClient, operator_headers):
    await _provision(client, operator_headers, "dup-school")
    resp = await client.post("/v1/tenants", json={
        "name": "Another", "subdomain": "DUP-school",
    }, headers=operator_headers)
    assert resp.status_code == 409
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "duplicate_subdomain"


@pytest.mark.asyncio
async def test_provision_is_atomic(session, operator):
    """A failed provisioning leaves neither tenant nor invite behind."""
    await provision_tenant(session, operator.id, "First", "atomic")
    with pytest.raises(DuplicateSubdomainError):
        await provision_tenant(session, operator.id, "Second", "atomic")

    tenants = (await session.execute(select(Tenant))).scalars().all()
    invites = (await session.execute(select(TenantBootstrapInvite))).scalars().all()
    assert len(tenants) == 1
    assert len(invites) == 1


@pytest.mark.asyncio
async def test_provision_requires_operator(client: AsyncClient, operator_headers):
    data = await _provision(client, operator_headers, "school-admins")
    resp = await client.post("/v1/onboarding/redeem", json={
        "secret": data["invite_token"],
        "name": "Admin",
        "email": "admin@school.test",
        "password": "adminpass",
        "confirm_password": "adminpass",
    })
    assert resp.status_code == 200

    login = await client.post("/v1/auth/login", json={
        "identifier": "admin@school.test", "password": "adminpass",
    })
    admin_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}
    resp = await client.post("/v1/tenants", json={
        "name": "Rogue", "subdomain": "rogue",
    }, headers=admin_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_provision_service_rejects_non_operator(session, operator):
    result = await provision_tenant(session, operator.id, "Svc", "svc-school")
    with pytest.raises(ForbiddenError):
        await provision_tenant(session, result.tenant.id, "Nope", "nope")


@pytest.mark.asyncio
async def test_provision_without_auth(client: AsyncClient):
    resp = await client.post("/v1/tenants", json={"name": "X", "subdomain": "x"})
    assert resp.status_code in (401, 403)


@pytest.mark.asyncio
async def test_reissue_bootstrap_invite(client: AsyncClient, operator_headers):
    """Re-issuing deactivates the old link and hands out a new one."""
    data = await _provision(client, operator_headers, "reissue")
    old_secret = data["invite_token"]

    resp = await client.post(
        f"/v1/tenants/{data['tenant_id']}/bootstrap-invite",
        json={},
        headers=operator_headers,
    )
    assert resp.status_code == 201
    new_secret = resp.json()["invite_token"]
    assert new_secret != old_secret

    resp = await client.post("/v1/onboarding/lookup", json={"secret": old_secret})
    assert resp.status_code == 410
    assert resp.json()["error"] == "token_inactive"

    resp = await client.post("/v1/onboarding/lookup", json={"secret": new_secret})
    assert resp.status_code == 200
    assert resp.json()["target_role"] == "administrator"
    assert resp.json()["tenant_subdomain"] == "reissue"


@pytest.mark.asyncio
async def test_reissue_refused_once_administrator_exists(client: AsyncClient, operator_headers):
    data = await _provision(client, operator_headers, "onboarded")
    resp = await client.post("/v1/onboarding/redeem", json={
        "secret": data["invite_token"],
        "name": "Admin",
        "email": "admin@onboarded.test",
        "password": "adminpass",
        "confirm_password": "adminpass",
    })
    assert resp.status_code == 200

    resp = await client.post(
        f"/v1/tenants/{data['tenant_id']}/bootstrap-invite",
        json={},
        headers=operator_headers,
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "administrator_exists"


# ── Listing, resolution and toggling ─────────────────────────

@pytest.mark.asyncio
async def test_list_and_resolve_tenants(client: AsyncClient, operator_headers):
    await _provision(client, operator_headers, "listed")

    resp = await client.get("/v1/tenants", headers=operator_headers)
    assert resp.status_code == 200
    assert [t["subdomain"] for t in resp.json()] == ["listed"]

    resp = await client.get("/v1/tenants/resolve", params={"host": "listed.bibliotecai.com"})
    assert resp.status_code == 200
    assert resp.json()["subdomain"] == "listed"

    resp = await client.get("/v1/tenants/resolve", params={"host": "missing.bibliotecai.com"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "tenant_not_found"

    resp = await client.get("/v1/tenants/resolve", params={"host": "admin.bibliotecai.com"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_disable_tenant_refreshes_resolution(client: AsyncClient, operator_headers):
    data = await _provision(client, operator_headers, "toggle")

    resp = await client.get("/v1/tenants/resolve", params={"host": "toggle.bibliotecai.com"})
    assert resp.json()["active"] is True

    resp = await client.patch(
        f"/v1/tenants/{data['tenant_id']}", json={"active": False}, headers=operator_headers
    )
    assert resp.status_code == 200
    assert resp.json()["active"] is False

    resp = await client.get("/v1/tenants/resolve", params={"host": "toggle.bibliotecai.com"})
    assert resp.json()["active"] is False


@pytest.mark.asyncio
async def test_invite_lifetime_defaults_to_setting(client: AsyncClient, session, operator_headers, monkeypatch):
    monkeypatch.setattr(get_settings(), "tenant_invite_ttl_hours", 5)
    await _provision(client, operator_headers, "short-ttl")

    invite = (await session.execute(select(TenantBootstrapInvite))).scalar_one()
    assert invite.expires_at - invite.created_at == timedelta(hours=5)


@pytest.mark.asyncio
async def test_invite_lifetime_from_request(client: AsyncClient, session, operator_headers):
    await _provision(client, operator_headers, "long-ttl", invite_expires_hours=48)

    invite = (await session.execute(select(TenantBootstrapInvite))).scalar_one()
    assert invite.expires_at - invite.created_at == timedelta(hours=48)
