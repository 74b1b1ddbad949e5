"""Shared test fixtures — async SQLite in-memory DB + test client."""

import os
from collections.abc import AsyncGenerator

# Settings are cached on first import; configure before importing the app.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("BASE_DOMAIN", "bibliotecai.com")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Import all models so metadata is populated
import app.models  # noqa: E402, F401
from app.core.cache import tenant_cache  # noqa: E402
from app.core.database import get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.models.account import AccountProfile  # noqa: E402
from app.services.accounts import ensure_operator  # noqa: E402

OPERATOR_EMAIL = "ops@bibliotecai.com"
OPERATOR_PASSWORD = "operator-pass"


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
async def client(session) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session override."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session
    tenant_cache.clear()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    tenant_cache.clear()


@pytest.fixture
async def operator(session) -> AccountProfile:
    """The platform operator, seeded the way startup does it."""
    return await ensure_operator(session, OPERATOR_EMAIL, OPERATOR_PASSWORD, "Ops")


@pytest.fixture
async def operator_headers(client: AsyncClient, operator: AccountProfile) -> dict[str, str]:
    resp = await client.post("/v1/auth/login", json={
        "identifier": OPERATOR_EMAIL,
        "password": OPERATOR_PASSWORD,
    })
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
async def school(client: AsyncClient, operator_headers) -> dict:
    """A provisioned tenant whose administrator has already onboarded."""
    resp = await client.post("/v1/tenants", json={
        "name": "Escola X",
        "subdomain": "escola-x",
        "invite_email": "g@x.com",
    }, headers=operator_headers)
    assert resp.status_code == 201
    tenant = resp.json()

    resp = await client.post("/v1/onboarding/redeem", json={
        "secret": tenant["invite_token"],
        "name": "Gestora",
        "email": "g@x.com",
        "password": "gestora123",
        "confirm_password": "gestora123",
    })
    assert resp.status_code == 200
    admin_id = resp.json()["account_id"]

    resp = await client.post("/v1/auth/login", json={
        "identifier": "g@x.com",
        "password": "gestora123",
        "tenant": "escola-x",
    })
    assert resp.status_code == 200
    return {
        "tenant_id": tenant["tenant_id"],
        "subdomain": "escola-x",
        "admin_id": admin_id,
        "admin_headers": {"Authorization": f"Bearer {resp.json()['access_token']}"},
    }
