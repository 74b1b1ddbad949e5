"""Authentication endpoints — login + current account."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import Auth, Session
from app.core.permissions import Capability, capabilities_for
from app.models.account import AccountRead, to_account_read
from app.models.tenant import Tenant, TenantRead
from app.services.accounts import get_account
from app.services.identity import login as login_identity
from app.services.tenants import get_tenant_by_subdomain

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────────

class LoginRequest(BaseModel):
    """``identifier`` is either an email or an enrollment id."""
    identifier: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=256)
    # Subdomain of the host the form was served from, if any
    tenant: str | None = Field(default=None, max_length=63)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountRead
    tenant: TenantRead | None


class MeResponse(BaseModel):
    account: AccountRead
    tenant: TenantRead | None
    capabilities: list[Capability]


# ── Routes ───────────────────────────────────────────────────

@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, session: Session) -> LoginResponse:
    """Authenticate with email or enrollment id + password, receive a JWT."""
    tenant_id = None
    if body.tenant:
        tenant_id = (await get_tenant_by_subdomain(session, body.tenant)).id

    result = await login_identity(session, body.identifier, body.password, tenant_id=tenant_id)
    return LoginResponse(
        access_token=result.access_token,
        account=to_account_read(result.account),
        tenant=TenantRead.model_validate(result.tenant) if result.tenant else None,
    )


@router.get("/me", response_model=MeResponse)
async def get_me(auth: Auth, session: Session) -> MeResponse:
    """Return the current account, its tenant and what its role may do."""
    account = await get_account(session, auth.account_id)

    tenant = None
    if account.tenant_id is not None:
        tenant = await session.get(Tenant, account.tenant_id)
        if tenant is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")

    return MeResponse(
        account=to_account_read(account),
        tenant=TenantRead.model_validate(tenant) if tenant else None,
        capabilities=sorted(capabilities_for(account.role)),
    )
