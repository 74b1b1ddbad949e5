"""Tenant provisioning, listing and host resolution endpoints."""

import uuid

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field

from app.api.deps import Auth, OperatorAuth, Session
from app.core.config import get_settings
from app.core.errors import TenantNotFoundError
from app.models.tenant import TenantRead, TenantUpdate
from app.services.provisioning import ProvisionResult, provision_tenant, reissue_bootstrap_invite
from app.services.routing import HostMode, resolve_host
from app.services.tenants import get_tenant, list_tenants, resolve_tenant, set_tenant_active

router = APIRouter(prefix="/tenants", tags=["tenants"])


# ── Provisioning request / response schemas ───────────────────

class ProvisionTenantRequest(BaseModel):
    """Everything needed to create a school and invite its administrator."""
    name: str = Field(min_length=1, max_length=255)
    subdomain: str = Field(min_length=1, max_length=63)
    plan: str = Field(default="trial", max_length=50)
    base_domain: str | None = Field(default=None, max_length=255)
    invite_email: EmailStr | None = None
    invite_expires_hours: int | None = Field(default=None, ge=1, le=24 * 30)


class ReissueInviteRequest(BaseModel):
    base_domain: str | None = Field(default=None, max_length=255)
    invite_email: EmailStr | None = None
    invite_expires_hours: int | None = Field(default=None, ge=1, le=24 * 30)


class ProvisionTenantResponse(BaseModel):
    tenant_id: uuid.UUID
    tenant_name: str
    onboarding_url: str
    invite_token: str = Field(description="Shown once — hand it to the administrator")
    tenant: TenantRead


def _provision_response(result: ProvisionResult) -> ProvisionTenantResponse:
    return ProvisionTenantResponse(
        tenant_id=result.tenant.id,
        tenant_name=result.tenant.name,
        onboarding_url=result.onboarding_url,
        invite_token=result.invite_token,
        tenant=TenantRead.model_validate(result.tenant),
    )


# ── Routes ────────────────────────────────────────────────────

@router.post(
    "",
    response_model=ProvisionTenantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Provision a new tenant",
)
async def create_tenant(
    body: ProvisionTenantRequest,
    auth: OperatorAuth,
    session: Session,
) -> ProvisionTenantResponse:
    """Create a tenant and its one-time administrator onboarding link.

    The raw invite token is returned once — the caller must hand it over.
    """
    result = await provision_tenant(
        session,
        auth.account_id,
        name=body.name,
        subdomain=body.subdomain,
        plan=body.plan,
        base_domain=body.base_domain,
        invite_email=body.invite_email,
        invite_ttl_hours=body.invite_expires_hours,
    )
    return _provision_response(result)


@router.get("", response_model=list[TenantRead], summary="List all tenants")
async def get_tenants(auth: OperatorAuth, session: Session) -> list[TenantRead]:
    return [TenantRead.model_validate(t) for t in await list_tenants(session)]


@router.get(
    "/resolve",
    response_model=TenantRead,
    summary="Resolve a hostname to its tenant",
)
async def resolve_tenant_host(
    session: Session,
    host: str = Query(min_length=1, max_length=255),
    tenant: str | None = Query(default=None, description="Local development override"),
) -> TenantRead:
    resolution = resolve_host(
        host, get_settings().base_domain, {"tenant": tenant} if tenant else None
    )
    if resolution.mode is not HostMode.TENANT or resolution.subdomain is None:
        raise TenantNotFoundError()
    return await resolve_tenant(session, resolution.subdomain)


@router.get("/me", response_model=TenantRead, summary="Get current tenant info")
async def get_current_tenant(auth: Auth, session: Session) -> TenantRead:
    """Returns the tenant associated with the authenticated account."""
    if auth.tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Operator accounts do not belong to a tenant",
        )
    return TenantRead.model_validate(await get_tenant(session, auth.tenant_id))


@router.patch("/{tenant_id}", response_model=TenantRead, summary="Enable or disable a tenant")
async def update_tenant(
    tenant_id: uuid.UUID,
    body: TenantUpdate,
    auth: OperatorAuth,
    session: Session,
) -> TenantRead:
    tenant = await set_tenant_active(session, auth.account_id, tenant_id, body.active)
    return TenantRead.model_validate(tenant)


@router.post(
    "/{tenant_id}/bootstrap-invite",
    response_model=ProvisionTenantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Re-issue the administrator onboarding link",
)
async def reissue_invite(
    tenant_id: uuid.UUID,
    body: ReissueInviteRequest,
    auth: OperatorAuth,
    session: Session,
) -> ProvisionTenantResponse:
    result = await reissue_bootstrap_invite(
        session,
        auth.account_id,
        tenant_id,
        base_domain=body.base_domain,
        invite_email=body.invite_email,
        invite_ttl_hours=body.invite_expires_hours,
    )
    return _provision_response(result)
