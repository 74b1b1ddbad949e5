"""Invitation management and redemption — issue, list, revoke, redeem."""

import uuid
from datetime import datetime, timedelta

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from app.api.deps import InvitationsAuth, Session
from app.core.errors import ForbiddenError
from app.core.permissions import Role
from app.models.base import utcnow
from app.models.invitation import InvitationCreate, InvitationCreated, InvitationRead, InvitationStatus
from app.services.invitations import (
    delete_invitation,
    invite_url,
    issue_invitation,
    list_invitations,
    revoke_invitation,
)
from app.services.redemption import (
    RedemptionDetails,
    RedemptionResult,
    TokenContext,
    redeem_invitation,
    validate_invitation,
)
from app.services.tenants import get_tenant

router = APIRouter(prefix="/invitations", tags=["invitations"])


# ── Public request / response schemas ────────────────────────
# Secrets are accepted in request bodies only, never in the URL.

class SecretLookup(BaseModel):
    secret: str = Field(min_length=1, max_length=256)


class RedeemRequest(BaseModel):
    secret: str = Field(min_length=1, max_length=256)
    name: str = Field(default="", max_length=255)
    email: str | None = Field(default=None, max_length=320)
    password: str | None = Field(default=None, max_length=256)
    confirm_password: str | None = Field(default=None, max_length=256)
    enrollment_id: str | None = Field(default=None, max_length=64)

    def details(self) -> RedemptionDetails:
        return RedemptionDetails(
            name=self.name,
            email=self.email,
            password=self.password,
            confirm_password=self.confirm_password,
            enrollment_id=self.enrollment_id,
        )


class TokenContextResponse(BaseModel):
    tenant_id: uuid.UUID
    tenant_name: str
    tenant_subdomain: str
    target_role: Role
    expires_at: datetime
    invite_email: str | None = None


class RedeemResponse(BaseModel):
    success: bool = True
    account_id: uuid.UUID
    tenant_id: uuid.UUID
    role: Role
    # Credentials the client signs in with immediately after sign-up
    auth_email: str
    auth_password: str


class InvitationStatusResponse(BaseModel):
    id: uuid.UUID
    status: InvitationStatus


def context_response(context: TokenContext) -> TokenContextResponse:
    return TokenContextResponse(
        tenant_id=context.tenant_id,
        tenant_name=context.tenant_name,
        tenant_subdomain=context.tenant_subdomain,
        target_role=context.target_role,
        expires_at=context.expires_at,
        invite_email=context.invite_email,
    )


def redeem_response(result: RedemptionResult) -> RedeemResponse:
    return RedeemResponse(
        account_id=result.account_id,
        tenant_id=result.tenant_id,
        role=result.role,
        auth_email=result.auth_email,
        auth_password=result.auth_password,
    )


# ── Administrator routes ─────────────────────────────────────

@router.post(
    "",
    response_model=InvitationCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a role-scoped invitation",
)
async def create_invitation(
    body: InvitationCreate,
    auth: InvitationsAuth,
    session: Session,
) -> InvitationCreated:
    """Issue a single-use invitation for the caller's school.

    The raw secret is returned once — share the invite URL with the person.
    """
    if auth.tenant_id is None:
        raise ForbiddenError("Invitations belong to a school")

    ttl = timedelta(days=body.ttl_days) if body.ttl_days else None
    issued = await issue_invitation(
        session, auth.tenant_id, body.target_role, auth.account_id, ttl=ttl
    )
    tenant = await get_tenant(session, auth.tenant_id)
    return InvitationCreated(
        id=issued.token.id,
        target_role=issued.token.target_role,
        expires_at=issued.token.expires_at,
        secret=issued.secret,
        invite_url=invite_url(tenant.subdomain, issued.secret),
    )


@router.get(
    "",
    response_model=list[InvitationRead],
    summary="List invitations for the current school",
)
async def get_invitations(auth: InvitationsAuth, session: Session) -> list[InvitationRead]:
    return await list_invitations(session, auth.account_id)


@router.post(
    "/{invitation_id}/revoke",
    response_model=InvitationStatusResponse,
    summary="Deactivate an invitation",
)
async def revoke(
    invitation_id: uuid.UUID,
    auth: InvitationsAuth,
    session: Session,
) -> InvitationStatusResponse:
    token = await revoke_invitation(session, invitation_id, auth.account_id)
    return InvitationStatusResponse(id=token.id, status=token.status(utcnow()))


@router.delete(
    "/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an unused invitation",
)
async def delete(
    invitation_id: uuid.UUID,
    auth: InvitationsAuth,
    session: Session,
) -> None:
    await delete_invitation(session, invitation_id, auth.account_id)


# ── Public routes ────────────────────────────────────────────

@router.post("/lookup", response_model=TokenContextResponse, summary="Describe an invitation")
async def lookup(body: SecretLookup, session: Session) -> TokenContextResponse:
    """Return school and role for a usable secret; nothing is written."""
    return context_response(await validate_invitation(session, body.secret))


@router.post("/redeem", response_model=RedeemResponse, summary="Create an account from an invitation")
async def redeem(body: RedeemRequest, session: Session) -> RedeemResponse:
    return redeem_response(await redeem_invitation(session, body.secret, body.details()))
