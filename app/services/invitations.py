"""Token issuer — create, list, revoke and delete role-scoped invitations."""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import ForbiddenError, InvitationInUseError, NotFoundError
from app.core.permissions import Capability, Role, can_invite, is_allowed
from app.core.security import generate_secret, hash_secret
from app.models.account import AccountProfile
from app.models.base import utcnow
from app.models.invitation import InvitationRead, InvitationToken
from app.services.tenants import get_tenant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedInvitation:
    token: InvitationToken
    # Raw bearer secret; returned once, stored only as a hash
    secret: str


def invite_url(tenant_subdomain: str, secret: str, base_domain: str | None = None) -> str:
    base = base_domain or get_settings().base_domain
    return f"https://{tenant_subdomain}.{base}/convite/{secret}"


async def _load_issuer(session: AsyncSession, issuer_account_id: uuid.UUID) -> AccountProfile:
    issuer = await session.get(AccountProfile, issuer_account_id)
    if issuer is None or not is_allowed(issuer.role, Capability.MANAGE_INVITATIONS):
        raise ForbiddenError("Only administrators can manage invitations")
    return issuer


async def issue_invitation(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    target_role: Role,
    issuer_account_id: uuid.UUID,
    ttl: timedelta | None = None,
) -> IssuedInvitation:
    issuer = await _load_issuer(session, issuer_account_id)
    if issuer.tenant_id != tenant_id:
        raise ForbiddenError("Invitations can only be issued for your own school")
    if not can_invite(issuer.role, target_role):
        raise ForbiddenError(f"A {issuer.role} cannot invite a {target_role}")

    tenant = await get_tenant(session, tenant_id)
    if not tenant.active:
        raise ForbiddenError("Tenant is disabled")

    ttl = ttl or timedelta(days=get_settings().invite_ttl_days)
    secret = generate_secret()
    now = utcnow()
    token = InvitationToken(
        tenant_id=tenant_id,
        target_role=Role(target_role),
        issued_by=issuer.id,
        secret_hash=hash_secret(secret),
        created_at=now,
        updated_at=now,
        expires_at=now + ttl,
    )
    session.add(token)
    await session.commit()
    await session.refresh(token)

    logger.info(
        "Invitation %s issued for role %s in tenant %s by %s",
        token.id, token.target_role, tenant_id, issuer.id,
    )
    return IssuedInvitation(token=token, secret=secret)


async def _get_tenant_token(
    session: AsyncSession, token_id: uuid.UUID, tenant_id: uuid.UUID | None
) -> InvitationToken:
    stmt = select(InvitationToken).where(
        InvitationToken.id == token_id,
        InvitationToken.tenant_id == tenant_id,
    )
    result = await session.execute(stmt)
    token = result.scalar_one_or_none()
    if token is None:
        raise NotFoundError("Invitation not found")
    return token


async def revoke_invitation(
    session: AsyncSession, token_id: uuid.UUID, issuer_account_id: uuid.UUID
) -> InvitationToken:
    """Soft-delete: sets active=False. Repeating it is a no-op."""
    issuer = await _load_issuer(session, issuer_account_id)
    token = await _get_tenant_token(session, token_id, issuer.tenant_id)

    if token.active:
        token.active = False
        token.updated_at = utcnow()
        session.add(token)
        await session.commit()
        await session.refresh(token)
        logger.info("Invitation %s revoked by %s", token.id, issuer.id)
    return token


async def delete_invitation(
    session: AsyncSession, token_id: uuid.UUID, issuer_account_id: uuid.UUID
) -> None:
    """Remove an unused invitation. Redeemed ones stay as the account's record."""
    issuer = await _load_issuer(session, issuer_account_id)
    token = await _get_tenant_token(session, token_id, issuer.tenant_id)
    if token.consumed_by is not None:
        raise InvitationInUseError()

    await session.delete(token)
    await session.commit()
    logger.info("Invitation %s deleted by %s", token_id, issuer.id)


async def list_invitations(
    session: AsyncSession, issuer_account_id: uuid.UUID
) -> list[InvitationRead]:
    issuer = await _load_issuer(session, issuer_account_id)
    stmt = (
        select(InvitationToken, AccountProfile)
        .join(AccountProfile, AccountProfile.id == InvitationToken.issued_by)
        .where(InvitationToken.tenant_id == issuer.tenant_id)
        .order_by(InvitationToken.created_at.desc())  # type: ignore[union-attr]
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    now = utcnow()
    return [
        InvitationRead(
            id=token.id,
            tenant_id=token.tenant_id,
            target_role=token.target_role,
            issued_by_name=issued_by.name,
            issued_by_role=issued_by.role,
            status=token.status(now),
            created_at=token.created_at,
            expires_at=token.expires_at,
            consumed_at=token.consumed_at,
        )
        for token, issued_by in result.all()
    ]
