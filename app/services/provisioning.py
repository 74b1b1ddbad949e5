"""Tenant provisioner — create a school together with its bootstrap invite."""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import AdministratorExistsError, ForbiddenError, ValidationError
from app.core.permissions import Capability, Role, is_allowed
from app.core.security import generate_secret, hash_secret
from app.models.account import AccountProfile
from app.models.base import utcnow
from app.models.invitation import TenantBootstrapInvite
from app.models.tenant import Tenant
from app.services.accounts import normalize_email
from app.services.tenants import create_tenant, get_tenant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionResult:
    tenant: Tenant
    onboarding_url: str
    # Raw bootstrap secret; returned once, stored only as a hash
    invite_token: str


def onboarding_url(subdomain: str, secret: str, base_domain: str | None = None) -> str:
    base = (base_domain or get_settings().base_domain).strip().lower()
    return f"https://{subdomain}.{base}/onboarding/{secret}"


def _invite_ttl_hours(requested: int | None) -> int:
    ttl_hours = requested or get_settings().tenant_invite_ttl_hours
    if ttl_hours < 1:
        raise ValidationError("Invitation lifetime must be at least one hour")
    return ttl_hours


async def _require_operator(session: AsyncSession, operator_account_id: uuid.UUID) -> AccountProfile:
    operator = await session.get(AccountProfile, operator_account_id)
    if operator is None or not is_allowed(operator.role, Capability.MANAGE_TENANTS):
        raise ForbiddenError("Only tenant operators can provision tenants")
    return operator


def _add_bootstrap_invite(
    session: AsyncSession,
    tenant: Tenant,
    invite_email: str | None,
    ttl_hours: int,
) -> str:
    secret = generate_secret()
    now = utcnow()
    session.add(
        TenantBootstrapInvite(
            tenant_id=tenant.id,
            secret_hash=hash_secret(secret),
            invite_email=normalize_email(invite_email) or None,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )
    )
    return secret


async def provision_tenant(
    session: AsyncSession,
    operator_account_id: uuid.UUID,
    name: str,
    subdomain: str,
    plan: str = "trial",
    base_domain: str | None = None,
    invite_email: str | None = None,
    invite_ttl_hours: int | None = None,
) -> ProvisionResult:
    """Create the tenant and its administrator invite in one transaction.

    Either both rows are committed or neither is, so a tenant never ends
    up provisioned without a way to onboard its administrator.
    """
    await _require_operator(session, operator_account_id)
    ttl_hours = _invite_ttl_hours(invite_ttl_hours)

    try:
        tenant = await create_tenant(session, name, subdomain, plan)
        secret = _add_bootstrap_invite(session, tenant, invite_email, ttl_hours)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(tenant)

    logger.info("Provisioned tenant %s (%s)", tenant.id, tenant.subdomain)
    return ProvisionResult(
        tenant=tenant,
        onboarding_url=onboarding_url(tenant.subdomain, secret, base_domain),
        invite_token=secret,
    )


async def tenant_has_administrator(session: AsyncSession, tenant_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(AccountProfile.id).where(
            AccountProfile.tenant_id == tenant_id,
            AccountProfile.role == Role.ADMINISTRATOR,
        )
    )
    return result.first() is not None


async def reissue_bootstrap_invite(
    session: AsyncSession,
    operator_account_id: uuid.UUID,
    tenant_id: uuid.UUID,
    base_domain: str | None = None,
    invite_email: str | None = None,
    invite_ttl_hours: int | None = None,
) -> ProvisionResult:
    """Repair a tenant whose administrator never onboarded.

    Outstanding unused bootstrap invites are deactivated and replaced by a
    fresh one. Refused once the tenant has an administrator, so calling it
    again after onboarding changes nothing.
    """
    await _require_operator(session, operator_account_id)
    tenant = await get_tenant(session, tenant_id)
    if await tenant_has_administrator(session, tenant.id):
        raise AdministratorExistsError()

    now = utcnow()
    ttl_hours = _invite_ttl_hours(invite_ttl_hours)
    try:
        await session.execute(
            update(TenantBootstrapInvite)
            .where(
                TenantBootstrapInvite.tenant_id == tenant.id,
                TenantBootstrapInvite.consumed_by.is_(None),  # type: ignore[union-attr]
                TenantBootstrapInvite.active.is_(True),  # type: ignore[union-attr]
            )
            .values(active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        secret = _add_bootstrap_invite(session, tenant, invite_email, ttl_hours)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Re-issued bootstrap invite for tenant %s", tenant.id)
    return ProvisionResult(
        tenant=tenant,
        onboarding_url=onboarding_url(tenant.subdomain, secret, base_domain),
        invite_token=secret,
    )
