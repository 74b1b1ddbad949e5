"""Tenant store — create, look up and toggle schools."""

import logging
import re
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.cache import tenant_cache
from app.core.errors import (
    DuplicateSubdomainError,
    ForbiddenError,
    TenantNotFoundError,
    ValidationError,
)
from app.core.permissions import Capability, is_allowed
from app.models.account import AccountProfile
from app.models.base import utcnow
from app.models.tenant import Tenant, TenantRead, schema_name_for

logger = logging.getLogger(__name__)

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
RESERVED_SUBDOMAINS = frozenset({"www", "app", "api", "assets", "cdn", "admin"})


def normalize_subdomain(subdomain: str) -> str:
    return (subdomain or "").strip().lower()


def validate_subdomain(subdomain: str) -> str:
    normalized = normalize_subdomain(subdomain)
    if not normalized:
        raise ValidationError("Subdomain is required")
    if len(normalized) > 63 or not SUBDOMAIN_PATTERN.match(normalized):
        raise ValidationError(
            "Subdomain may only contain lowercase letters, digits and single hyphens"
        )
    if normalized in RESERVED_SUBDOMAINS:
        raise ValidationError(f"Subdomain '{normalized}' is reserved")
    return normalized


async def create_tenant(
    session: AsyncSession, name: str, subdomain: str, plan: str = "trial"
) -> Tenant:
    """Insert a tenant and flush it. The caller owns the commit."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Tenant name is required")
    normalized = validate_subdomain(subdomain)

    existing = await session.execute(select(Tenant).where(Tenant.subdomain == normalized))
    if existing.scalar_one_or_none():
        raise DuplicateSubdomainError(normalized)

    tenant = Tenant(name=name, subdomain=normalized, plan=(plan or "trial").strip())
    tenant.schema_name = schema_name_for(tenant.id)
    session.add(tenant)
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateSubdomainError(normalized) from exc
    return tenant


async def get_tenant(session: AsyncSession, tenant_id: uuid.UUID) -> Tenant:
    tenant = await session.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantNotFoundError()
    return tenant


async def get_tenant_by_subdomain(session: AsyncSession, subdomain: str) -> Tenant:
    result = await session.execute(
        select(Tenant).where(Tenant.subdomain == normalize_subdomain(subdomain))
    )
    tenant = result.scalar_one_or_none()
    if tenant is None:
        raise TenantNotFoundError()
    return tenant


async def resolve_tenant(session: AsyncSession, subdomain: str) -> TenantRead:
    """Cached subdomain lookup used by request routing."""
    key = ("tenant", normalize_subdomain(subdomain))
    cached = tenant_cache.get(key)
    if cached is not None:
        return cached
    tenant = TenantRead.model_validate(await get_tenant_by_subdomain(session, subdomain))
    tenant_cache.put(key, tenant)
    return tenant


async def list_tenants(session: AsyncSession) -> list[Tenant]:
    stmt = select(Tenant).order_by(Tenant.created_at.desc())  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def set_tenant_active(
    session: AsyncSession,
    actor_id: uuid.UUID,
    tenant_id: uuid.UUID,
    active: bool,
) -> Tenant:
    actor = await session.get(AccountProfile, actor_id)
    if actor is None or not is_allowed(actor.role, Capability.MANAGE_TENANTS):
        raise ForbiddenError("Only tenant operators can manage tenants")

    tenant = await get_tenant(session, tenant_id)
    if tenant.active != active:
        tenant.active = active
        tenant.updated_at = utcnow()
        session.add(tenant)
        await session.commit()
        await session.refresh(tenant)
        logger.info("Tenant %s set active=%s by %s", tenant.id, active, actor.id)
    tenant_cache.invalidate(("tenant", tenant.subdomain))
    return tenant
