"""Account store — profiles, auth identities and their role binding."""

import logging
import re
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import DuplicateAccountError, ForbiddenError, NotFoundError, ValidationError
from app.core.permissions import Capability, Role, can_manage_account, is_allowed
from app.core.security import hash_password
from app.models.account import AccountProfile, AuthIdentity
from app.models.base import utcnow

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


# ── Identifier normalization ─────────────────────────────────

def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_enrollment_id(enrollment_id: str | None) -> str:
    """Remove every whitespace character: "2024 0012 3" becomes "202400123"."""
    return _WHITESPACE.sub("", enrollment_id or "")


def placeholder_email(enrollment_id: str) -> str:
    """Synthetic login email for accounts that sign in with an enrollment id."""
    domain = get_settings().enrollment_email_domain
    return f"{normalize_enrollment_id(enrollment_id).lower()}@{domain}"


# ── Lookups ──────────────────────────────────────────────────

async def get_account(session: AsyncSession, account_id: uuid.UUID) -> AccountProfile:
    profile = await session.get(AccountProfile, account_id)
    if profile is None:
        raise NotFoundError("Account not found")
    return profile


async def find_account_by_identity(
    session: AsyncSession, auth_identity_id: uuid.UUID
) -> AccountProfile | None:
    result = await session.execute(
        select(AccountProfile).where(AccountProfile.auth_identity_id == auth_identity_id)
    )
    return result.scalar_one_or_none()


async def find_accounts_by_enrollment_id(
    session: AsyncSession,
    enrollment_id: str,
    tenant_id: uuid.UUID | None = None,
) -> list[AccountProfile]:
    stmt = select(AccountProfile).where(
        AccountProfile.enrollment_id == normalize_enrollment_id(enrollment_id)
    )
    if tenant_id is not None:
        stmt = stmt.where(AccountProfile.tenant_id == tenant_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def identity_exists(session: AsyncSession, email: str) -> bool:
    result = await session.execute(
        select(AuthIdentity.id).where(AuthIdentity.email == normalize_email(email))
    )
    return result.first() is not None


async def email_in_use(session: AsyncSession, email: str) -> bool:
    email = normalize_email(email)
    if await identity_exists(session, email):
        return True
    profile = await session.execute(
        select(AccountProfile.id).where(AccountProfile.email == email)
    )
    return profile.first() is not None


async def list_accounts(session: AsyncSession, tenant_id: uuid.UUID) -> list[AccountProfile]:
    stmt = (
        select(AccountProfile)
        .where(AccountProfile.tenant_id == tenant_id)
        .order_by(AccountProfile.name.asc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


# ── Writes ───────────────────────────────────────────────────

async def create_identity(session: AsyncSession, email: str, password: str) -> AuthIdentity:
    """Insert a credential record and flush it. The caller owns the commit."""
    identity = AuthIdentity(email=normalize_email(email), password_hash=hash_password(password))
    session.add(identity)
    await session.flush()
    return identity


async def create_account(
    session: AsyncSession,
    *,
    tenant_id: uuid.UUID | None,
    name: str,
    email: str,
    role: Role,
    enrollment_id: str | None = None,
    auth_identity_id: uuid.UUID | None = None,
    account_id: uuid.UUID | None = None,
) -> AccountProfile:
    """Insert a profile and flush it. The caller owns the commit.

    Unique-constraint violations surface as ``IntegrityError``; callers
    roll back and report ``DuplicateAccountError``.
    """
    profile = AccountProfile(
        tenant_id=tenant_id,
        name=name.strip(),
        email=normalize_email(email),
        role=role,
        enrollment_id=normalize_enrollment_id(enrollment_id) or None,
        auth_identity_id=auth_identity_id,
    )
    if account_id is not None:
        profile.id = account_id
    session.add(profile)
    await session.flush()
    return profile


async def _require_manager(session: AsyncSession, actor_id: uuid.UUID) -> AccountProfile:
    actor = await session.get(AccountProfile, actor_id)
    if actor is None or not is_allowed(actor.role, Capability.MANAGE_ACCOUNTS):
        raise ForbiddenError("Only staff can manage accounts")
    return actor


async def preregister_account(
    session: AsyncSession,
    actor_id: uuid.UUID,
    *,
    name: str,
    email: str,
    role: Role,
    enrollment_id: str | None = None,
) -> AccountProfile:
    """Create a profile with no auth identity; its holder activates it later."""
    actor = await _require_manager(session, actor_id)
    if not can_manage_account(actor.role, role) or role == Role.ADMINISTRATOR:
        raise ForbiddenError(f"Cannot pre-register a {role} account")
    if not name.strip():
        raise ValidationError("Name is required")
    if "@" not in normalize_email(email):
        raise ValidationError("A valid email is required")
    enrollment = normalize_enrollment_id(enrollment_id)
    if role == Role.LEARNER and not enrollment:
        raise ValidationError("Enrollment id is required for learners")

    if await email_in_use(session, email):
        raise DuplicateAccountError()
    if enrollment and await find_accounts_by_enrollment_id(session, enrollment, actor.tenant_id):
        raise DuplicateAccountError("This enrollment id is already registered in the school")

    try:
        profile = await create_account(
            session,
            tenant_id=actor.tenant_id,
            name=name,
            email=email,
            role=role,
            enrollment_id=enrollment or None,
        )
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateAccountError() from exc
    await session.refresh(profile)
    logger.info("Account %s pre-registered as %s by %s", profile.id, role, actor.id)
    return profile


async def rename_account(
    session: AsyncSession, actor_id: uuid.UUID, account_id: uuid.UUID, name: str
) -> AccountProfile:
    actor = await _require_manager(session, actor_id)
    profile = await get_account(session, account_id)
    if profile.tenant_id != actor.tenant_id:
        raise NotFoundError("Account not found")
    if profile.id != actor.id and not can_manage_account(actor.role, profile.role):
        raise ForbiddenError(f"A {actor.role} cannot edit a {profile.role} account")

    profile.name = name.strip()
    profile.updated_at = utcnow()
    session.add(profile)
    await session.commit()
    await session.refresh(profile)
    return profile


async def ensure_operator(
    session: AsyncSession, email: str, password: str, name: str = "Operator"
) -> AccountProfile:
    """Create the platform operator account unless one already uses ``email``."""
    email = normalize_email(email)
    result = await session.execute(
        select(AccountProfile).where(
            AccountProfile.email == email,
            AccountProfile.role == Role.TENANT_OPERATOR,
        )
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        return existing
    if len(password) < get_settings().min_password_length:
        raise ValidationError("Operator password is too short")

    identity = await create_identity(session, email, password)
    profile = await create_account(
        session,
        tenant_id=None,
        name=name,
        email=email,
        role=Role.TENANT_OPERATOR,
        auth_identity_id=identity.id,
    )
    await session.commit()
    logger.info("Seeded tenant operator %s", profile.id)
    return profile
