"""Token redeemer — validate and consume invitation secrets exactly once.

Both invitation kinds (role-scoped ``InvitationToken`` and the tenant's
``TenantBootstrapInvite``) go through the same claim: one conditional
UPDATE that only matches a usable row. The claim, the auth identity and
the account profile are written in a single transaction, so either all
three land or none do, and of any number of concurrent redemptions of the
same secret at most one can match the row.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import (
    AdministratorExistsError,
    DuplicateAccountError,
    ForbiddenError,
    InvalidTokenError,
    TokenErrorReason,
    ValidationError,
)
from app.core.permissions import Role, is_self_enrolling
from app.core.security import hash_secret
from app.models.account import AccountProfile
from app.models.base import SingleUseSecretMixin, new_uuid, utcnow
from app.models.invitation import InvitationToken, TenantBootstrapInvite
from app.services.accounts import (
    create_account,
    create_identity,
    email_in_use,
    find_accounts_by_enrollment_id,
    identity_exists,
    normalize_email,
    normalize_enrollment_id,
    placeholder_email,
)
from app.models.tenant import Tenant
from app.services.provisioning import tenant_has_administrator
from app.services.tenants import get_tenant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenContext:
    tenant_id: uuid.UUID
    tenant_name: str
    tenant_subdomain: str
    target_role: Role
    expires_at: datetime
    # Address the operator sent the onboarding link to, if any
    invite_email: str | None = None


@dataclass(frozen=True)
class RedemptionDetails:
    name: str
    email: str | None = None
    password: str | None = None
    confirm_password: str | None = None
    enrollment_id: str | None = None


@dataclass(frozen=True)
class RedemptionResult:
    account_id: uuid.UUID
    tenant_id: uuid.UUID
    role: Role
    # What the client signs in with right away
    auth_email: str
    auth_password: str


@dataclass(frozen=True)
class _Credentials:
    name: str
    auth_email: str
    auth_password: str
    enrollment_id: str | None = None


# ── Token state ──────────────────────────────────────────────

def rejection_reason(record: SingleUseSecretMixin, now: datetime) -> TokenErrorReason | None:
    """Why ``record`` cannot be redeemed at ``now``; expiry wins over everything."""
    if now >= record.expires_at:
        return TokenErrorReason.EXPIRED
    if record.consumed_by is not None:
        return TokenErrorReason.ALREADY_USED
    if not record.active:
        return TokenErrorReason.INACTIVE
    return None


async def _find_by_secret(session: AsyncSession, model: type, secret: str):
    if not secret:
        raise InvalidTokenError(TokenErrorReason.NOT_FOUND)
    stmt = (
        select(model)
        .where(model.secret_hash == hash_secret(secret))
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    record = result.scalar_one_or_none()
    if record is None:
        raise InvalidTokenError(TokenErrorReason.NOT_FOUND)
    return record


def _ensure_usable(record: SingleUseSecretMixin, now: datetime) -> None:
    reason = rejection_reason(record, now)
    if reason is not None:
        raise InvalidTokenError(reason)


async def _claim(
    session: AsyncSession,
    model: type,
    record_id: uuid.UUID,
    account_id: uuid.UUID,
    now: datetime,
) -> bool:
    """Mark the record consumed iff it is still usable. Zero rows means lost."""
    stmt = (
        update(model)
        .where(
            model.id == record_id,
            model.consumed_by.is_(None),
            model.active.is_(True),
            model.expires_at > now,
        )
        .values(consumed_by=account_id, consumed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


# ── Input validation (runs before any write) ─────────────────

def _require_name(details: RedemptionDetails) -> str:
    name = (details.name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    return name


def _enrollment_credentials(details: RedemptionDetails) -> _Credentials:
    """Enrollment id doubles as username and initial password."""
    name = _require_name(details)
    enrollment = normalize_enrollment_id(details.enrollment_id)
    if not enrollment:
        raise ValidationError("Enrollment id is required")
    if len(enrollment) < get_settings().min_password_length:
        raise ValidationError(
            f"Enrollment id must have at least {get_settings().min_password_length} characters"
        )
    return _Credentials(
        name=name,
        auth_email=placeholder_email(enrollment),
        auth_password=enrollment,
        enrollment_id=enrollment,
    )


def _password_credentials(details: RedemptionDetails) -> _Credentials:
    name = _require_name(details)
    email = normalize_email(details.email)
    if "@" not in email:
        raise ValidationError("A valid email is required")
    password = details.password or ""
    min_length = get_settings().min_password_length
    if len(password) < min_length:
        raise ValidationError(f"Password must have at least {min_length} characters")
    if password != details.confirm_password:
        raise ValidationError("Passwords do not match")
    return _Credentials(name=name, auth_email=email, auth_password=password)


async def _find_precreated(
    session: AsyncSession, tenant_id: uuid.UUID, role: Role, credentials: _Credentials
) -> AccountProfile | None:
    """Staff-registered profile the redeemer is activating, if any.

    Learners are matched on enrollment id. Everyone else is matched on the
    email staff put on file, and only while the profile has no identity.
    """
    if credentials.enrollment_id:
        matches = await find_accounts_by_enrollment_id(session, credentials.enrollment_id, tenant_id)
        return matches[0] if matches else None
    result = await session.execute(
        select(AccountProfile).where(
            AccountProfile.tenant_id == tenant_id,
            AccountProfile.role == role,
            AccountProfile.email == credentials.auth_email,
            AccountProfile.auth_identity_id.is_(None),  # type: ignore[union-attr]
        )
    )
    return result.scalars().first()


async def _ensure_not_duplicate(
    session: AsyncSession,
    role: Role,
    credentials: _Credentials,
    precreated: AccountProfile | None,
) -> None:
    if precreated is not None:
        await session.refresh(precreated)
        if precreated.auth_identity_id is not None or precreated.role != role:
            raise DuplicateAccountError("This profile is already linked to another account")
        if await identity_exists(session, credentials.auth_email):
            raise DuplicateAccountError()
    elif await email_in_use(session, credentials.auth_email):
        raise DuplicateAccountError()


# ── Shared redemption ────────────────────────────────────────

async def _redeem(
    session: AsyncSession,
    record: SingleUseSecretMixin,
    role: Role,
    credentials: _Credentials,
    now: datetime,
) -> RedemptionResult:
    model = type(record)
    await _active_tenant(session, record.tenant_id)
    precreated = await _find_precreated(session, record.tenant_id, role, credentials)
    bind = precreated is not None and precreated.auth_identity_id is None
    account_id = precreated.id if bind else new_uuid()

    # Duplicate checks run after the claim so that concurrent losers always
    # report the token state, and a duplicate rolls the claim back.
    try:
        if not await _claim(session, model, record.id, account_id, now):
            await session.rollback()
            await session.refresh(record)
            reason = rejection_reason(record, now) or TokenErrorReason.ALREADY_USED
            logger.info("Redemption of %s %s lost: %s", model.__tablename__, record.id, reason)
            raise InvalidTokenError(reason)

        # A tenant has one administrator; a second bootstrap invite may still
        # be live if a repair raced the first onboarding.
        if role == Role.ADMINISTRATOR and await tenant_has_administrator(session, record.tenant_id):
            raise AdministratorExistsError()
        await _ensure_not_duplicate(session, role, credentials, precreated)
        identity = await create_identity(session, credentials.auth_email, credentials.auth_password)
        if bind:
            precreated.auth_identity_id = identity.id
            precreated.name = credentials.name
            precreated.updated_at = now
            session.add(precreated)
            await session.flush()
        else:
            await create_account(
                session,
                tenant_id=record.tenant_id,
                name=credentials.name,
                email=credentials.auth_email,
                role=role,
                enrollment_id=credentials.enrollment_id,
                auth_identity_id=identity.id,
                account_id=account_id,
            )
        await session.commit()
    except (DuplicateAccountError, AdministratorExistsError):
        await session.rollback()
        raise
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateAccountError() from exc

    await session.refresh(record)
    logger.info(
        "%s %s redeemed: account %s created with role %s",
        model.__tablename__, record.id, account_id, role,
    )
    return RedemptionResult(
        account_id=account_id,
        tenant_id=record.tenant_id,
        role=role,
        auth_email=credentials.auth_email,
        auth_password=credentials.auth_password,
    )


async def _active_tenant(session: AsyncSession, tenant_id: uuid.UUID) -> Tenant:
    tenant = await get_tenant(session, tenant_id)
    if not tenant.active:
        raise ForbiddenError("Tenant is disabled")
    return tenant


async def _context(
    session: AsyncSession,
    record: SingleUseSecretMixin,
    role: Role,
    invite_email: str | None = None,
) -> TokenContext:
    tenant = await _active_tenant(session, record.tenant_id)
    return TokenContext(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        tenant_subdomain=tenant.subdomain,
        target_role=role,
        expires_at=record.expires_at,
        invite_email=invite_email,
    )


# ── Role-scoped invitations ──────────────────────────────────

async def validate_invitation(
    session: AsyncSession, secret: str, now: datetime | None = None
) -> TokenContext:
    """Read-only probe used to render the sign-up form for ``secret``."""
    token = await _find_by_secret(session, InvitationToken, secret)
    _ensure_usable(token, now or utcnow())
    return await _context(session, token, Role(token.target_role))


async def redeem_invitation(
    session: AsyncSession,
    secret: str,
    details: RedemptionDetails,
    now: datetime | None = None,
) -> RedemptionResult:
    now = now or utcnow()
    token = await _find_by_secret(session, InvitationToken, secret)
    _ensure_usable(token, now)

    role = Role(token.target_role)
    if is_self_enrolling(role):
        credentials = _enrollment_credentials(details)
    else:
        credentials = _password_credentials(details)
    return await _redeem(session, token, role, credentials, now)


# ── Tenant bootstrap invites ─────────────────────────────────

async def validate_bootstrap_invite(
    session: AsyncSession, secret: str, now: datetime | None = None
) -> TokenContext:
    invite = await _find_by_secret(session, TenantBootstrapInvite, secret)
    _ensure_usable(invite, now or utcnow())
    return await _context(session, invite, Role.ADMINISTRATOR, invite.invite_email)


async def redeem_bootstrap_invite(
    session: AsyncSession,
    secret: str,
    details: RedemptionDetails,
    now: datetime | None = None,
) -> RedemptionResult:
    """Create the tenant's first administrator.

    Unlike ``redeem_invitation`` there is no issuing account behind the
    secret: it was created by the system when the tenant was provisioned.
    """
    now = now or utcnow()
    invite = await _find_by_secret(session, TenantBootstrapInvite, secret)
    _ensure_usable(invite, now)
    credentials = _password_credentials(details)
    return await _redeem(session, invite, Role.ADMINISTRATOR, credentials, now)
