"""Identity resolver — sign in with an email or an enrollment id.

An identifier containing ``@`` is an email and is authenticated directly.
Anything else is an enrollment id: the real email on file for the matching
profile is tried first, then the synthetic placeholder email learners are
registered under. Only "invalid credentials" moves the chain forward; any
other failure from the credential store is returned as-is.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import AuthError, ForbiddenError, IdentityBackendError, NotActivatedError
from app.core.permissions import Role
from app.core.security import create_jwt, verify_password
from app.models.account import AccountProfile, AuthIdentity
from app.models.tenant import Tenant
from app.services.accounts import (
    find_account_by_identity,
    find_accounts_by_enrollment_id,
    normalize_email,
    normalize_enrollment_id,
    placeholder_email,
)

logger = logging.getLogger(__name__)

Authenticator = Callable[[AsyncSession, str, str], Awaitable[AuthIdentity]]


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    account: AccountProfile
    tenant: Tenant | None


async def authenticate_password(session: AsyncSession, email: str, password: str) -> AuthIdentity:
    """Check ``email``/``password`` against the credential store.

    Raises ``AuthError`` on a mismatch and ``IdentityBackendError`` when the
    store itself cannot be queried.
    """
    try:
        result = await session.execute(select(AuthIdentity).where(AuthIdentity.email == email))
        identity = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Credential lookup failed")
        raise IdentityBackendError() from exc

    if identity is None or not verify_password(password, identity.password_hash):
        raise AuthError()
    return identity


async def enrollment_candidates(
    session: AsyncSession, enrollment_id: str, tenant_id: uuid.UUID | None = None
) -> list[str]:
    """Ordered, de-duplicated emails to try for ``enrollment_id``."""
    candidates = []
    profiles = await find_accounts_by_enrollment_id(session, enrollment_id, tenant_id)
    # Several schools may share an enrollment id; without a tenant the
    # lookup is inconclusive and only the placeholder is tried.
    if len(profiles) == 1:
        profile = profiles[0]
        if profile.auth_identity_id is None:
            raise NotActivatedError()
        candidates.append(normalize_email(profile.email))
    candidates.append(placeholder_email(enrollment_id))
    return list(dict.fromkeys(candidates))


async def _authenticate_enrollment_id(
    session: AsyncSession,
    enrollment_id: str,
    password: str,
    tenant_id: uuid.UUID | None,
    authenticate: Authenticator,
) -> AuthIdentity:
    last_error = AuthError()
    for email in await enrollment_candidates(session, enrollment_id, tenant_id):
        try:
            return await authenticate(session, email, password)
        except AuthError as exc:
            last_error = exc
    raise last_error


async def _open_session(
    session: AsyncSession, identity: AuthIdentity, tenant_id: uuid.UUID | None
) -> LoginResult:
    account = await find_account_by_identity(session, identity.id)
    if account is None:
        raise AuthError()

    tenant = None
    if account.tenant_id is not None:
        # Signing in on another school's host looks like a bad password
        if tenant_id is not None and account.tenant_id != tenant_id:
            raise AuthError()
        tenant = await session.get(Tenant, account.tenant_id)
        if tenant is None or not tenant.active:
            raise ForbiddenError("Tenant is disabled")

    token = create_jwt(
        subject=str(account.id),
        tenant_id=str(account.tenant_id) if account.tenant_id else None,
        role=Role(account.role).value,
    )
    return LoginResult(access_token=token, account=account, tenant=tenant)


async def login(
    session: AsyncSession,
    identifier: str,
    password: str,
    tenant_id: uuid.UUID | None = None,
    authenticate: Authenticator = authenticate_password,
) -> LoginResult:
    identifier = (identifier or "").strip()
    if not identifier or not password:
        raise AuthError()

    try:
        if "@" in identifier:
            identity = await authenticate(session, normalize_email(identifier), password)
        else:
            identity = await _authenticate_enrollment_id(
                session, normalize_enrollment_id(identifier), password, tenant_id, authenticate
            )
    except AuthError:
        logger.info("Failed login attempt")
        raise

    result = await _open_session(session, identity, tenant_id)
    logger.info("Account %s signed in", result.account.id)
    return result
