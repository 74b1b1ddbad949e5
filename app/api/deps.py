"""FastAPI dependencies for authentication and capability checks."""

import uuid
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.errors import ForbiddenError
from app.core.permissions import Capability, Role, is_allowed
from app.core.security import decode_jwt

bearer_scheme = HTTPBearer()


class AuthContext:
    """Resolved identity carried through a request."""

    __slots__ = ("tenant_id", "account_id", "role")

    def __init__(
        self,
        account_id: uuid.UUID,
        role: Role,
        tenant_id: uuid.UUID | None = None,
    ) -> None:
        self.account_id = account_id
        self.role = role
        self.tenant_id = tenant_id

    def can(self, capability: Capability) -> bool:
        return is_allowed(self.role, capability)


def _resolve_jwt(token: str) -> AuthContext:
    """Decode a JWT and extract account, tenant and role."""
    try:
        payload = decode_jwt(token)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired JWT",
        ) from exc

    try:
        tenant_claim = payload.get("tid")
        return AuthContext(
            account_id=uuid.UUID(payload["sub"]),
            role=Role(payload["role"]),
            tenant_id=uuid.UUID(tenant_claim) if tenant_claim else None,
        )
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed JWT payload",
        ) from exc


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> AuthContext:
    return _resolve_jwt(credentials.credentials)


def require_capability(capability: Capability) -> Callable[..., Awaitable[AuthContext]]:
    """Dependency factory gating a route on one matrix capability.

    Service functions check the matrix again on their own; this only keeps
    unauthorized callers away from the endpoint.
    """

    async def _dependency(
        auth: Annotated[AuthContext, Depends(get_auth_context)],
    ) -> AuthContext:
        if not auth.can(capability):
            raise ForbiddenError()
        return auth

    return _dependency


# Typed shorthand for use in route signatures
Auth = Annotated[AuthContext, Depends(get_auth_context)]
Session = Annotated[AsyncSession, Depends(get_session)]
OperatorAuth = Annotated[AuthContext, Depends(require_capability(Capability.MANAGE_TENANTS))]
InvitationsAuth = Annotated[AuthContext, Depends(require_capability(Capability.MANAGE_INVITATIONS))]
AccountsAuth = Annotated[AuthContext, Depends(require_capability(Capability.MANAGE_ACCOUNTS))]
