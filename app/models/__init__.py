"""Import all models so SQLModel.metadata picks them up."""

from app.models.account import (
    AccountPreregister,
    AccountProfile,
    AccountRead,
    AccountUpdate,
    AuthIdentity,
)
from app.models.invitation import (
    InvitationCreate,
    InvitationCreated,
    InvitationRead,
    InvitationStatus,
    InvitationToken,
    TenantBootstrapInvite,
)
from app.models.tenant import Tenant, TenantRead, TenantUpdate

__all__ = [
    "AccountPreregister",
    "AccountProfile",
    "AccountRead",
    "AccountUpdate",
    "AuthIdentity",
    "InvitationCreate",
    "InvitationCreated",
    "InvitationRead",
    "InvitationStatus",
    "InvitationToken",
    "Tenant",
    "TenantBootstrapInvite",
    "TenantRead",
    "TenantUpdate",
]
