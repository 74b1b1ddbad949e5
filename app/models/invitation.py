"""Invitation models — role-scoped tokens and tenant bootstrap invites."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from app.core.permissions import Role
from app.models.base import SingleUseSecretMixin


class InvitationStatus(StrEnum):
    USED = "used"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    ACTIVE = "active"


class InvitationToken(SingleUseSecretMixin, SQLModel, table=True):
    """Grants one account with ``target_role`` inside ``tenant_id``."""

    __tablename__ = "invitation_tokens"

    target_role: Role = Field(nullable=False)
    issued_by: uuid.UUID = Field(foreign_key="account_profiles.id", nullable=False, index=True)

    def status(self, now: datetime) -> InvitationStatus:
        if self.consumed_by is not None:
            return InvitationStatus.USED
        if not self.active:
            return InvitationStatus.INACTIVE
        if now >= self.expires_at:
            return InvitationStatus.EXPIRED
        return InvitationStatus.ACTIVE


class TenantBootstrapInvite(SingleUseSecretMixin, SQLModel, table=True):
    """System-issued invite for a tenant's first administrator.

    Created only by tenant provisioning (or its repair operation), so it
    has no issuing account.
    """

    __tablename__ = "tenant_bootstrap_invites"

    invite_email: str | None = Field(default=None, max_length=320)


# ── Pydantic schemas ─────────────────────────────────────────

class InvitationCreate(SQLModel):
    target_role: Role
    ttl_days: int | None = Field(default=None, ge=1, le=90)


class InvitationRead(SQLModel):
    """Returned on list — never includes the raw secret."""
    id: uuid.UUID
    tenant_id: uuid.UUID
    target_role: Role
    issued_by_name: str
    issued_by_role: Role
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime
    consumed_at: datetime | None


class InvitationCreated(SQLModel):
    """Returned exactly once at issuance — includes the raw secret."""
    id: uuid.UUID
    target_role: Role
    expires_at: datetime
    secret: str
    invite_url: str
