"""Account models — authentication identities and per-tenant profiles."""

import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.permissions import Role
from app.models.base import TimestampMixin, new_uuid


class AuthIdentity(TimestampMixin, SQLModel, table=True):
    """Credential record checked at sign-in."""

    __tablename__ = "auth_identities"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    email: str = Field(max_length=320, unique=True, nullable=False, index=True)
    password_hash: str = Field(nullable=False)


class AccountProfile(TimestampMixin, SQLModel, table=True):
    """A person inside a tenant, bound to at most one auth identity.

    ``auth_identity_id`` stays NULL for profiles staff pre-registered whose
    holder never activated access. ``(auth_identity_id, role)`` is the
    identity's single role binding; ``role`` never changes after creation.
    """

    __tablename__ = "account_profiles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "enrollment_id", name="uq_account_profiles_tenant_enrollment"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    # NULL only for tenant operators, who sit above every tenant
    tenant_id: uuid.UUID | None = Field(default=None, foreign_key="tenants.id", index=True)
    name: str = Field(max_length=255, nullable=False)
    email: str = Field(max_length=320, unique=True, nullable=False, index=True)
    enrollment_id: str | None = Field(default=None, max_length=64, index=True)
    auth_identity_id: uuid.UUID | None = Field(
        default=None, foreign_key="auth_identities.id", unique=True
    )
    role: Role = Field(nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class AccountRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID | None
    name: str
    email: str
    enrollment_id: str | None
    role: Role
    activated: bool


class AccountPreregister(SQLModel):
    """Staff-side profile creation; the holder activates it through an invitation."""
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320)
    role: Role
    enrollment_id: str | None = Field(default=None, max_length=64)


class AccountUpdate(SQLModel):
    name: str = Field(min_length=1, max_length=255)


def to_account_read(profile: AccountProfile) -> AccountRead:
    return AccountRead(
        id=profile.id,
        tenant_id=profile.tenant_id,
        name=profile.name,
        email=profile.email,
        enrollment_id=profile.enrollment_id,
        role=profile.role,
        activated=profile.auth_identity_id is not None,
    )
