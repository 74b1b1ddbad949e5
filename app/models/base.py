"""Shared base fields for all models."""

import uuid
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class TimestampMixin(SQLModel):
    """Created / updated timestamps injected into every table."""

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class SingleUseSecretMixin(TimestampMixin):
    """Fields shared by every single-use invitation record.

    ``consumed_by`` is written once, by a conditional UPDATE, and never
    cleared. It carries no foreign key: the claim happens before the
    account row it points at is inserted, inside the same transaction.
    """

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)

    # SHA-256 hash of the raw secret; the raw value is shown only once
    secret_hash: str = Field(nullable=False, unique=True, index=True)

    expires_at: datetime = Field(nullable=False)
    active: bool = Field(default=True)
    consumed_by: uuid.UUID | None = Field(default=None, index=True)
    consumed_at: datetime | None = Field(default=None)

    def is_usable(self, now: datetime) -> bool:
        return self.active and self.consumed_by is None and now < self.expires_at
