"""Tenant model — one school, the top-level isolation boundary."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


def schema_name_for(tenant_id: uuid.UUID) -> str:
    """Dedicated schema name, derived from the id and never from user input."""
    return f"tenant_{tenant_id.hex}"


class Tenant(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    subdomain: str = Field(max_length=63, unique=True, nullable=False, index=True)
    schema_name: str = Field(max_length=63, nullable=False)
    active: bool = Field(default=True)

    # Billing plan label, e.g. "trial"
    plan: str = Field(default="trial", max_length=50)


# ── Pydantic schemas (read / update) ─────────────────────────

class TenantRead(SQLModel):
    id: uuid.UUID
    name: str
    subdomain: str
    schema_name: str
    plan: str
    active: bool
    created_at: datetime


class TenantUpdate(SQLModel):
    active: bool
