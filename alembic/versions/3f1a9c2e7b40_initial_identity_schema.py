"""initial identity schema: tenants, accounts and invitations

Revision ID: 3f1a9c2e7b40
Revises: 
Create Date: 2026-10-18 09:12:41.118204

"""
from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b40'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ROLE = sa.Enum(
    "TENANT_OPERATOR", "ADMINISTRATOR", "LIBRARIAN", "TEACHER", "LEARNER", name="role"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _single_use_secret() -> list[sa.Column]:
    return [
        *_timestamps(),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("secret_hash", sqlmodel.AutoString(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("consumed_by", sa.Uuid(), nullable=True),
        sa.Column("consumed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sqlmodel.AutoString(length=255), nullable=False),
        sa.Column("subdomain", sqlmodel.AutoString(length=63), nullable=False),
        sa.Column("schema_name", sqlmodel.AutoString(length=63), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("plan", sqlmodel.AutoString(length=50), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenants_subdomain", "tenants", ["subdomain"], unique=True)

    op.create_table(
        "auth_identities",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sqlmodel.AutoString(length=320), nullable=False),
        sa.Column("password_hash", sqlmodel.AutoString(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_auth_identities_email", "auth_identities", ["email"], unique=True)

    op.create_table(
        "account_profiles",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("name", sqlmodel.AutoString(length=255), nullable=False),
        sa.Column("email", sqlmodel.AutoString(length=320), nullable=False),
        sa.Column("enrollment_id", sqlmodel.AutoString(length=64), nullable=True),
        sa.Column(
            "auth_identity_id", sa.Uuid(), sa.ForeignKey("auth_identities.id"), nullable=True
        ),
        sa.Column("role", ROLE, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("auth_identity_id"),
        sa.UniqueConstraint(
            "tenant_id", "enrollment_id", name="uq_account_profiles_tenant_enrollment"
        ),
    )
    op.create_index("ix_account_profiles_tenant_id", "account_profiles", ["tenant_id"])
    op.create_index("ix_account_profiles_email", "account_profiles", ["email"], unique=True)
    op.create_index("ix_account_profiles_enrollment_id", "account_profiles", ["enrollment_id"])

    op.create_table(
        "invitation_tokens",
        *_single_use_secret(),
        sa.Column("target_role", ROLE, nullable=False),
        sa.Column("issued_by", sa.Uuid(), sa.ForeignKey("account_profiles.id"), nullable=False),
    )
    op.create_table(
        "tenant_bootstrap_invites",
        *_single_use_secret(),
        sa.Column("invite_email", sqlmodel.AutoString(length=320), nullable=True),
    )
    for table in ("invitation_tokens", "tenant_bootstrap_invites"):
        op.create_index(f"ix_{table}_tenant_id", table, ["tenant_id"])
        op.create_index(f"ix_{table}_secret_hash", table, ["secret_hash"], unique=True)
        op.create_index(f"ix_{table}_consumed_by", table, ["consumed_by"])
    op.create_index("ix_invitation_tokens_issued_by", "invitation_tokens", ["issued_by"])


def downgrade() -> None:
    op.drop_table("tenant_bootstrap_invites")
    op.drop_table("invitation_tokens")
    op.drop_table("account_profiles")
    op.drop_table("auth_identities")
    op.drop_table("tenants")
    ROLE.drop(op.get_bind(), checkfirst=True)
