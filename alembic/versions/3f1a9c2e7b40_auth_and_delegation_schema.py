"""auth sessions, guest sessions, delegation grants and audit log

Revision ID: 3f1a9c2e7b40
Revises: 
Create Date: 2026-10-17 09:12:44.208113

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b40'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_PRINCIPAL_KIND = sa.Enum("GOD", "CLIENT", "GUEST", name="principalkind")
_ACTOR_KIND = sa.Enum("GOD", "CLIENT", "GUEST", "SYSTEM", name="actorkind")
_ACCESS_TYPE = sa.Enum("GUEST", "ADMIN", name="accesstype")
_SUBSCRIPTION_STATUS = sa.Enum("ACTIVE", "TRIAL", "EXPIRED", name="subscriptionstatus")


def upgrade() -> None:
    op.create_table(
        "superusers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("username", sa.String(150), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_superusers_username", "superusers", ["username"], unique=True)

    op.create_table(
        "tenant_owners",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("subscription_status", _SUBSCRIPTION_STATUS, nullable=False),
        sa.Column("subscription_end_date", sa.DateTime(), nullable=True),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenant_owners_email", "tenant_owners", ["email"], unique=True)

    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("tenant_owners.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("wedding_date", sa.Date(), nullable=True),
        sa.Column("guest_code", sa.String(32), nullable=False),
        sa.Column("admin_code", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenants_owner_id", "tenants", ["owner_id"], unique=True)
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)
    op.create_index("ix_tenants_guest_code", "tenants", ["guest_code"], unique=True)
    op.create_index("ix_tenants_admin_code", "tenants", ["admin_code"], unique=True)

    op.create_table(
        "sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("principal_id", sa.Uuid(), nullable=False),
        sa.Column("principal_kind", _PRINCIPAL_KIND, nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("refresh_token_hash", sa.String(), nullable=True),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("refresh_expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_reason", sa.String(64), nullable=True),
    )
    op.create_index("ix_sessions_principal_id", "sessions", ["principal_id"])
    op.create_index("ix_sessions_principal_kind", "sessions", ["principal_kind"])
    op.create_index("ix_sessions_token_hash", "sessions", ["token_hash"], unique=True)
    op.create_index(
        "ix_sessions_refresh_token_hash", "sessions", ["refresh_token_hash"], unique=True,
    )
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"])

    op.create_table(
        "guest_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("guest_identifier", sa.String(64), nullable=False),
        sa.Column("guest_name", sa.String(255), nullable=True),
        sa.Column("access_type", _ACCESS_TYPE, nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_guest_sessions_tenant_id", "guest_sessions", ["tenant_id"])
    op.create_index("ix_guest_sessions_token_hash", "guest_sessions", ["token_hash"], unique=True)

    op.create_table(
        "delegation_grants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("issuer_id", sa.Uuid(), sa.ForeignKey("superusers.id"), nullable=False),
        sa.Column("target_tenant_id", sa.Uuid(), nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_uses", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("used_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_delegation_grants_issuer_id", "delegation_grants", ["issuer_id"])
    op.create_index(
        "ix_delegation_grants_target_tenant_id", "delegation_grants", ["target_tenant_id"],
    )
    op.create_index(
        "ix_delegation_grants_token_hash", "delegation_grants", ["token_hash"], unique=True,
    )
    op.create_index("ix_delegation_grants_expires_at", "delegation_grants", ["expires_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("actor_kind", _ACTOR_KIND, nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("details", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("delegation_grants")
    op.drop_table("guest_sessions")
    op.drop_table("sessions")
    op.drop_table("tenants")
    op.drop_table("tenant_owners")
    op.drop_table("superusers")
    for enum in (_SUBSCRIPTION_STATUS, _ACCESS_TYPE, _ACTOR_KIND, _PRINCIPAL_KIND):
        enum.drop(op.get_bind(), checkfirst=True)
