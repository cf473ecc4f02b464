"""Create tenant registry

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the central `tenants` table.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

tenant_status = sa.Enum("active", "suspended", "trial", "expired", name="tenant_status")
tenant_plan = sa.Enum("basic", "professional", "enterprise", name="tenant_plan")


def upgrade() -> None:
    """Create tenants table."""
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("subdomain", sa.String(255), nullable=True),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("database_name", sa.String(255), nullable=False),
        sa.Column("database_host", sa.String(255), nullable=False, server_default="localhost"),
        sa.Column("database_port", sa.Integer(), nullable=False, server_default="5432"),
        sa.Column("status", tenant_status, nullable=False, server_default="trial"),
        sa.Column("plan", tenant_plan, nullable=False, server_default="basic"),
        sa.Column("max_users", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("max_organizations", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_storage_mb", sa.Integer(), nullable=False, server_default="1024"),
        sa.Column("subscription_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("billing_email", sa.String(255), nullable=True),
        sa.Column("custom_settings", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("domain", name="uq_tenants_domain"),
        sa.UniqueConstraint("subdomain", name="uq_tenants_subdomain"),
        sa.UniqueConstraint("database_name", name="uq_tenants_database_name"),
    )
    op.create_index("idx_tenants_status", "tenants", ["status"])
    op.create_index("idx_tenants_plan", "tenants", ["plan"])
    op.create_index("idx_tenants_subscription", "tenants", ["subscription_start", "subscription_end"])


def downgrade() -> None:
    """Drop tenants table."""
    op.drop_index("idx_tenants_subscription", table_name="tenants")
    op.drop_index("idx_tenants_plan", table_name="tenants")
    op.drop_index("idx_tenants_status", table_name="tenants")
    op.drop_table("tenants")
    tenant_plan.drop(op.get_bind(), checkfirst=True)
    tenant_status.drop(op.get_bind(), checkfirst=True)
