"""SQLAlchemy ORM models.

Two metadata trees: `CentralBase` for the shared registry database and
`TenantBase` for the schema created inside every tenant database.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from saas_platform.app.models.organization import OrganizationStatus, OrganizationType
from saas_platform.app.models.tenant import TenantPlan, TenantStatus


class CentralBase(DeclarativeBase):
    """Base class for central database models."""

    pass


class TenantBase(DeclarativeBase):
    """Base class for models living in each tenant database."""

    pass


class TenantRow(CentralBase):
    """Tenant registry table - one row per isolated customer database."""

    __tablename__ = "tenants"
    __table_args__ = (
        Index("idx_tenants_status", "status"),
        Index("idx_tenants_plan", "plan"),
        Index("idx_tenants_subscription", "subscription_start", "subscription_end"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    subdomain: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    database_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    database_host: Mapped[str] = mapped_column(String(255), nullable=False, default="localhost")
    database_port: Mapped[int] = mapped_column(Integer, nullable=False, default=5432)
    status: Mapped[TenantStatus] = mapped_column(
        Enum(TenantStatus, name="tenant_status"), nullable=False, default=TenantStatus.trial
    )
    plan: Mapped[TenantPlan] = mapped_column(
        Enum(TenantPlan, name="tenant_plan"), nullable=False, default=TenantPlan.basic
    )
    max_users: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    max_organizations: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_storage_mb: Mapped[int] = mapped_column(Integer, nullable=False, default=1024)
    subscription_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    subscription_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    billing_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    custom_settings: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class OrganizationRow(TenantBase):
    """Organization table - hierarchical units within a tenant."""

    __tablename__ = "organizations"
    __table_args__ = (
        Index("idx_organizations_tenant", "tenant_id"),
        Index("idx_organizations_parent", "parent_id"),
        Index("idx_organizations_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Tenant lives in the central database, so no foreign key here
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[OrganizationType] = mapped_column(
        Enum(OrganizationType, name="organization_type"),
        nullable=False,
        default=OrganizationType.branch,
    )
    status: Mapped[OrganizationStatus] = mapped_column(
        Enum(OrganizationStatus, name="organization_status"),
        nullable=False,
        default=OrganizationStatus.active,
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    locale: Mapped[str] = mapped_column(String(5), nullable=False, default="en")
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

