"""Tenant models - registry record and routing snapshot."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TenantStatus(str, Enum):
    """Tenant lifecycle status."""

    active = "active"
    suspended = "suspended"
    trial = "trial"
    expired = "expired"


class TenantPlan(str, Enum):
    """Subscription plan."""

    basic = "basic"
    professional = "professional"
    enterprise = "enterprise"


UNLIMITED = -1


class DatabaseTarget(BaseModel):
    """Location of a tenant's dedicated database."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int
    database: str


class Tenant(BaseModel):
    """Tenant snapshot as stored in the central registry.

    Instances are immutable; status transitions produce a new snapshot via
    `with_status`. The same snapshot is what the directory cache stores.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    domain: str = Field(..., min_length=1)
    subdomain: str | None = None
    company_name: str
    database_name: str = Field(..., min_length=1)
    database_host: str = "localhost"
    database_port: int = 5432
    status: TenantStatus = TenantStatus.trial
    plan: TenantPlan = TenantPlan.basic
    max_users: int = 10
    max_organizations: int = 1
    max_storage_mb: int = 1024
    subscription_start: datetime | None = None
    subscription_end: datetime | None = None
    billing_email: str | None = None
    custom_settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @field_validator(
        "subscription_start",
        "subscription_end",
        "created_at",
        "updated_at",
        "deleted_at",
    )
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps (e.g. from SQLite) as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_active(self) -> bool:
        return self.status == TenantStatus.active

    def is_trial(self) -> bool:
        return self.status == TenantStatus.trial

    def is_suspended(self) -> bool:
        return self.status == TenantStatus.suspended

    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Effective expiry: explicit status or a subscription end in the past."""
        if self.status == TenantStatus.expired:
            return True
        if self.subscription_end is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.subscription_end < now

    def effective_status(self, now: datetime | None = None) -> TenantStatus:
        """Stored status adjusted for subscription expiry.

        Suspension outranks expiry so a suspended tenant keeps its reason.
        """
        if self.status != TenantStatus.suspended and self.is_expired(now):
            return TenantStatus.expired
        return self.status

    def database_target(self) -> DatabaseTarget:
        return DatabaseTarget(
            host=self.database_host,
            port=self.database_port,
            database=self.database_name,
        )

    def can_add_users(self, current_users: int) -> bool:
        return self.max_users == UNLIMITED or current_users < self.max_users

    def can_add_organizations(self, current_organizations: int) -> bool:
        return (
            self.max_organizations == UNLIMITED
            or current_organizations < self.max_organizations
        )

    def with_status(self, status: TenantStatus, now: datetime | None = None) -> "Tenant":
        """Return a copy with a new status and refreshed updated_at."""
        return self.model_copy(
            update={"status": status, "updated_at": now or datetime.now(timezone.utc)}
        )
