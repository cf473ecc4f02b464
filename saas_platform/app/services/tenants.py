"""Tenant lifecycle - provisioning, status transitions and plan lookups.

Every mutation drops the tenant's directory cache entries so the next
request sees the new state without waiting for TTL expiry.
"""

import logging
import re
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from saas_platform.app.config import PlanDefinition, Settings
from saas_platform.app.db.engine import build_tenant_url, create_tenant_engine
from saas_platform.app.db.models import TenantBase
from saas_platform.app.db.repositories import TenantRegistry
from saas_platform.app.models.tenant import Tenant, TenantPlan, TenantStatus
from saas_platform.app.tenancy.directory import TenantDirectory
from saas_platform.app.tenancy.router import EngineFactory, TenantConnectionPool

logger = logging.getLogger(__name__)

DATABASE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

# Fields `update` may change. The primary domain is the routing key and never
# changes once the tenant exists.
UPDATABLE_FIELDS = frozenset(
    {
        "subdomain",
        "company_name",
        "database_host",
        "database_port",
        "status",
        "plan",
        "max_users",
        "max_organizations",
        "max_storage_mb",
        "subscription_start",
        "subscription_end",
        "billing_email",
        "custom_settings",
    }
)


def generate_database_name() -> str:
    """Unique database name for a new tenant."""
    return f"tenant_{uuid.uuid4().hex[:13]}"


def validate_database_name(name: str) -> None:
    """Reject names that are unsafe to interpolate into DDL.

    Raises:
        ValueError: If the name has characters outside [A-Za-z0-9_]
    """
    if not DATABASE_NAME_PATTERN.match(name):
        raise ValueError(f"Invalid database name format: {name!r}")


class DatabaseProvisioner(Protocol):
    """Creates the dedicated database of a new tenant."""

    async def create_database(self, tenant: Tenant) -> None:
        """Create the database and its schema.

        Raises:
            ValueError: If the database name is invalid
        """
        ...


class SqlDatabaseProvisioner:
    """Provisions tenant databases on the central database server.

    `CREATE DATABASE` cannot run inside a transaction, so it is issued on an
    AUTOCOMMIT connection. The tenant schema is then created directly from
    the tenant table metadata.
    """

    def __init__(
        self,
        central_engine: AsyncEngine,
        settings: Settings,
        engine_factory: EngineFactory = create_tenant_engine,
    ) -> None:
        self._central_engine = central_engine
        self._settings = settings
        self._engine_factory = engine_factory

    async def create_database(self, tenant: Tenant) -> None:
        """Create database and schema for a tenant."""
        validate_database_name(tenant.database_name)

        async with self._central_engine.connect() as conn:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
            await conn.execute(text(f'CREATE DATABASE "{tenant.database_name}"'))
        logger.info("Tenant database created: %s", tenant.database_name)

        engine = self._engine_factory(build_tenant_url(tenant.database_target(), self._settings))
        try:
            async with engine.begin() as conn:
                await conn.run_sync(TenantBase.metadata.create_all)
        finally:
            await engine.dispose()
        logger.info("Tenant schema created: %s", tenant.database_name)


class TenantService:
    """Tenant administration against the central registry."""

    def __init__(
        self,
        registry: TenantRegistry,
        directory: TenantDirectory,
        settings: Settings,
        provisioner: DatabaseProvisioner | None = None,
        pool: TenantConnectionPool | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize tenant service.

        Args:
            registry: Central tenant registry
            directory: Tenant directory whose cache is invalidated on change
            settings: Application settings (defaults, plans)
            provisioner: Database provisioner for `create_with_database`
            pool: Tenant engine pool, purged on delete and database moves
            clock: Current time source (for testing)
        """
        self._registry = registry
        self._directory = directory
        self._settings = settings
        self._provisioner = provisioner
        self._pool = pool
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get(self, tenant_id: uuid.UUID) -> Tenant:
        """Get tenant by ID.

        Raises:
            LookupError: If the tenant does not exist
        """
        tenant = await self._registry.get(tenant_id)
        if tenant is None:
            raise LookupError(f"Tenant not found: {tenant_id}")
        return tenant

    async def find_by_domain(self, domain: str) -> Tenant | None:
        return await self._registry.find_by_domain(domain)

    async def create(
        self,
        domain: str,
        company_name: str,
        *,
        subdomain: str | None = None,
        plan: TenantPlan = TenantPlan.basic,
        status: TenantStatus = TenantStatus.trial,
        database_name: str | None = None,
        database_host: str | None = None,
        database_port: int | None = None,
        **fields: Any,
    ) -> Tenant:
        """Register a tenant record (no database is created).

        Limits default to the plan's limits, falling back to the configured
        default limits for unknown plans. Explicit values in `fields` win.

        Returns:
            The stored tenant

        Raises:
            ValueError: If domain, subdomain or database name is taken
        """
        limits = self._plan_limits(plan)
        limits.update({k: v for k, v in fields.items() if k in limits})
        extra = {k: v for k, v in fields.items() if k not in limits}

        tenant = Tenant(
            domain=domain.lower(),
            subdomain=subdomain.lower() if subdomain else None,
            company_name=company_name,
            database_name=database_name or generate_database_name(),
            database_host=database_host or self._settings.tenant_db_default_host,
            database_port=database_port or self._settings.tenant_db_default_port,
            status=status,
            plan=plan,
            **limits,
            **extra,
        )
        tenant = await self._registry.add(tenant)
        await self._directory.invalidate(tenant)

        logger.info(
            "Tenant created",
            extra={"structured": {"tenant_id": str(tenant.id), "domain": tenant.domain}},
        )
        return tenant

    async def create_with_database(self, domain: str, company_name: str, **fields: Any) -> Tenant:
        """Register a tenant and provision its dedicated database.

        The registry record is removed again if provisioning fails.

        Raises:
            ValueError: If the database name is invalid or keys are taken
            RuntimeError: If no provisioner is configured
        """
        if self._provisioner is None:
            raise RuntimeError("No database provisioner configured")

        database_name = fields.pop("database_name", None) or generate_database_name()
        validate_database_name(database_name)

        tenant = await self.create(domain, company_name, database_name=database_name, **fields)
        try:
            await self._provisioner.create_database(tenant)
        except Exception:
            logger.exception("Failed to provision database for tenant %s", tenant.id)
            await self._registry.remove(tenant.id)
            await self._directory.invalidate(tenant)
            raise

        return tenant

    async def update(self, tenant_id: uuid.UUID, **changes: Any) -> Tenant:
        """Apply field changes to a tenant.

        Raises:
            LookupError: If the tenant does not exist
            ValueError: If a field is not updatable, a key is taken or the
                subscription would end before it starts
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if changes.get("subdomain"):
            changes["subdomain"] = changes["subdomain"].lower()

        current = await self.get(tenant_id)
        updated = Tenant.model_validate(
            {**current.model_dump(), **changes, "updated_at": self._clock()}
        )
        if (
            updated.subscription_start is not None
            and updated.subscription_end is not None
            and updated.subscription_end <= updated.subscription_start
        ):
            raise ValueError("subscription_end must be after subscription_start")
        saved = await self._registry.save(updated)

        # The old subdomain key must go too when it changed
        await self._directory.invalidate(current)
        await self._directory.invalidate(saved)
        if self._pool is not None and current.database_target() != saved.database_target():
            await self._pool.purge(saved.id)
        return saved

    async def activate(self, tenant_id: uuid.UUID) -> Tenant:
        return await self._transition(tenant_id, TenantStatus.active)

    async def suspend(self, tenant_id: uuid.UUID) -> Tenant:
        return await self._transition(tenant_id, TenantStatus.suspended)

    async def mark_expired(self, tenant_id: uuid.UUID) -> Tenant:
        return await self._transition(tenant_id, TenantStatus.expired)

    async def delete(self, tenant_id: uuid.UUID) -> bool:
        """Soft-delete a tenant and release its pooled connections.

        Returns:
            False if the tenant did not exist
        """
        tenant = await self._registry.get(tenant_id)
        if tenant is None:
            return False

        deleted = await self._registry.soft_delete(tenant_id, self._clock())
        await self._directory.invalidate(tenant)
        if self._pool is not None:
            await self._pool.purge(tenant_id)

        logger.info("Tenant %s deleted", tenant_id)
        return deleted

    async def list_tenants(self, status: TenantStatus | None = None) -> list[Tenant]:
        if status is not None:
            return await self._registry.list_by_status(status)
        return await self._registry.list_all()

    async def list_active(self) -> list[Tenant]:
        return await self._registry.list_by_status(TenantStatus.active)

    async def list_expired(self) -> list[Tenant]:
        return await self._registry.list_expired(self._clock())

    async def can_add_users(self, tenant_id: uuid.UUID, current_users: int) -> bool:
        return (await self.get(tenant_id)).can_add_users(current_users)

    async def can_add_organizations(self, tenant_id: uuid.UUID, current: int) -> bool:
        return (await self.get(tenant_id)).can_add_organizations(current)

    def plan_for(self, tenant: Tenant) -> PlanDefinition | None:
        """Plan definition for a tenant's plan tier, if configured."""
        return self._settings.plans.get(tenant.plan.value)

    def has_feature(self, tenant: Tenant, feature: str) -> bool:
        """Check whether the tenant's plan includes a feature flag."""
        plan = self.plan_for(tenant)
        return plan is not None and feature in plan.features

    async def _transition(self, tenant_id: uuid.UUID, status: TenantStatus) -> Tenant:
        current = await self.get(tenant_id)
        saved = await self._registry.save(current.with_status(status, self._clock()))
        await self._directory.invalidate(saved)

        logger.info(
            "Tenant status changed",
            extra={
                "structured": {
                    "tenant_id": str(saved.id),
                    "from_status": current.status.value,
                    "to_status": saved.status.value,
                }
            },
        )
        return saved

    def _plan_limits(self, plan: TenantPlan) -> dict[str, int]:
        definition = self._settings.plans.get(plan.value)
        if definition is not None:
            return {
                "max_users": definition.max_users,
                "max_organizations": definition.max_organizations,
                "max_storage_mb": definition.max_storage_mb,
            }
        return self._settings.default_limits.model_dump()
