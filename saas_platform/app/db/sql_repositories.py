"""SQL implementations of repository interfaces."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from saas_platform.app.db.models import OrganizationRow, TenantRow
from saas_platform.app.models.organization import Organization
from saas_platform.app.models.tenant import Tenant, TenantStatus
from saas_platform.app.tenancy.errors import RegistryUnavailable

logger = logging.getLogger(__name__)

# Columns copied verbatim between the pydantic model and the ORM row
_TENANT_FIELDS = (
    "domain",
    "subdomain",
    "company_name",
    "database_name",
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
    "deleted_at",
)

_ORGANIZATION_FIELDS = (
    "tenant_id",
    "parent_id",
    "name",
    "code",
    "description",
    "type",
    "status",
    "email",
    "phone",
    "country",
    "currency",
    "timezone",
    "locale",
    "deleted_at",
)


def tenant_from_row(row: TenantRow) -> Tenant:
    """Map ORM row to tenant snapshot."""
    return Tenant(
        id=row.id,
        custom_settings=row.custom_settings or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
        **{name: getattr(row, name) for name in _TENANT_FIELDS},
    )


def organization_from_row(row: OrganizationRow) -> Organization:
    """Map ORM row to organization model."""
    return Organization(
        id=row.id,
        settings=row.settings or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
        **{name: getattr(row, name) for name in _ORGANIZATION_FIELDS},
    )


class SqlTenantRegistry:
    """SQL implementation of TenantRegistry against the central database.

    Any storage failure surfaces as RegistryUnavailable so callers can tell
    "the registry is down" apart from "no such tenant".
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _find_one(self, *criteria: object) -> Tenant | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TenantRow).where(TenantRow.deleted_at.is_(None), *criteria)
                )
                row = result.scalars().first()
                return tenant_from_row(row) if row is not None else None
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Tenant registry lookup failed: %s", type(e).__name__)
            raise RegistryUnavailable() from e

    async def _find_many(self, *criteria: object) -> list[Tenant]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TenantRow)
                    .where(TenantRow.deleted_at.is_(None), *criteria)
                    .order_by(TenantRow.domain)
                )
                return [tenant_from_row(row) for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Tenant registry query failed: %s", type(e).__name__)
            raise RegistryUnavailable() from e

    async def find_by_domain(self, domain: str) -> Tenant | None:
        """Find tenant by primary domain."""
        return await self._find_one(TenantRow.domain == domain)

    async def find_by_subdomain(self, subdomain: str) -> Tenant | None:
        """Find tenant by subdomain."""
        return await self._find_one(TenantRow.subdomain == subdomain)

    async def get(self, tenant_id: uuid.UUID) -> Tenant | None:
        """Get tenant by ID."""
        return await self._find_one(TenantRow.id == tenant_id)

    async def list_all(self) -> list[Tenant]:
        """List all tenants."""
        return await self._find_many()

    async def list_by_status(self, status: TenantStatus) -> list[Tenant]:
        """List tenants with a given stored status."""
        return await self._find_many(TenantRow.status == status)

    async def list_expired(self, now: datetime) -> list[Tenant]:
        """List effectively expired tenants."""
        return await self._find_many(
            or_(
                TenantRow.status == TenantStatus.expired,
                (TenantRow.subscription_end.is_not(None)) & (TenantRow.subscription_end < now),
            )
        )

    async def add(self, tenant: Tenant) -> Tenant:
        """Insert a new tenant."""
        row = TenantRow(
            id=tenant.id,
            custom_settings=tenant.custom_settings,
            **{name: getattr(tenant, name) for name in _TENANT_FIELDS},
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
                return tenant_from_row(row)
        except IntegrityError as e:
            raise ValueError("Domain, subdomain or database name already registered") from e
        except (SQLAlchemyError, OSError) as e:
            raise RegistryUnavailable() from e

    async def save(self, tenant: Tenant) -> Tenant:
        """Persist changes to an existing tenant."""
        try:
            async with self._session_factory() as session:
                row = await session.get(TenantRow, tenant.id)
                if row is None:
                    raise LookupError(f"Tenant not found: {tenant.id}")

                for name in _TENANT_FIELDS:
                    setattr(row, name, getattr(tenant, name))
                row.custom_settings = tenant.custom_settings

                await session.commit()
                await session.refresh(row)
                return tenant_from_row(row)
        except IntegrityError as e:
            raise ValueError("Domain, subdomain or database name already registered") from e
        except (SQLAlchemyError, OSError) as e:
            raise RegistryUnavailable() from e

    async def soft_delete(self, tenant_id: uuid.UUID, now: datetime) -> bool:
        """Mark tenant deleted."""
        try:
            async with self._session_factory() as session:
                row = await session.get(TenantRow, tenant_id)
                if row is None or row.deleted_at is not None:
                    return False
                row.deleted_at = now
                await session.commit()
                return True
        except (SQLAlchemyError, OSError) as e:
            raise RegistryUnavailable() from e

    async def remove(self, tenant_id: uuid.UUID) -> None:
        """Hard-delete a tenant that was never provisioned."""
        try:
            async with self._session_factory() as session:
                row = await session.get(TenantRow, tenant_id)
                if row is not None:
                    await session.delete(row)
                    await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise RegistryUnavailable() from e


class SqlOrganizationRepository:
    """SQL implementation of OrganizationRepository.

    Bound to a tenant database session for the lifetime of a request.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _live_row(self, organization_id: uuid.UUID) -> OrganizationRow | None:
        row = await self._session.get(OrganizationRow, organization_id)
        if row is None or row.deleted_at is not None:
            return None
        return row

    async def get(self, organization_id: uuid.UUID) -> Organization | None:
        """Get organization by ID."""
        row = await self._live_row(organization_id)
        return organization_from_row(row) if row is not None else None

    async def find_by_code(self, code: str) -> Organization | None:
        """Get organization by code."""
        result = await self._session.execute(
            select(OrganizationRow).where(
                OrganizationRow.code == code, OrganizationRow.deleted_at.is_(None)
            )
        )
        row = result.scalars().first()
        return organization_from_row(row) if row is not None else None

    async def add(self, organization: Organization) -> Organization:
        """Insert a new organization."""
        row = OrganizationRow(
            id=organization.id,
            settings=organization.settings,
            **{name: getattr(organization, name) for name in _ORGANIZATION_FIELDS},
        )
        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ValueError(f"Organization code already in use: {organization.code}") from e

        await self._session.refresh(row)
        return organization_from_row(row)

    async def save(self, organization: Organization) -> Organization:
        """Persist changes to an existing organization."""
        row = await self._session.get(OrganizationRow, organization.id)
        if row is None:
            raise LookupError(f"Organization not found: {organization.id}")

        for name in _ORGANIZATION_FIELDS:
            setattr(row, name, getattr(organization, name))
        row.settings = organization.settings

        await self._session.commit()
        await self._session.refresh(row)
        return organization_from_row(row)

    async def soft_delete(self, organization_id: uuid.UUID, now: datetime) -> bool:
        """Mark organization deleted."""
        row = await self._live_row(organization_id)
        if row is None:
            return False
        row.deleted_at = now
        await self._session.commit()
        return True

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> list[Organization]:
        """List organizations for tenant."""
        result = await self._session.execute(
            select(OrganizationRow)
            .where(OrganizationRow.tenant_id == tenant_id, OrganizationRow.deleted_at.is_(None))
            .order_by(OrganizationRow.name)
        )
        return [organization_from_row(row) for row in result.scalars().all()]

    async def children(self, parent_id: uuid.UUID) -> list[Organization]:
        """List direct children."""
        result = await self._session.execute(
            select(OrganizationRow).where(
                OrganizationRow.parent_id == parent_id, OrganizationRow.deleted_at.is_(None)
            )
        )
        return [organization_from_row(row) for row in result.scalars().all()]
