"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from saas_platform.app.models.organization import Organization
from saas_platform.app.models.tenant import Tenant, TenantStatus


@dataclass(frozen=True)
class CachedTenant:
    """Directory cache entry.

    `tenant=None` is a tombstone: the key was looked up and nothing matched.
    """

    tenant: Tenant | None

    @property
    def is_tombstone(self) -> bool:
        return self.tenant is None


class TenantRegistry(Protocol):
    """Durable tenant store in the central database.

    Soft-deleted tenants are invisible to every lookup.
    """

    async def find_by_domain(self, domain: str) -> Tenant | None:
        """Find tenant by primary domain.

        Raises:
            RegistryUnavailable: If the store cannot be queried
        """
        ...

    async def find_by_subdomain(self, subdomain: str) -> Tenant | None:
        """Find tenant by subdomain.

        Raises:
            RegistryUnavailable: If the store cannot be queried
        """
        ...

    async def get(self, tenant_id: UUID) -> Tenant | None:
        """Get tenant by ID."""
        ...

    async def list_all(self) -> list[Tenant]:
        """List all tenants."""
        ...

    async def list_by_status(self, status: TenantStatus) -> list[Tenant]:
        """List tenants with a given stored status."""
        ...

    async def list_expired(self, now: datetime) -> list[Tenant]:
        """List tenants that are effectively expired at `now`."""
        ...

    async def add(self, tenant: Tenant) -> Tenant:
        """Insert a new tenant.

        Raises:
            ValueError: If domain, subdomain or database name is taken
        """
        ...

    async def save(self, tenant: Tenant) -> Tenant:
        """Persist changes to an existing tenant.

        Raises:
            LookupError: If the tenant does not exist
        """
        ...

    async def soft_delete(self, tenant_id: UUID, now: datetime) -> bool:
        """Mark tenant deleted. Returns False if it did not exist."""
        ...

    async def remove(self, tenant_id: UUID) -> None:
        """Hard-delete a tenant that was never provisioned."""
        ...


class TenantCache(Protocol):
    """Advisory key -> tenant cache with per-entry TTL."""

    async def get(self, key: str) -> CachedTenant | None:
        """Get cached entry, None on miss or expiry."""
        ...

    async def set(self, key: str, entry: CachedTenant, ttl_seconds: int) -> None:
        """Store entry for `ttl_seconds`."""
        ...

    async def delete(self, key: str) -> None:
        """Drop entry if present."""
        ...


class OrganizationRepository(Protocol):
    """Repository for organizations."""

    async def get(self, organization_id: UUID) -> Organization | None:
        """Get organization by ID (excluding soft-deleted)."""
        ...

    async def find_by_code(self, code: str) -> Organization | None:
        """Get organization by unique code."""
        ...

    async def add(self, organization: Organization) -> Organization:
        """Insert a new organization.

        Raises:
            ValueError: If the code is taken
        """
        ...

    async def save(self, organization: Organization) -> Organization:
        """Persist changes to an existing organization."""
        ...

    async def soft_delete(self, organization_id: UUID, now: datetime) -> bool:
        """Mark organization deleted."""
        ...

    async def list_for_tenant(self, tenant_id: UUID) -> list[Organization]:
        """List organizations belonging to a tenant."""
        ...

    async def children(self, parent_id: UUID) -> list[Organization]:
        """List direct children of an organization."""
        ...
