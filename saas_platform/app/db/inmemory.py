"""In-memory implementations of repository interfaces."""

import threading
import time
import uuid
from collections.abc import Callable
from datetime import datetime

from saas_platform.app.db.repositories import CachedTenant
from saas_platform.app.models.organization import Organization
from saas_platform.app.models.tenant import Tenant, TenantStatus


class InMemoryTenantRegistry:
    """In-memory implementation of TenantRegistry."""

    def __init__(self, tenants: list[Tenant] | None = None) -> None:
        self._tenants: dict[uuid.UUID, Tenant] = {}
        for tenant in tenants or []:
            self._check_unique(tenant)
            self._tenants[tenant.id] = tenant

    def _live(self) -> list[Tenant]:
        return [t for t in self._tenants.values() if not t.is_deleted()]

    def _check_unique(self, tenant: Tenant) -> None:
        for other in self._tenants.values():
            if other.id == tenant.id:
                continue
            if other.domain == tenant.domain:
                raise ValueError(f"Domain already registered: {tenant.domain}")
            if tenant.subdomain and other.subdomain == tenant.subdomain:
                raise ValueError(f"Subdomain already registered: {tenant.subdomain}")
            if other.database_name == tenant.database_name:
                raise ValueError(f"Database name already in use: {tenant.database_name}")

    async def find_by_domain(self, domain: str) -> Tenant | None:
        """Find tenant by primary domain."""
        return next((t for t in self._live() if t.domain == domain), None)

    async def find_by_subdomain(self, subdomain: str) -> Tenant | None:
        """Find tenant by subdomain."""
        return next((t for t in self._live() if t.subdomain == subdomain), None)

    async def get(self, tenant_id: uuid.UUID) -> Tenant | None:
        """Get tenant by ID."""
        tenant = self._tenants.get(tenant_id)
        if tenant is None or tenant.is_deleted():
            return None
        return tenant

    async def list_all(self) -> list[Tenant]:
        """List all tenants."""
        return self._live()

    async def list_by_status(self, status: TenantStatus) -> list[Tenant]:
        """List tenants with a given stored status."""
        return [t for t in self._live() if t.status == status]

    async def list_expired(self, now: datetime) -> list[Tenant]:
        """List effectively expired tenants."""
        return [t for t in self._live() if t.is_expired(now)]

    async def add(self, tenant: Tenant) -> Tenant:
        """Insert a new tenant."""
        if tenant.id in self._tenants:
            raise ValueError(f"Tenant already exists: {tenant.id}")
        self._check_unique(tenant)
        self._tenants[tenant.id] = tenant
        return tenant

    async def save(self, tenant: Tenant) -> Tenant:
        """Persist changes to an existing tenant."""
        if tenant.id not in self._tenants:
            raise LookupError(f"Tenant not found: {tenant.id}")
        self._check_unique(tenant)
        self._tenants[tenant.id] = tenant
        return tenant

    async def soft_delete(self, tenant_id: uuid.UUID, now: datetime) -> bool:
        """Mark tenant deleted."""
        tenant = await self.get(tenant_id)
        if tenant is None:
            return False
        self._tenants[tenant_id] = tenant.model_copy(update={"deleted_at": now})
        return True

    async def remove(self, tenant_id: uuid.UUID) -> None:
        """Hard-delete a tenant."""
        self._tenants.pop(tenant_id, None)


class InMemoryTenantCache:
    """In-memory implementation of TenantCache.

    Safe for concurrent use from multiple threads; expiry uses a monotonic
    clock that tests can replace. Expired entries are swept every
    `sweep_every` writes, and the cache never holds more than `max_entries`
    keys (soonest-expiring entries are evicted first).
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10_000,
        sweep_every: int = 256,
    ) -> None:
        self._clock = clock
        self._max_entries = max_entries
        self._sweep_every = sweep_every
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, CachedTenant]] = {}
        self._writes = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get(self, key: str) -> CachedTenant | None:
        """Get cached entry."""
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None

            expires_at, entry = item
            if self._clock() >= expires_at:
                del self._entries[key]
                return None

            return entry

    async def set(self, key: str, entry: CachedTenant, ttl_seconds: int) -> None:
        """Store entry with TTL."""
        with self._lock:
            now = self._clock()
            self._entries[key] = (now + ttl_seconds, entry)
            self._writes += 1
            if self._writes % self._sweep_every == 0 or len(self._entries) > self._max_entries:
                self._sweep(now)

    async def delete(self, key: str) -> None:
        """Drop entry."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Clear all entries (useful for testing)."""
        with self._lock:
            self._entries.clear()

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            by_expiry = sorted(self._entries.items(), key=lambda item: item[1][0])
            for key, _ in by_expiry[:overflow]:
                del self._entries[key]


class InMemoryOrganizationRepository:
    """In-memory implementation of OrganizationRepository."""

    def __init__(self) -> None:
        self._organizations: dict[uuid.UUID, Organization] = {}

    def _live(self) -> list[Organization]:
        return [o for o in self._organizations.values() if o.deleted_at is None]

    async def get(self, organization_id: uuid.UUID) -> Organization | None:
        """Get organization by ID."""
        organization = self._organizations.get(organization_id)
        if organization is None or organization.deleted_at is not None:
            return None
        return organization

    async def find_by_code(self, code: str) -> Organization | None:
        """Get organization by code."""
        return next((o for o in self._live() if o.code == code), None)

    async def add(self, organization: Organization) -> Organization:
        """Insert a new organization."""
        if any(o.code == organization.code for o in self._organizations.values()):
            raise ValueError(f"Organization code already in use: {organization.code}")
        self._organizations[organization.id] = organization
        return organization

    async def save(self, organization: Organization) -> Organization:
        """Persist changes to an existing organization."""
        if organization.id not in self._organizations:
            raise LookupError(f"Organization not found: {organization.id}")
        self._organizations[organization.id] = organization
        return organization

    async def soft_delete(self, organization_id: uuid.UUID, now: datetime) -> bool:
        """Mark organization deleted."""
        organization = await self.get(organization_id)
        if organization is None:
            return False
        self._organizations[organization_id] = organization.model_copy(
            update={"deleted_at": now}
        )
        return True

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> list[Organization]:
        """List organizations for tenant."""
        return [o for o in self._live() if o.tenant_id == tenant_id]

    async def children(self, parent_id: uuid.UUID) -> list[Organization]:
        """List direct children."""
        return [o for o in self._live() if o.parent_id == parent_id]
