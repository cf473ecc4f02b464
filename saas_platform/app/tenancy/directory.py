"""Tenant directory - cached lookup of tenant metadata by domain key.

Resolution order:
1. Cache (a tombstone counts as a hit and short-circuits to "not found")
2. Registry by primary domain
3. Registry by subdomain, using the same key

Negative results are cached with their own, shorter TTL so a freshly
provisioned tenant becomes visible quickly even without an explicit
`invalidate` from the provisioning flow. Registry failures are never cached.
"""

import logging

from saas_platform.app.db.repositories import CachedTenant, TenantCache, TenantRegistry
from saas_platform.app.models.tenant import Tenant
from saas_platform.app.utils.metrics import PrometheusTenancyMetrics

logger = logging.getLogger(__name__)


class TenantDirectory:
    """Resolves domain keys to tenant snapshots through an advisory cache."""

    def __init__(
        self,
        registry: TenantRegistry,
        cache: TenantCache | None,
        ttl_seconds: int = 3600,
        negative_ttl_seconds: int = 60,
        metrics: PrometheusTenancyMetrics | None = None,
    ) -> None:
        """Initialize directory.

        Args:
            registry: Durable tenant store queried on cache miss
            cache: Directory cache, or None to disable caching
            ttl_seconds: TTL for found tenants
            negative_ttl_seconds: TTL for "not found" tombstones (0 disables them)
            metrics: Metrics sink
        """
        self._registry = registry
        self._cache = cache
        self._ttl_seconds = ttl_seconds
        self._negative_ttl_seconds = negative_ttl_seconds
        self._metrics = metrics or PrometheusTenancyMetrics()

    @property
    def registry(self) -> TenantRegistry:
        return self._registry

    async def resolve(self, key: str) -> Tenant | None:
        """Resolve a key to a tenant.

        Returns:
            Tenant snapshot, or None if no tenant matches

        Raises:
            RegistryUnavailable: If the registry cannot be queried on a miss
        """
        cached = await self._cache_get(key)
        if cached is not None:
            return cached.tenant

        tenant = await self._registry.find_by_domain(key)
        if tenant is None:
            tenant = await self._registry.find_by_subdomain(key)

        await self._cache_set(key, CachedTenant(tenant=tenant))
        return tenant

    async def invalidate_key(self, key: str) -> None:
        """Drop a single cache entry."""
        if self._cache is None:
            return
        try:
            await self._cache.delete(key)
        except Exception:
            logger.exception("Failed to invalidate tenant cache entry %s", key)

    async def invalidate(self, tenant: Tenant) -> None:
        """Drop every cache entry that can resolve to this tenant.

        Called by provisioning and status-change flows so updates are
        visible before TTL expiry.
        """
        await self.invalidate_key(tenant.domain)
        if tenant.subdomain:
            await self.invalidate_key(tenant.subdomain)

    async def _cache_get(self, key: str) -> CachedTenant | None:
        if self._cache is None:
            return None

        try:
            entry = await self._cache.get(key)
        except Exception:
            # Cache is advisory: a broken backend only costs a registry query
            logger.warning("Tenant cache read failed for %s", key, exc_info=True)
            self._metrics.inc_cache_lookup("error")
            return None

        if entry is None:
            self._metrics.inc_cache_lookup("miss")
        elif entry.is_tombstone:
            self._metrics.inc_cache_lookup("negative_hit")
        else:
            self._metrics.inc_cache_lookup("hit")
        return entry

    async def _cache_set(self, key: str, entry: CachedTenant) -> None:
        if self._cache is None:
            return

        ttl = self._negative_ttl_seconds if entry.is_tombstone else self._ttl_seconds
        if ttl <= 0:
            return

        try:
            await self._cache.set(key, entry, ttl)
        except Exception:
            logger.warning("Tenant cache write failed for %s", key, exc_info=True)
