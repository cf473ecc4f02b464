"""Redis-backed tenant directory cache."""

import redis.asyncio as redis

from saas_platform.app.db.repositories import CachedTenant
from saas_platform.app.models.tenant import Tenant

# Stored in place of a tenant snapshot for negative lookups
TOMBSTONE = "__not_found__"


class RedisTenantCache:
    """Redis implementation of TenantCache using SET ... EX.

    Shared across worker processes, so a provisioning hook in one process
    invalidates the entry for all of them.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "tenant:") -> None:
        """Initialize cache.

        Args:
            redis_client: Async Redis client
            prefix: Key prefix for all cache entries
        """
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> CachedTenant | None:
        """Get cached entry."""
        raw = await self._redis.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        if raw == TOMBSTONE:
            return CachedTenant(tenant=None)
        return CachedTenant(tenant=Tenant.model_validate_json(raw))

    async def set(self, key: str, entry: CachedTenant, ttl_seconds: int) -> None:
        """Store entry with TTL."""
        value = TOMBSTONE if entry.tenant is None else entry.tenant.model_dump_json()
        await self._redis.set(self._key(key), value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        """Drop entry."""
        await self._redis.delete(self._key(key))
