"""Unit tests for the cached tenant directory."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from saas_platform.app.db.inmemory import InMemoryTenantCache, InMemoryTenantRegistry
from saas_platform.app.db.repositories import CachedTenant
from saas_platform.app.models.tenant import Tenant
from saas_platform.app.tenancy.directory import TenantDirectory
from saas_platform.app.tenancy.errors import RegistryUnavailable


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def spy_registry(registry: InMemoryTenantRegistry) -> InMemoryTenantRegistry:
    """Wrap lookups in AsyncMocks so calls can be counted."""
    registry.find_by_domain = AsyncMock(wraps=registry.find_by_domain)  # type: ignore[method-assign]
    registry.find_by_subdomain = AsyncMock(wraps=registry.find_by_subdomain)  # type: ignore[method-assign]
    return registry


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics() -> MagicMock:
    return MagicMock()


@pytest.mark.asyncio
async def test_resolve_by_domain(make_tenant: Callable[..., Tenant]) -> None:
    tenant = make_tenant(domain="acme.example.com")
    directory = TenantDirectory(InMemoryTenantRegistry([tenant]), InMemoryTenantCache())

    assert await directory.resolve("acme.example.com") == tenant


@pytest.mark.asyncio
async def test_resolve_falls_back_to_subdomain(make_tenant: Callable[..., Tenant]) -> None:
    """A key that is not a domain may still match a subdomain."""
    tenant = make_tenant(domain="tenant1-corp.com", subdomain="tenant1")
    directory = TenantDirectory(InMemoryTenantRegistry([tenant]), InMemoryTenantCache())

    assert await directory.resolve("tenant1") == tenant


@pytest.mark.asyncio
async def test_second_resolve_within_ttl_skips_registry(
    make_tenant: Callable[..., Tenant], metrics: MagicMock
) -> None:
    tenant = make_tenant(domain="acme.example.com")
    registry = spy_registry(InMemoryTenantRegistry([tenant]))
    directory = TenantDirectory(registry, InMemoryTenantCache(), metrics=metrics)

    first = await directory.resolve("acme.example.com")
    second = await directory.resolve("acme.example.com")

    assert first == second == tenant
    assert registry.find_by_domain.await_count == 1  # type: ignore[attr-defined]
    metrics.inc_cache_lookup.assert_any_call("miss")
    metrics.inc_cache_lookup.assert_any_call("hit")


@pytest.mark.asyncio
async def test_positive_entry_expires_after_ttl(
    make_tenant: Callable[..., Tenant], clock: FakeClock
) -> None:
    tenant = make_tenant(domain="acme.example.com")
    registry = spy_registry(InMemoryTenantRegistry([tenant]))
    directory = TenantDirectory(registry, InMemoryTenantCache(clock=clock), ttl_seconds=3600)

    await directory.resolve("acme.example.com")
    clock.now += 3601
    await directory.resolve("acme.example.com")

    assert registry.find_by_domain.await_count == 2  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_not_found_is_negatively_cached(metrics: MagicMock) -> None:
    registry = spy_registry(InMemoryTenantRegistry())
    directory = TenantDirectory(registry, InMemoryTenantCache(), metrics=metrics)

    assert await directory.resolve("ghost.example.com") is None
    assert await directory.resolve("ghost.example.com") is None

    assert registry.find_by_domain.await_count == 1  # type: ignore[attr-defined]
    metrics.inc_cache_lookup.assert_any_call("negative_hit")


@pytest.mark.asyncio
async def test_negative_entry_uses_short_ttl(
    make_tenant: Callable[..., Tenant], clock: FakeClock
) -> None:
    """A tenant provisioned after a miss becomes visible once the tombstone expires."""
    registry = InMemoryTenantRegistry()
    directory = TenantDirectory(
        registry, InMemoryTenantCache(clock=clock), ttl_seconds=3600, negative_ttl_seconds=60
    )

    assert await directory.resolve("new.example.com") is None

    tenant = await registry.add(make_tenant(domain="new.example.com"))
    assert await directory.resolve("new.example.com") is None

    clock.now += 61
    assert await directory.resolve("new.example.com") == tenant


@pytest.mark.asyncio
async def test_zero_negative_ttl_disables_tombstones() -> None:
    registry = spy_registry(InMemoryTenantRegistry())
    directory = TenantDirectory(registry, InMemoryTenantCache(), negative_ttl_seconds=0)

    await directory.resolve("ghost.example.com")
    await directory.resolve("ghost.example.com")

    assert registry.find_by_domain.await_count == 2  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_invalidate_drops_domain_and_subdomain(make_tenant: Callable[..., Tenant]) -> None:
    tenant = make_tenant(domain="acme.example.com", subdomain="acme")
    cache = InMemoryTenantCache()
    directory = TenantDirectory(InMemoryTenantRegistry([tenant]), cache)

    await directory.resolve("acme.example.com")
    await directory.resolve("acme")
    await directory.invalidate(tenant)

    assert await cache.get("acme.example.com") is None
    assert await cache.get("acme") is None


@pytest.mark.asyncio
async def test_invalidate_makes_new_tenant_visible_immediately(
    make_tenant: Callable[..., Tenant],
) -> None:
    registry = InMemoryTenantRegistry()
    directory = TenantDirectory(registry, InMemoryTenantCache())

    assert await directory.resolve("new.example.com") is None

    tenant = await registry.add(make_tenant(domain="new.example.com"))
    await directory.invalidate(tenant)

    assert await directory.resolve("new.example.com") == tenant


@pytest.mark.asyncio
async def test_cache_read_failure_falls_back_to_registry(
    make_tenant: Callable[..., Tenant], metrics: MagicMock
) -> None:
    tenant = make_tenant(domain="acme.example.com")
    cache = MagicMock()
    cache.get = AsyncMock(side_effect=ConnectionError("redis down"))
    cache.set = AsyncMock(side_effect=ConnectionError("redis down"))
    directory = TenantDirectory(InMemoryTenantRegistry([tenant]), cache, metrics=metrics)

    assert await directory.resolve("acme.example.com") == tenant
    metrics.inc_cache_lookup.assert_called_once_with("error")


@pytest.mark.asyncio
async def test_registry_failure_is_not_cached(make_tenant: Callable[..., Tenant]) -> None:
    tenant = make_tenant(domain="acme.example.com")
    registry = InMemoryTenantRegistry([tenant])
    cache = InMemoryTenantCache()
    directory = TenantDirectory(registry, cache)

    registry.find_by_domain = AsyncMock(side_effect=RegistryUnavailable())  # type: ignore[method-assign]
    with pytest.raises(RegistryUnavailable):
        await directory.resolve("acme.example.com")
    assert await cache.get("acme.example.com") is None

    del registry.find_by_domain
    assert await directory.resolve("acme.example.com") == tenant


@pytest.mark.asyncio
async def test_directory_without_cache(make_tenant: Callable[..., Tenant]) -> None:
    tenant = make_tenant(domain="acme.example.com")
    registry = spy_registry(InMemoryTenantRegistry([tenant]))
    directory = TenantDirectory(registry, None)

    await directory.resolve("acme.example.com")
    await directory.resolve("acme.example.com")

    assert registry.find_by_domain.await_count == 2  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_inmemory_cache_tombstone_roundtrip() -> None:
    cache = InMemoryTenantCache()

    await cache.set("ghost", CachedTenant(tenant=None), 60)
    entry = await cache.get("ghost")

    assert entry is not None
    assert entry.is_tombstone is True


@pytest.mark.asyncio
async def test_unknown_hosts_do_not_accumulate_tombstones(clock: FakeClock) -> None:
    cache = InMemoryTenantCache(clock=clock)
    directory = TenantDirectory(
        InMemoryTenantRegistry(), cache, ttl_seconds=300, negative_ttl_seconds=60
    )

    for i in range(5000):
        assert await directory.resolve(f"h{i}.example.com") is None
    clock.now += 61
    for i in range(256):
        await directory.resolve(f"late{i}.example.com")

    assert len(cache) <= 256


@pytest.mark.asyncio
async def test_cache_size_is_capped(clock: FakeClock) -> None:
    cache = InMemoryTenantCache(clock=clock, max_entries=100)
    tombstone = CachedTenant(tenant=None)

    for i in range(1000):
        await cache.set(f"h{i}.example.com", tombstone, ttl_seconds=60 + i)

    assert len(cache) == 100
    # The latest-expiring entries survive
    assert await cache.get("h999.example.com") == tombstone
    assert await cache.get("h0.example.com") is None
