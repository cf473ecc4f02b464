"""Concurrent requests for different tenants never see each other's database."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest
from sqlalchemy import URL, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from saas_platform.app.config import Settings
from saas_platform.app.db.inmemory import InMemoryTenantCache, InMemoryTenantRegistry
from saas_platform.app.db.models import OrganizationRow
from saas_platform.app.models.tenant import Tenant
from saas_platform.app.tenancy.bypass import CentralRouteMatcher
from saas_platform.app.tenancy.context import TenantBinding, current_binding
from saas_platform.app.tenancy.directory import TenantDirectory
from saas_platform.app.tenancy.gate import StatusGate
from saas_platform.app.tenancy.pipeline import TenantPipeline, TenantRequest
from saas_platform.app.tenancy.router import ConnectionRouter, TenantConnectionPool


async def seed_marker(engine_factory: Callable[[URL], AsyncEngine], tenant: Tenant) -> None:
    """Write an organization named after the tenant into its own database."""
    engine = engine_factory(URL.create("sqlite+aiosqlite", database=tenant.database_name))
    async with AsyncSession(engine) as session:
        session.add(
            OrganizationRow(
                tenant_id=tenant.id, name=tenant.company_name, code=tenant.database_name
            )
        )
        await session.commit()
    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_requests_stay_isolated(
    settings: Settings,
    make_tenant: Callable[..., Tenant],
    tenant_engine_factory: Callable[[URL], AsyncEngine],
    create_tenant_schema: Callable[[str], Awaitable[None]],
) -> None:
    tenants = [make_tenant(company_name=f"Company {i}") for i in range(4)]
    for tenant in tenants:
        await create_tenant_schema(tenant.database_name)
        await seed_marker(tenant_engine_factory, tenant)

    central = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=NullPool)
    router = ConnectionRouter(
        central, settings, pool=TenantConnectionPool(engine_factory=tenant_engine_factory)
    )
    pipeline = TenantPipeline(
        settings,
        CentralRouteMatcher(settings.central_routes),
        TenantDirectory(InMemoryTenantRegistry(tenants), InMemoryTenantCache()),
        StatusGate(),
        router,
    )

    async def handler(binding: TenantBinding | None, expected: Tenant) -> str:
        assert binding is not None
        for _ in range(5):
            # Yield to other requests, then check nothing leaked in
            await asyncio.sleep(0)
            active = current_binding()
            assert active is binding
            assert active.tenant.id == expected.id
            assert router.active_engine() is binding.engine

        async with AsyncSession(router.active_engine()) as session:
            names = (await session.execute(select(OrganizationRow.name))).scalars().all()
        assert names == [expected.company_name]
        return expected.company_name

    async def request(tenant: Tenant) -> str:
        return await pipeline.handle(
            TenantRequest(host=tenant.domain, path="/api/v1/organizations"),
            lambda binding: handler(binding, tenant),
        )

    requests = [request(tenants[i % len(tenants)]) for i in range(24)]
    results = await asyncio.gather(*requests)

    assert results == [tenants[i % len(tenants)].company_name for i in range(24)]
    assert len(router.pool) == len(tenants)
    engines = {id(router.pool.engine_for(t.id)) for t in tenants}
    assert len(engines) == len(tenants)
    assert current_binding() is None
    assert router.active_engine() is central

    await router.pool.dispose_all()
