"""FastAPI application - tenant resolution and database routing."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from saas_platform.app.api.routes.central import router as central_router
from saas_platform.app.api.routes.health import router as health_router
from saas_platform.app.api.routes.metrics import router as metrics_router
from saas_platform.app.api.routes.workspace import router as workspace_router
from saas_platform.app.config import Settings, get_settings
from saas_platform.app.db.engine import (
    create_async_engine_from_settings,
    create_session_factory,
    create_tenant_engine,
)
from saas_platform.app.db.inmemory import InMemoryTenantCache
from saas_platform.app.db.redis_cache import RedisTenantCache
from saas_platform.app.db.repositories import TenantCache, TenantRegistry
from saas_platform.app.db.sql_repositories import SqlTenantRegistry
from saas_platform.app.middleware.tenant import TenantMiddleware
from saas_platform.app.services.tenants import (
    DatabaseProvisioner,
    SqlDatabaseProvisioner,
    TenantService,
)
from saas_platform.app.tenancy.bypass import CentralRouteMatcher
from saas_platform.app.tenancy.directory import TenantDirectory
from saas_platform.app.tenancy.gate import StatusGate
from saas_platform.app.tenancy.pipeline import TenantPipeline
from saas_platform.app.tenancy.router import (
    ConnectionRouter,
    EngineFactory,
    TenantConnectionPool,
)
from saas_platform.app.utils.metrics import PrometheusTenancyMetrics

logger = logging.getLogger(__name__)


def build_cache(settings: Settings) -> TenantCache | None:
    """Directory cache backend: Redis when configured, else in-process."""
    if not settings.tenant_cache_enabled:
        return None
    if settings.redis_url:
        return RedisTenantCache(redis.from_url(settings.redis_url), prefix=settings.tenant_cache_prefix)
    return InMemoryTenantCache()


def create_app(
    settings: Settings | None = None,
    *,
    central_engine: AsyncEngine | None = None,
    registry: TenantRegistry | None = None,
    cache: TenantCache | None = None,
    engine_factory: EngineFactory = create_tenant_engine,
    provisioner: DatabaseProvisioner | None = None,
) -> FastAPI:
    """Build the application and its tenancy components.

    Args:
        settings: Settings (defaults to environment)
        central_engine: Central database engine
        registry: Tenant registry (defaults to SQL on the central database)
        cache: Directory cache (defaults per `build_cache`)
        engine_factory: Factory for per-tenant engines
        provisioner: Tenant database provisioner

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    central_engine = central_engine or create_async_engine_from_settings(settings)
    session_factory = create_session_factory(central_engine)
    registry = registry or SqlTenantRegistry(session_factory)
    if cache is None:
        cache = build_cache(settings)

    metrics = PrometheusTenancyMetrics()
    directory = TenantDirectory(
        registry,
        cache,
        ttl_seconds=settings.tenant_cache_ttl_seconds,
        negative_ttl_seconds=settings.tenant_cache_negative_ttl_seconds,
        metrics=metrics,
    )
    pool = TenantConnectionPool(engine_factory=engine_factory, metrics=metrics)
    router = ConnectionRouter(central_engine, settings, pool=pool, metrics=metrics)
    pipeline = TenantPipeline(
        settings,
        CentralRouteMatcher(settings.central_routes),
        directory,
        StatusGate(block_trial=settings.block_trial_tenants),
        router,
        metrics=metrics,
    )
    tenant_service = TenantService(
        registry,
        directory,
        settings,
        provisioner=provisioner
        or SqlDatabaseProvisioner(central_engine, settings, engine_factory=engine_factory),
        pool=pool,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await pool.dispose_all()
        await central_engine.dispose()
        logger.info("Tenant engines and central engine disposed")

    app = FastAPI(title="SaaS Platform API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.central_engine = central_engine
    app.state.session_factory = session_factory
    app.state.pipeline = pipeline
    app.state.tenant_pool = pool
    app.state.tenant_service = tenant_service

    app.add_middleware(TenantMiddleware, pipeline=pipeline, tenant_header=settings.tenant_header)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(central_router)
    app.include_router(workspace_router)

    return app


app = create_app()
