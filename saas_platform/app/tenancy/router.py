"""Connection router - binds a request to its tenant database.

Lifecycle of one request:

    default -> routing -> tenant_bound -> restoring -> default

`ConnectionRouter.bind` is an async context manager. Leaving it by any path
(normal return, handler error, cancellation) runs the restore step, which
detaches the binding from the request context and never raises.

Engines are pooled per tenant id, so concurrent requests for different
tenants never share a connection pool, and requests for the same tenant
reuse one.
"""

import logging
import threading
import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from sqlalchemy import URL, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from saas_platform.app.config import Settings
from saas_platform.app.db.engine import build_tenant_url, create_tenant_engine
from saas_platform.app.models.tenant import Tenant
from saas_platform.app.tenancy.context import (
    RouterState,
    TenantBinding,
    current_binding,
    pop_binding,
    push_binding,
)
from saas_platform.app.tenancy.errors import ConnectionSwitchFailure
from saas_platform.app.utils.logging import StructuredTenancyLogger
from saas_platform.app.utils.metrics import PrometheusTenancyMetrics

logger = logging.getLogger(__name__)

EngineFactory = Callable[[URL], AsyncEngine]

# Failures that mean "the tenant database cannot be used"
_CONNECT_ERRORS = (SQLAlchemyError, OSError, ImportError, TimeoutError)


class TenantConnectionPool:
    """Async engines keyed by tenant id.

    If a tenant's connection descriptor changes (host, port or database
    moved), the old engine is disposed before the new one is handed out.
    """

    def __init__(
        self,
        engine_factory: EngineFactory = create_tenant_engine,
        metrics: PrometheusTenancyMetrics | None = None,
    ) -> None:
        self._engine_factory = engine_factory
        self._metrics = metrics or PrometheusTenancyMetrics()
        self._lock = threading.Lock()
        self._engines: dict[uuid.UUID, tuple[str, AsyncEngine]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)

    def engine_for(self, tenant_id: uuid.UUID) -> AsyncEngine | None:
        """Currently pooled engine for a tenant, if any."""
        with self._lock:
            entry = self._engines.get(tenant_id)
            return entry[1] if entry is not None else None

    async def acquire(self, tenant_id: uuid.UUID, url: URL) -> AsyncEngine:
        """Get the tenant's engine, creating or replacing it as needed."""
        descriptor = url.render_as_string(hide_password=False)
        stale: AsyncEngine | None = None

        with self._lock:
            entry = self._engines.get(tenant_id)
            if entry is not None and entry[0] == descriptor:
                return entry[1]

            if entry is not None:
                stale = entry[1]
            engine = self._engine_factory(url)
            self._engines[tenant_id] = (descriptor, engine)
            size = len(self._engines)

        self._metrics.set_pool_size(size)
        if stale is not None:
            logger.info("Tenant %s database descriptor changed, purging old engine", tenant_id)
            await stale.dispose()
        return engine

    async def purge(self, tenant_id: uuid.UUID) -> None:
        """Dispose and forget the tenant's engine."""
        with self._lock:
            entry = self._engines.pop(tenant_id, None)
            size = len(self._engines)

        self._metrics.set_pool_size(size)
        if entry is not None:
            await entry[1].dispose()

    async def dispose_all(self) -> None:
        """Dispose every pooled engine (application shutdown)."""
        with self._lock:
            engines = [engine for _, engine in self._engines.values()]
            self._engines.clear()

        self._metrics.set_pool_size(0)
        for engine in engines:
            await engine.dispose()


class ConnectionRouter:
    """Routes data access for the current request to the tenant database."""

    def __init__(
        self,
        central_engine: AsyncEngine,
        settings: Settings,
        pool: TenantConnectionPool | None = None,
        metrics: PrometheusTenancyMetrics | None = None,
        tenancy_logger: StructuredTenancyLogger | None = None,
    ) -> None:
        self._central_engine = central_engine
        self._settings = settings
        self._metrics = metrics or PrometheusTenancyMetrics()
        self._pool = pool or TenantConnectionPool(metrics=self._metrics)
        self._log = tenancy_logger or StructuredTenancyLogger()

    @property
    def central_engine(self) -> AsyncEngine:
        return self._central_engine

    @property
    def pool(self) -> TenantConnectionPool:
        return self._pool

    def state(self) -> RouterState:
        """Router state as seen by the current request."""
        binding = current_binding()
        return binding.state if binding is not None else RouterState.default

    def active_engine(self) -> AsyncEngine:
        """Engine data operations should use right now."""
        binding = current_binding()
        return binding.engine if binding is not None else self._central_engine

    @asynccontextmanager
    async def bind(self, tenant: Tenant, advisory: str | None = None) -> AsyncIterator[TenantBinding]:
        """Bind the current request context to the tenant database.

        Args:
            tenant: Tenant accepted by the status gate
            advisory: Optional notice to surface to the client (e.g. trial)

        Yields:
            The active TenantBinding

        Raises:
            ConnectionSwitchFailure: If the tenant database cannot be reached;
                nothing is bound in that case
        """
        self._log.log_transition(tenant, RouterState.default.value, RouterState.routing.value)
        url = build_tenant_url(tenant.database_target(), self._settings)

        try:
            engine = await self._pool.acquire(tenant.id, url)
            if self._settings.tenant_db_verify_on_bind:
                await self._probe(engine)
        except _CONNECT_ERRORS as e:
            logger.error(
                "Tenant %s database unreachable: %s", tenant.id, type(e).__name__
            )
            await self._safe_purge(tenant)
            raise ConnectionSwitchFailure(str(tenant.id)) from e

        binding = TenantBinding(
            tenant=tenant,
            engine=engine,
            database_url=url.render_as_string(hide_password=True),
            state=RouterState.tenant_bound,
            advisory=advisory,
        )
        token = push_binding(binding)
        self._log.log_transition(tenant, RouterState.routing.value, RouterState.tenant_bound.value)
        started = time.perf_counter()

        try:
            yield binding
        finally:
            binding.state = RouterState.restoring
            self._log.log_transition(
                tenant, RouterState.tenant_bound.value, RouterState.restoring.value
            )
            try:
                pop_binding(token)
            except Exception:
                logger.exception("Failed to detach tenant %s from request context", tenant.id)

            if self._settings.tenant_pool_purge_on_release:
                await self._safe_purge(tenant)

            self._metrics.observe_binding(time.perf_counter() - started)
            binding.state = RouterState.default
            self._log.log_transition(tenant, RouterState.restoring.value, RouterState.default.value)

    async def _probe(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def _safe_purge(self, tenant: Tenant) -> None:
        try:
            await self._pool.purge(tenant.id)
        except Exception:
            logger.exception("Failed to purge connection pool for tenant %s", tenant.id)
