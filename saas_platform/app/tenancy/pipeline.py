"""Tenant pipeline - resolution, gating and binding around a request handler.

Steps, strictly in order:
1. Central-route bypass (or testing mode): run the handler unbound
2. Derive the tenant key from the request
3. Resolve the key through the tenant directory
4. Run the status gate
5. Bind the tenant database
6. Run the handler
7. Restore the central connection (on every exit path)
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from saas_platform.app.config import Settings
from saas_platform.app.models.tenant import Tenant
from saas_platform.app.tenancy.bypass import CentralRouteMatcher
from saas_platform.app.tenancy.context import TenantBinding
from saas_platform.app.tenancy.directory import TenantDirectory
from saas_platform.app.tenancy.errors import (
    ConnectionSwitchFailure,
    RegistryUnavailable,
    TenantNotActive,
    TenantNotFound,
)
from saas_platform.app.tenancy.gate import GateDecision, StatusGate
from saas_platform.app.tenancy.resolver import resolve_tenant_key
from saas_platform.app.tenancy.router import ConnectionRouter
from saas_platform.app.utils.logging import StructuredTenancyLogger
from saas_platform.app.utils.metrics import PrometheusTenancyMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TenantRequest:
    """The request fields tenant identification looks at."""

    host: str
    path: str
    tenant_header: str | None = None


class TenantPipeline:
    """Runs a handler inside the tenant context of the request."""

    def __init__(
        self,
        settings: Settings,
        matcher: CentralRouteMatcher,
        directory: TenantDirectory,
        gate: StatusGate,
        router: ConnectionRouter,
        metrics: PrometheusTenancyMetrics | None = None,
        tenancy_logger: StructuredTenancyLogger | None = None,
    ) -> None:
        self._settings = settings
        self._matcher = matcher
        self._directory = directory
        self._gate = gate
        self._router = router
        self._metrics = metrics or PrometheusTenancyMetrics()
        self._log = tenancy_logger or StructuredTenancyLogger()

    @property
    def directory(self) -> TenantDirectory:
        return self._directory

    @property
    def router(self) -> ConnectionRouter:
        return self._router

    def should_bypass(self, path: str) -> bool:
        """True when the request runs against the central database unbound."""
        return self._settings.tenancy_bypassed or self._matcher.matches(path)

    def tenant_key(self, request: TenantRequest) -> str:
        return resolve_tenant_key(
            request.host, request.tenant_header, self._settings.identification_method
        )

    async def identify(self, request: TenantRequest) -> tuple[Tenant, GateDecision]:
        """Resolve and gate the tenant for a request.

        Args:
            request: Inbound request fields

        Returns:
            Tuple of (tenant, accepting gate decision)

        Raises:
            TenantNotFound: No tenant matches the derived key
            TenantNotActive: Gate rejected the tenant
            RegistryUnavailable: Directory lookup failed on a cache miss
        """
        key = self.tenant_key(request)

        try:
            tenant = await self._directory.resolve(key)
        except RegistryUnavailable:
            self._metrics.inc_outcome("registry_unavailable")
            self._log.log_resolution(key, "registry_unavailable")
            raise

        if tenant is None:
            self._metrics.inc_outcome("not_found")
            self._log.log_resolution(key, "not_found")
            raise TenantNotFound(key)

        decision = self._gate.evaluate(tenant)
        if not decision.accepted:
            reason = decision.reason.value if decision.reason else "not_active"
            self._metrics.inc_outcome("not_active")
            self._log.log_resolution(key, "not_active", tenant=tenant, reason=reason)
            raise TenantNotActive(reason, decision.message or "")

        return tenant, decision

    async def handle(
        self,
        request: TenantRequest,
        call_next: Callable[[TenantBinding | None], Awaitable[T]],
    ) -> T:
        """Run `call_next` inside the request's tenant context.

        `call_next` receives the active binding, or None on bypassed routes.
        Every TenancyError is raised before `call_next` is invoked.
        """
        if self.should_bypass(request.path):
            self._metrics.inc_outcome("bypass")
            self._log.log_resolution(request.path, "bypass")
            return await call_next(None)

        tenant, decision = await self.identify(request)

        bound = False
        try:
            async with self._router.bind(tenant, advisory=decision.advisory) as binding:
                bound = True
                self._metrics.inc_outcome("bound")
                self._log.log_resolution(self.tenant_key(request), "bound", tenant=tenant)
                return await call_next(binding)
        except ConnectionSwitchFailure:
            if not bound:
                self._metrics.inc_outcome("connection_failure")
                self._log.log_resolution(
                    self.tenant_key(request), "connection_failure", tenant=tenant
                )
            raise
