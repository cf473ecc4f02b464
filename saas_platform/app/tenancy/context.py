"""Request-scoped tenant context.

The active binding lives in a ContextVar, so each asyncio task (and each
thread running a copied context) sees only its own tenant. Nothing here is
process-global mutable state.
"""

from contextvars import ContextVar, Token
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncEngine

from saas_platform.app.models.tenant import Tenant


class RouterState(str, Enum):
    """Connection router lifecycle for a single request."""

    default = "default"
    routing = "routing"
    tenant_bound = "tenant_bound"
    restoring = "restoring"


@dataclass
class TenantBinding:
    """Resolved tenant plus the engine its data operations must use."""

    tenant: Tenant
    engine: AsyncEngine
    database_url: str
    state: RouterState = RouterState.routing
    advisory: str | None = None


_current_binding: ContextVar[TenantBinding | None] = ContextVar(
    "tenant_binding", default=None
)


def current_binding() -> TenantBinding | None:
    """Binding for the current request, or None when operating on central."""
    return _current_binding.get()


def current_tenant() -> Tenant | None:
    binding = _current_binding.get()
    return binding.tenant if binding is not None else None


def require_binding() -> TenantBinding:
    """Return the current binding, raising if the request is not tenant-bound."""
    binding = _current_binding.get()
    if binding is None:
        raise RuntimeError("No tenant bound to the current request")
    return binding


def push_binding(binding: TenantBinding) -> Token[TenantBinding | None]:
    """Attach a binding to the current context. Pair with `pop_binding`."""
    return _current_binding.set(binding)


def pop_binding(token: Token[TenantBinding | None]) -> None:
    """Restore the context to what it was before `push_binding`."""
    _current_binding.reset(token)
