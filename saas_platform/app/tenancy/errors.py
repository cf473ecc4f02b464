"""Tenancy error taxonomy.

Every error here short-circuits the request before the downstream handler
runs. Each carries the HTTP status and machine-readable code it maps to.
"""

from typing import Any


class TenancyError(Exception):
    """Base class for tenant resolution and routing failures."""

    status_code: int = 500
    error: str = "tenancy_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict[str, Any]:
        """JSON error envelope returned to the client."""
        return {"error": self.error, "message": self.message}


class TenantNotFound(TenancyError):
    """No tenant matches the resolved domain key."""

    status_code = 404
    error = "tenant_not_found"

    def __init__(self, key: str) -> None:
        super().__init__("The requested tenant domain could not be found.")
        self.key = key


class TenantNotActive(TenancyError):
    """Tenant exists but its status does not allow access."""

    status_code = 403
    error = "tenant_not_active"

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason

    def to_body(self) -> dict[str, Any]:
        body = super().to_body()
        body["reason"] = self.reason
        return body


class RegistryUnavailable(TenancyError):
    """Central registry could not be queried. Retryable by the client."""

    status_code = 503
    error = "registry_unavailable"

    def __init__(self, message: str = "The tenant registry is temporarily unavailable.") -> None:
        super().__init__(message)


class ConnectionSwitchFailure(TenancyError):
    """Tenant database could not be reached; the request fails closed."""

    status_code = 500
    error = "tenant_connection_failed"

    def __init__(self, tenant_id: str, message: str = "The tenant database is unavailable.") -> None:
        super().__init__(message)
        self.tenant_id = tenant_id
