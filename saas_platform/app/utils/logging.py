"""Structured logging for tenant routing events."""

import logging
from typing import Any

from saas_platform.app.models.tenant import Tenant

logger = logging.getLogger(__name__)


class StructuredTenancyLogger:
    """Structured logger for tenant resolution and connection routing."""

    def log_resolution(
        self,
        key: str,
        outcome: str,
        tenant: Tenant | None = None,
        reason: str | None = None,
    ) -> None:
        """Log the outcome of resolving a tenant key."""
        log_data: dict[str, Any] = {"key": key, "outcome": outcome}

        if tenant is not None:
            log_data["tenant_id"] = str(tenant.id)
            log_data["status"] = tenant.status.value

        if reason:
            log_data["reason"] = reason

        log_msg = f"Tenant resolution: {key} - {outcome}"

        if outcome in ("bound", "bypass"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_transition(self, tenant: Tenant, from_state: str, to_state: str) -> None:
        """Log a connection router state transition."""
        log_data: dict[str, Any] = {
            "tenant_id": str(tenant.id),
            "database": tenant.database_name,
            "from_state": from_state,
            "to_state": to_state,
        }
        logger.debug(
            f"Connection router: {from_state} -> {to_state}",
            extra={"structured": log_data},
        )
