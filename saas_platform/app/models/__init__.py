"""Models package - re-exports for convenience."""

from saas_platform.app.models.organization import (
    Organization,
    OrganizationStatus,
    OrganizationType,
)
from saas_platform.app.models.tenant import (
    UNLIMITED,
    DatabaseTarget,
    Tenant,
    TenantPlan,
    TenantStatus,
)

__all__ = [
    # Tenant
    "Tenant",
    "TenantStatus",
    "TenantPlan",
    "DatabaseTarget",
    "UNLIMITED",
    # Organization
    "Organization",
    "OrganizationType",
    "OrganizationStatus",
]
