"""Tenant status gate - decides whether a resolved tenant may be served."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import assert_never

from saas_platform.app.models.tenant import Tenant, TenantStatus

SUSPENDED_MESSAGE = "This tenant has been suspended. Please contact support."
EXPIRED_MESSAGE = "This tenant subscription has expired. Please renew your subscription."
TRIAL_MESSAGE = "This tenant is in trial mode."
NOT_ACTIVE_MESSAGE = "This tenant is not currently active."


class RejectReason(str, Enum):
    """Machine-readable reason a tenant was refused."""

    suspended = "suspended"
    expired = "expired"
    trial = "trial"
    not_active = "not_active"


@dataclass(frozen=True)
class GateDecision:
    """Accept, or reject with a reason. Accepted trial tenants carry an advisory."""

    accepted: bool
    reason: RejectReason | None = None
    message: str | None = None
    advisory: str | None = None

    @classmethod
    def accept(cls, advisory: str | None = None) -> "GateDecision":
        return cls(accepted=True, advisory=advisory)

    @classmethod
    def reject(cls, reason: RejectReason, message: str) -> "GateDecision":
        return cls(accepted=False, reason=reason, message=message)


class StatusGate:
    """Maps tenant status to an access decision.

    Effective expiry (stored status or a past subscription end) is derived
    before the status switch, with suspension taking priority over expiry.
    """

    def __init__(self, block_trial: bool = False) -> None:
        """Initialize gate.

        Args:
            block_trial: Reject trial tenants instead of admitting them
                with an advisory
        """
        self._block_trial = block_trial

    def evaluate(self, tenant: Tenant, now: datetime | None = None) -> GateDecision:
        """Evaluate a tenant snapshot.

        Args:
            tenant: Resolved tenant
            now: Current time (for testing)

        Returns:
            GateDecision
        """
        now = now or datetime.now(timezone.utc)

        if tenant.is_deleted():
            return GateDecision.reject(RejectReason.not_active, NOT_ACTIVE_MESSAGE)

        status = tenant.effective_status(now)
        match status:
            case TenantStatus.active:
                return GateDecision.accept()
            case TenantStatus.trial:
                if self._block_trial:
                    return GateDecision.reject(RejectReason.trial, TRIAL_MESSAGE)
                return GateDecision.accept(advisory=TRIAL_MESSAGE)
            case TenantStatus.suspended:
                return GateDecision.reject(RejectReason.suspended, SUSPENDED_MESSAGE)
            case TenantStatus.expired:
                return GateDecision.reject(RejectReason.expired, EXPIRED_MESSAGE)
            case _:
                assert_never(status)
