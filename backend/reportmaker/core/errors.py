"""Domain exceptions raised by the service layer.

Routers let these propagate; ``reportmaker.exceptions`` renders them through
``error_payload`` with the status code each class declares.
"""
from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from reportmaker.services.gating import GateDecision


class ReportMakerError(Exception):
    code: str = "error"
    status_code: int = 400

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def extra(self) -> dict[str, Any]:
        """Additional top-level keys merged into the rendered ``error`` object."""
        return {}


class NotFoundError(ReportMakerError):
    code = "not_found"
    status_code = 404


class ValidationFailed(ReportMakerError):
    code = "validation_error"
    status_code = 422


class ReportLocked(ReportMakerError):
    code = "report_locked"
    status_code = 409

    def __init__(self, message: str = "Final reports are read-only. Revert to draft to edit.", **kw: Any) -> None:
        super().__init__(message, **kw)


class PlanLimitExceeded(ReportMakerError):
    code = "PLAN_LIMIT_REACHED"
    status_code = 403

    def __init__(self, decision: "GateDecision", message: Optional[str] = None) -> None:
        self.decision = decision
        super().__init__(
            message or f"Your {decision.plan} plan allows {decision.limit}. Upgrade to continue.",
            details=decision.as_dict(),
        )

    def extra(self) -> dict[str, Any]:
        return {"upgrade_required": True}


class UpstreamError(ReportMakerError):
    code = "upstream_error"
    status_code = 502


def not_found(kind: str) -> NotFoundError:
    # Same message whether the row is missing or owned by someone else
    return NotFoundError(f"{kind} not found")


__all__ = [
    "ReportMakerError",
    "NotFoundError",
    "ValidationFailed",
    "ReportLocked",
    "PlanLimitExceeded",
    "UpstreamError",
    "not_found",
]
