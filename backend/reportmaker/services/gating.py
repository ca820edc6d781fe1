"""Plan limit checks.

Each check returns a ``GateDecision`` and never writes. Callers that want to
enforce it pass the decision to ``require``, which raises ``PlanLimitExceeded``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from reportmaker.billing.plans import Entitlements
from reportmaker.core.errors import PlanLimitExceeded
from reportmaker.models.report import Report, ReportItem, ReportItemPhoto

LIMIT_CODE = "PLAN_LIMIT_REACHED"


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    code: Optional[str]
    limit: Optional[int]
    used: Optional[int]
    plan: str
    resource: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _decide(resource: str, used: int, limit: int, ent: Entitlements) -> GateDecision:
    allowed = used < limit
    return GateDecision(
        allowed=allowed,
        code=None if allowed else LIMIT_CODE,
        limit=limit,
        used=used,
        plan=ent.key,
        resource=resource,
    )


def count_reports(session: Session, user_id: str) -> int:
    # Drafts and finals both count
    stmt = select(func.count()).select_from(Report).where(Report.created_by == user_id)
    return int(session.exec(stmt).one())


def count_items(session: Session, report_id: UUID) -> int:
    stmt = select(func.count()).select_from(ReportItem).where(ReportItem.report_id == report_id)
    return int(session.exec(stmt).one())


def count_photos(session: Session, item_id: UUID) -> int:
    stmt = select(func.count()).select_from(ReportItemPhoto).where(ReportItemPhoto.report_item_id == item_id)
    return int(session.exec(stmt).one())


def check_new_report(session: Session, user_id: str, ent: Entitlements) -> GateDecision:
    return _decide("reports", count_reports(session, user_id), ent.max_reports, ent)


def check_new_item(session: Session, report_id: UUID, ent: Entitlements) -> GateDecision:
    return _decide("items", count_items(session, report_id), ent.max_items, ent)


def check_new_photo(session: Session, item_id: UUID, ent: Entitlements) -> GateDecision:
    return _decide("photos", count_photos(session, item_id), ent.max_photos_per_item, ent)


def check_docx_export(ent: Entitlements) -> GateDecision:
    return GateDecision(
        allowed=ent.can_download_docx,
        code=None if ent.can_download_docx else LIMIT_CODE,
        limit=None,
        used=None,
        plan=ent.key,
        resource="docx_export",
    )


_MESSAGES = {
    "reports": "Report limit reached for your plan. Upgrade to create more reports.",
    "items": "Item limit reached for this report. Upgrade to add more items.",
    "photos": "Photo limit reached for this item. Upgrade to add more photos.",
    "docx_export": "Word export is available on paid plans. Upgrade to download DOCX.",
}


def require(decision: GateDecision) -> GateDecision:
    if not decision.allowed:
        raise PlanLimitExceeded(decision, _MESSAGES.get(decision.resource))
    return decision


__all__ = [
    "LIMIT_CODE",
    "GateDecision",
    "count_reports",
    "count_items",
    "count_photos",
    "check_new_report",
    "check_new_item",
    "check_new_photo",
    "check_docx_export",
    "require",
]
