"""Report lifecycle: create, read, edit, finalize, revert, delete."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete as sa_delete
from sqlmodel import Session, select

from infrastructure import storage
from reportmaker.billing.plans import Entitlements
from reportmaker.core.clock import utcnow
from reportmaker.core.errors import ReportLocked, UpstreamError, ValidationFailed, not_found
from reportmaker.models.enums import ReportStatus
from reportmaker.models.report import Report, ReportItem, ReportItemPhoto
from reportmaker.services import gating

log = logging.getLogger(__name__)

_TEXT_FIELDS = ("report_id", "title", "inspector_name", "details")


def get_owned_report(session: Session, user_id: str, report_id: UUID) -> Report:
    report = session.get(Report, report_id)
    if report is None or report.created_by != user_id:
        raise not_found("Report")
    return report


def ensure_draft(report: Report) -> None:
    if report.status != ReportStatus.draft:
        raise ReportLocked()


def list_reports(session: Session, user_id: str, status: Optional[ReportStatus] = None) -> List[Report]:
    stmt = select(Report).where(Report.created_by == user_id)
    if status is not None:
        stmt = stmt.where(Report.status == status)
    stmt = stmt.order_by(Report.inspection_date.desc(), Report.created_at.desc())
    return list(session.exec(stmt).all())


def list_items(session: Session, report_id: UUID) -> List[ReportItem]:
    stmt = select(ReportItem).where(ReportItem.report_id == report_id).order_by(ReportItem.idx)
    return list(session.exec(stmt).all())


def create_report(session: Session, user_id: str, ent: Entitlements) -> Report:
    """New draft dated today with one blank item.

    Raises PlanLimitExceeded before any write when the plan's report quota is used up.
    """
    gating.require(gating.check_new_report(session, user_id, ent))

    report = Report(created_by=user_id, status=ReportStatus.draft, inspection_date=date.today())
    session.add(report)
    session.flush()
    session.add(ReportItem(report_id=report.id, idx=1))
    session.commit()
    session.refresh(report)
    log.info("event=report.created report=%s user_id=%s", report.id, user_id)
    return report


def _clean(field: str, value: Any) -> Any:
    if field in _TEXT_FIELDS and isinstance(value, str):
        return value if value.strip() else None
    return value


def update_report(session: Session, report: Report, changes: Dict[str, Any]) -> Report:
    ensure_draft(report)
    for field, value in changes.items():
        setattr(report, field, _clean(field, value))
    report.updated_at = utcnow()
    session.add(report)
    session.commit()
    session.refresh(report)
    return report


def finalize_report(session: Session, report: Report) -> Report:
    if report.status == ReportStatus.final:
        return report
    missing = []
    if not (report.report_id or "").strip():
        missing.append("report_id")
    if report.inspection_date is None:
        missing.append("inspection_date")
    if missing:
        raise ValidationFailed(
            "Report ID and inspection date are required before finalizing.",
            details={"missing": missing},
        )
    report.status = ReportStatus.final
    report.updated_at = utcnow()
    session.add(report)
    session.commit()
    session.refresh(report)
    log.info("event=report.finalized report=%s", report.id)
    return report


def revert_report(session: Session, report: Report) -> Report:
    if report.status == ReportStatus.draft:
        return report
    report.status = ReportStatus.draft
    report.updated_at = utcnow()
    session.add(report)
    session.commit()
    session.refresh(report)
    log.info("event=report.reverted report=%s", report.id)
    return report


def touch(session: Session, report: Report) -> None:
    """Bump updated_at after a child row changed; caller commits."""
    report.updated_at = utcnow()
    session.add(report)


def photo_paths_for_items(session: Session, item_ids: Sequence[UUID]) -> List[str]:
    if not item_ids:
        return []
    stmt = select(ReportItemPhoto.storage_path).where(ReportItemPhoto.report_item_id.in_(list(item_ids)))
    return [p for p in session.exec(stmt).all() if p]


def delete_items_cascade(session: Session, item_ids: Sequence[UUID]) -> int:
    """Remove blobs, then photo rows, then the items themselves.

    Every step commits on its own. A storage failure raises UpstreamError and
    leaves rows in place; a later step failing leaves earlier steps applied.
    """
    item_ids = list(item_ids)
    if not item_ids:
        return 0
    paths = photo_paths_for_items(session, item_ids)
    try:
        storage.delete_blobs(paths)
    except storage.StorageError as e:
        log.error("event=cascade.blob_delete_failed items=%d paths=%d error=%s", len(item_ids), len(paths), e)
        raise UpstreamError("Could not delete photos from storage") from e

    session.execute(sa_delete(ReportItemPhoto).where(ReportItemPhoto.report_item_id.in_(item_ids)))
    session.commit()
    session.execute(sa_delete(ReportItem).where(ReportItem.id.in_(item_ids)))
    session.commit()
    return len(paths)


def delete_report(session: Session, report: Report) -> None:
    """Cascade delete. Final reports may be deleted too."""
    item_ids = list(session.exec(select(ReportItem.id).where(ReportItem.report_id == report.id)).all())
    removed = delete_items_cascade(session, item_ids)
    session.execute(sa_delete(Report).where(Report.id == report.id))
    session.commit()
    log.info("event=report.deleted report=%s items=%d photos=%d", report.id, len(item_ids), removed)


__all__ = [
    "get_owned_report",
    "ensure_draft",
    "list_reports",
    "list_items",
    "create_report",
    "update_report",
    "finalize_report",
    "revert_report",
    "touch",
    "photo_paths_for_items",
    "delete_items_cascade",
    "delete_report",
]
