"""Checklist items inside a draft report."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from reportmaker.billing.plans import Entitlements
from reportmaker.core.errors import not_found
from reportmaker.models.report import Report, ReportItem
from reportmaker.services import gating
from reportmaker.services import reports as reports_svc

log = logging.getLogger(__name__)

# Parking spot for an item while its neighbour takes its idx;
# (report_id, idx) is unique so a direct swap would collide.
SENTINEL_BASE = -1_000_000


def sentinel_for(idx: int) -> int:
    return SENTINEL_BASE - abs(idx)


def get_owned_item(session: Session, user_id: str, item_id: UUID) -> Tuple[ReportItem, Report]:
    item = session.get(ReportItem, item_id)
    if item is None:
        raise not_found("Item")
    report = session.get(Report, item.report_id)
    if report is None or report.created_by != user_id:
        raise not_found("Item")
    return item, report


def _last_idx(session: Session, report_id: UUID) -> int:
    stmt = select(func.max(ReportItem.idx)).where(ReportItem.report_id == report_id)
    return int(session.exec(stmt).one() or 0)


def create_item(session: Session, report: Report, ent: Entitlements) -> ReportItem:
    reports_svc.ensure_draft(report)
    gating.require(gating.check_new_item(session, report.id, ent))

    item = ReportItem(report_id=report.id, idx=_last_idx(session, report.id) + 1)
    session.add(item)
    reports_svc.touch(session, report)
    session.commit()
    session.refresh(item)
    return item


def update_item(session: Session, item: ReportItem, report: Report, changes: Dict[str, Any]) -> ReportItem:
    reports_svc.ensure_draft(report)
    for field, value in changes.items():
        if value is None and field == "result":
            continue
        if value is None and field in ("title", "notes"):
            value = ""
        setattr(item, field, value)
    session.add(item)
    reports_svc.touch(session, report)
    session.commit()
    session.refresh(item)
    return item


def delete_item(session: Session, item: ReportItem, report: Report) -> None:
    reports_svc.ensure_draft(report)
    reports_svc.delete_items_cascade(session, [item.id])
    reports_svc.touch(session, report)
    session.commit()
    log.info("event=item.deleted item=%s report=%s", item.id, report.id)


def _neighbour(session: Session, item: ReportItem, direction: int) -> Optional[ReportItem]:
    stmt = select(ReportItem).where(ReportItem.report_id == item.report_id)
    if direction < 0:
        stmt = stmt.where(ReportItem.idx < item.idx).order_by(ReportItem.idx.desc())
    else:
        stmt = stmt.where(ReportItem.idx > item.idx).order_by(ReportItem.idx)
    return session.exec(stmt.limit(1)).first()


def _swap(session: Session, item: ReportItem, other: ReportItem) -> None:
    """Exchange idx values in three committed steps via a sentinel."""
    a, b = item.idx, other.idx

    item.idx = sentinel_for(a)
    session.add(item)
    session.commit()

    other.idx = a
    session.add(other)
    session.commit()

    item.idx = b
    session.add(item)
    session.commit()


def move(session: Session, item: ReportItem, report: Report, direction: int) -> ReportItem:
    """Move ``item`` one place up (direction -1) or down (+1). No-op at either end."""
    reports_svc.ensure_draft(report)
    other = _neighbour(session, item, direction)
    if other is None:
        return item
    _swap(session, item, other)
    log.info("event=item.moved item=%s direction=%s idx=%s", item.id, direction, item.idx)
    return item


def move_up(session: Session, item: ReportItem, report: Report) -> ReportItem:
    return move(session, item, report, -1)


def move_down(session: Session, item: ReportItem, report: Report) -> ReportItem:
    return move(session, item, report, 1)


__all__ = [
    "SENTINEL_BASE",
    "sentinel_for",
    "get_owned_item",
    "create_item",
    "update_item",
    "delete_item",
    "move",
    "move_up",
    "move_down",
]
