import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ..billing.plans import Entitlements
from ..core.auth import get_current_user, get_entitlements
from ..core.database import get_session
from ..models.enums import ReportStatus
from ..models.profile import Profile
from ..models.report import ItemPublic, Report, ReportDetail, ReportSummary, ReportUpdate
from ..services import export as export_svc
from ..services import items as items_svc
from ..services import reports as reports_svc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


def report_detail(session: Session, report: Report) -> ReportDetail:
    items = reports_svc.list_items(session, report.id)
    return ReportDetail(
        **report.model_dump(),
        items=[ItemPublic.model_validate(i) for i in items],
    )


def _attachment(data: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("", response_model=List[ReportSummary])
def list_reports(
    status_filter: Optional[ReportStatus] = Query(default=None, alias="status"),
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return reports_svc.list_reports(session, current_user.id, status_filter)


@router.post("", response_model=ReportDetail, status_code=status.HTTP_201_CREATED)
def create_report(
    current_user: Profile = Depends(get_current_user),
    ent: Entitlements = Depends(get_entitlements),
    session: Session = Depends(get_session),
):
    report = reports_svc.create_report(session, current_user.id, ent)
    return report_detail(session, report)


@router.get("/{report_id}", response_model=ReportDetail)
def get_report(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    return report_detail(session, report)


@router.patch("/{report_id}", response_model=ReportDetail)
def update_report(
    report_id: UUID,
    body: ReportUpdate,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    report = reports_svc.update_report(session, report, body.model_dump(exclude_unset=True))
    return report_detail(session, report)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_report(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    reports_svc.delete_report(session, report)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{report_id}/finalize", response_model=ReportSummary)
def finalize_report(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    return reports_svc.finalize_report(session, report)


@router.post("/{report_id}/revert", response_model=ReportSummary)
def revert_report(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    return reports_svc.revert_report(session, report)


@router.post("/{report_id}/items", response_model=ItemPublic, status_code=status.HTTP_201_CREATED)
def create_item(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    ent: Entitlements = Depends(get_entitlements),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    return items_svc.create_item(session, report, ent)


@router.get("/{report_id}/export/docx")
def export_docx(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    ent: Entitlements = Depends(get_entitlements),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    data = export_svc.export_docx(session, report, ent)
    return _attachment(data, export_svc.DOCX_MEDIA_TYPE, export_svc.export_filename(report, "docx"))


@router.get("/{report_id}/export/pdf")
def export_pdf(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    ent: Entitlements = Depends(get_entitlements),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    data = export_svc.export_pdf(session, report, ent)
    return _attachment(data, "application/pdf", export_svc.export_filename(report, "pdf"))


@router.get("/{report_id}/print")
def print_report(
    report_id: UUID,
    current_user: Profile = Depends(get_current_user),
    ent: Entitlements = Depends(get_entitlements),
    session: Session = Depends(get_session),
):
    report = reports_svc.get_owned_report(session, current_user.id, report_id)
    return JSONResponse(export_svc.print_snapshot(session, report, ent))
