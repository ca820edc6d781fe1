"""Report exports: DOCX (python-docx), PDF (reportlab) and a print snapshot.

All photos are fetched and decoded up front. If any one fails the export is
aborted with UpstreamError; a document is never produced with gaps in it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional
from uuid import UUID
from xml.sax.saxutils import escape

import httpx
from docx import Document
from docx.shared import Inches, Pt
from PIL import Image, UnidentifiedImageError
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image as RLImage
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlmodel import Session

from infrastructure import storage
from reportmaker.billing.plans import Entitlements
from reportmaker.core.config import settings
from reportmaker.core.errors import UpstreamError
from reportmaker.models.enums import ItemResult
from reportmaker.models.report import Report, ReportItem, ReportItemPhoto
from reportmaker.services import gating
from reportmaker.services import photos as photos_svc
from reportmaker.services import reports as reports_svc

log = logging.getLogger(__name__)

FOOTER_TEXT = "Created with Inspection Report Maker"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# 360x240 px at 96 dpi
DOCX_PHOTO_WIDTH = Inches(3.75)
DOCX_PHOTO_HEIGHT = Inches(2.5)

RESULT_COLOURS = {
    ItemResult.pass_: colors.HexColor("#16a34a"),
    ItemResult.fail: colors.HexColor("#dc2626"),
    ItemResult.na: colors.HexColor("#6b7280"),
}


@dataclass
class ItemSnapshot:
    item: ReportItem
    photos: List[ReportItemPhoto] = field(default_factory=list)


@dataclass
class ReportSnapshot:
    report: Report
    items: List[ItemSnapshot] = field(default_factory=list)

    @property
    def all_photos(self) -> List[ReportItemPhoto]:
        return [p for it in self.items for p in it.photos]


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    width: int
    height: int


def build_snapshot(session: Session, report: Report) -> ReportSnapshot:
    items = reports_svc.list_items(session, report.id)
    return ReportSnapshot(
        report=report,
        items=[ItemSnapshot(item=it, photos=photos_svc.list_photos(session, it.id)) for it in items],
    )


def export_filename(report: Report, ext: str) -> str:
    label = (report.report_id or "").strip() or "report"
    status = getattr(report.status, "value", report.status)
    return f"{label}-{status}.{ext}"


def _decode(photo: ReportItemPhoto, data: bytes) -> FetchedImage:
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            width, height = img.size
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError) as e:
        raise UpstreamError(f"Photo {photo.id} could not be decoded") from e
    return FetchedImage(data=data, width=width, height=height)


def fetch_images(snapshot: ReportSnapshot) -> Dict[UUID, FetchedImage]:
    """Fetch and decode every photo in the snapshot, in order."""
    photos = snapshot.all_photos
    images: Dict[UUID, FetchedImage] = {}
    if not photos:
        return images
    with httpx.Client(timeout=15.0, follow_redirects=True) as client:
        for photo in photos:
            try:
                data = storage.fetch_via_signed_url(photo.storage_path, client=client)
            except storage.StorageError as e:
                log.warning("event=export.photo_fetch_failed report=%s photo=%s", snapshot.report.id, photo.id)
                raise UpstreamError("Could not load every photo for this report. Please try again.") from e
            images[photo.id] = _decode(photo, data)
    return images


def _fmt_date(report: Report) -> str:
    return report.inspection_date.isoformat() if report.inspection_date else ""


def render_docx(snapshot: ReportSnapshot, images: Dict[UUID, FetchedImage], ent: Entitlements) -> bytes:
    report = snapshot.report
    doc = Document()

    heading = doc.add_paragraph()
    run = heading.add_run("Inspection Report")
    run.bold = True
    run.font.size = Pt(14)
    doc.add_paragraph("")
    doc.add_paragraph(f"Report ID: {report.report_id or ''}")
    doc.add_paragraph(f"Title: {report.title or ''}")
    doc.add_paragraph(f"Name: {report.inspector_name or ''}")
    doc.add_paragraph(f"Inspection Date: {_fmt_date(report)}")
    if report.details:
        doc.add_paragraph(f"Details: {report.details}")
    doc.add_paragraph("")

    for entry in snapshot.items:
        it = entry.item
        doc.add_paragraph().add_run(f"{it.idx}. {it.title or ''}").bold = True
        doc.add_paragraph(f"Result: {ItemResult(it.result).label}")
        if it.notes:
            doc.add_paragraph(f"Notes: {it.notes}")
        for photo in entry.photos:
            img = images[photo.id]
            doc.add_paragraph().add_run().add_picture(
                BytesIO(img.data), width=DOCX_PHOTO_WIDTH, height=DOCX_PHOTO_HEIGHT
            )
        doc.add_paragraph("")

    if ent.branded_footer:
        doc.sections[0].footer.paragraphs[0].text = FOOTER_TEXT

    buffer = BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _scaled(img: FetchedImage, max_w: float, max_h: float) -> RLImage:
    ratio = min(max_w / img.width, max_h / img.height)
    return RLImage(BytesIO(img.data), width=img.width * ratio, height=img.height * ratio)


def render_pdf(snapshot: ReportSnapshot, images: Dict[UUID, FetchedImage], ent: Entitlements) -> bytes:
    report = snapshot.report
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=1 * inch,
        leftMargin=1 * inch,
        topMargin=1 * inch,
        bottomMargin=1 * inch,
        title=report.title or "Inspection Report",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=18,
        spaceAfter=10,
        fontName="Helvetica-Bold",
    )
    item_title_style = ParagraphStyle(
        "ItemTitle", parent=styles["Heading3"], fontSize=12, spaceBefore=12, spaceAfter=4,
    )
    body_style = ParagraphStyle("Body", parent=styles["Normal"], fontSize=10, leading=14)

    elements: List[Any] = [Paragraph("Inspection Report", title_style)]

    info_data = [
        ["Report ID:", report.report_id or ""],
        ["Title:", report.title or ""],
        ["Name:", report.inspector_name or ""],
        ["Inspection Date:", _fmt_date(report)],
    ]
    info_table = Table(
        [[k, Paragraph(escape(v), body_style)] for k, v in info_data],
        colWidths=[1.5 * inch, 5.0 * inch],
    )
    info_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ("LINEBELOW", (0, -1), (-1, -1), 1, colors.HexColor("#e0e0e0")),
    ]))
    elements.append(info_table)
    if report.details:
        elements.append(Spacer(1, 8))
        elements.append(Paragraph(escape(report.details).replace("\n", "<br/>"), body_style))
    elements.append(Spacer(1, 12))

    col_w = 3.25 * inch
    for entry in snapshot.items:
        it = entry.item
        result = ItemResult(it.result)
        elements.append(Paragraph(escape(f"{it.idx}. {it.title or ''}"), item_title_style))
        result_style = ParagraphStyle(
            f"Result{it.idx}", parent=body_style, fontName="Helvetica-Bold", textColor=RESULT_COLOURS[result],
        )
        elements.append(Paragraph(f"Result: {result.label}", result_style))
        if it.notes:
            elements.append(Paragraph(escape(f"Notes: {it.notes}").replace("\n", "<br/>"), body_style))

        cells = [_scaled(images[p.id], col_w - 0.15 * inch, 2.2 * inch) for p in entry.photos]
        if cells:
            rows = [cells[i:i + 2] for i in range(0, len(cells), 2)]
            if len(rows[-1]) == 1:
                rows[-1].append("")
            grid = Table(rows, colWidths=[col_w, col_w])
            grid.setStyle(TableStyle([
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]))
            elements.append(Spacer(1, 4))
            elements.append(grid)

    def _footer(canvas, doc_):
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.HexColor("#888888"))
        canvas.drawCentredString(letter[0] / 2, 0.5 * inch, FOOTER_TEXT)
        canvas.restoreState()

    if ent.branded_footer:
        doc.build(elements, onFirstPage=_footer, onLaterPages=_footer)
    else:
        doc.build(elements)
    return buffer.getvalue()


def export_docx(session: Session, report: Report, ent: Entitlements) -> bytes:
    gating.require(gating.check_docx_export(ent))
    snapshot = build_snapshot(session, report)
    images = fetch_images(snapshot)
    data = render_docx(snapshot, images, ent)
    log.info("event=export.docx report=%s items=%d photos=%d", report.id, len(snapshot.items), len(images))
    return data


def export_pdf(session: Session, report: Report, ent: Entitlements) -> bytes:
    snapshot = build_snapshot(session, report)
    images = fetch_images(snapshot)
    data = render_pdf(snapshot, images, ent)
    log.info("event=export.pdf report=%s items=%d photos=%d", report.id, len(snapshot.items), len(images))
    return data


def print_snapshot(session: Session, report: Report, ent: Entitlements, ttl: Optional[int] = None) -> Dict[str, Any]:
    """JSON view of the report for client-side printing, with signed photo URLs."""
    snapshot = build_snapshot(session, report)
    ttl = ttl or settings.SIGNED_URL_TTL_SECONDS
    return {
        "report": {
            "id": str(report.id),
            "status": getattr(report.status, "value", report.status),
            "report_id": report.report_id,
            "title": report.title,
            "inspector_name": report.inspector_name,
            "inspection_date": _fmt_date(report) or None,
            "details": report.details,
        },
        "items": [
            {
                "id": str(entry.item.id),
                "idx": entry.item.idx,
                "title": entry.item.title,
                "result": ItemResult(entry.item.result).value,
                "result_label": ItemResult(entry.item.result).label,
                "notes": entry.item.notes,
                "photos": [
                    photos_svc.signed(p, ttl=ttl).model_dump(mode="json") for p in entry.photos
                ],
            }
            for entry in snapshot.items
        ],
        "footer": FOOTER_TEXT if ent.branded_footer else None,
    }


__all__ = [
    "FOOTER_TEXT",
    "DOCX_MEDIA_TYPE",
    "ItemSnapshot",
    "ReportSnapshot",
    "FetchedImage",
    "build_snapshot",
    "export_filename",
    "fetch_images",
    "render_docx",
    "render_pdf",
    "export_docx",
    "export_pdf",
    "print_snapshot",
]
