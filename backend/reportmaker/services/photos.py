"""Item photos: upload, list, delete."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from io import BytesIO
from pathlib import PurePath
from typing import List, Optional, Tuple
from uuid import UUID

from PIL import Image, ImageOps, UnidentifiedImageError
from sqlmodel import Session, select

from infrastructure import storage
from reportmaker.billing.plans import Entitlements
from reportmaker.core.config import settings
from reportmaker.core.errors import UpstreamError, ValidationFailed, not_found
from reportmaker.models.report import PhotoPublic, Report, ReportItem, ReportItemPhoto
from reportmaker.services import gating
from reportmaker.services import reports as reports_svc

log = logging.getLogger(__name__)

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]")

# Largest source image decoded; the header is checked before any pixel data is read
MAX_SOURCE_PIXELS = 40_000_000


@dataclass(frozen=True)
class PreparedImage:
    data: bytes
    content_type: str
    filename: str


def _safe_filename(name: Optional[str], ext: str) -> str:
    stem = PurePath(name or "photo").stem or "photo"
    stem = _UNSAFE_NAME.sub("", stem.replace(" ", "_")) or "photo"
    return f"{stem[:80]}.{ext}"


def prepare_image(raw: bytes, filename: Optional[str], max_size: Optional[int] = None) -> PreparedImage:
    """Decode, orient, downscale to ``max_size`` on the longest side and re-encode.

    PNG input stays PNG; everything else becomes JPEG.
    """
    max_size = max_size or settings.PHOTO_MAX_DIMENSION
    if not raw:
        raise ValidationFailed("Empty upload")
    try:
        img = Image.open(BytesIO(raw))
        w, h = img.size
        if w * h > MAX_SOURCE_PIXELS:
            raise ValidationFailed(f"Image is too large ({w}x{h}); the limit is {MAX_SOURCE_PIXELS} pixels")
        img.load()
    except Image.DecompressionBombError as e:
        raise ValidationFailed("Image is too large to process") from e
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationFailed("Upload is not a supported image") from e

    keep_png = (img.format or "").upper() == "PNG"
    img = ImageOps.exif_transpose(img)
    w, h = img.size
    if max(w, h) > max_size:
        ratio = max_size / max(w, h)
        img = img.resize((max(1, int(w * ratio)), max(1, int(h * ratio))), Image.LANCZOS)

    buf = BytesIO()
    if keep_png:
        img.save(buf, format="PNG", optimize=True)
        return PreparedImage(buf.getvalue(), "image/png", _safe_filename(filename, "png"))

    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    img.save(buf, format="JPEG", quality=85)
    return PreparedImage(buf.getvalue(), "image/jpeg", _safe_filename(filename, "jpg"))


def build_storage_key(user_id: str, report_id: UUID, item_id: UUID, filename: str, now_ms: Optional[int] = None) -> str:
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{user_id}/{report_id}/{item_id}/{ms}-{filename.replace(' ', '_')}"


def get_owned_photo(session: Session, user_id: str, photo_id: UUID) -> Tuple[ReportItemPhoto, ReportItem, Report]:
    photo = session.get(ReportItemPhoto, photo_id)
    if photo is None:
        raise not_found("Photo")
    item = session.get(ReportItem, photo.report_item_id)
    report = session.get(Report, item.report_id) if item is not None else None
    if item is None or report is None or report.created_by != user_id:
        raise not_found("Photo")
    return photo, item, report


def list_photos(session: Session, item_id: UUID) -> List[ReportItemPhoto]:
    stmt = (
        select(ReportItemPhoto)
        .where(ReportItemPhoto.report_item_id == item_id)
        .order_by(ReportItemPhoto.created_at)
    )
    return list(session.exec(stmt).all())


def signed(photo: ReportItemPhoto, ttl: Optional[int] = None) -> PhotoPublic:
    try:
        url = storage.generate_signed_url(photo.storage_path, expiration=ttl or settings.SIGNED_URL_TTL_SECONDS)
    except storage.StorageError as e:
        raise UpstreamError("Could not sign photo URL") from e
    return PhotoPublic(id=photo.id, report_item_id=photo.report_item_id, storage_path=photo.storage_path, url=url)


def upload_photo(
    session: Session,
    *,
    user_id: str,
    report: Report,
    item: ReportItem,
    ent: Entitlements,
    raw: bytes,
    filename: Optional[str],
) -> ReportItemPhoto:
    reports_svc.ensure_draft(report)
    gating.require(gating.check_new_photo(session, item.id, ent))

    prepared = prepare_image(raw, filename)
    key = build_storage_key(user_id, report.id, item.id, prepared.filename)
    try:
        storage.upload_bytes(key, prepared.data, prepared.content_type)
    except storage.StorageError as e:
        log.error("event=photo.upload_failed item=%s key=%s error=%s", item.id, key, e)
        raise UpstreamError("Photo upload failed") from e

    photo = ReportItemPhoto(report_item_id=item.id, storage_path=key, content_type=prepared.content_type)
    session.add(photo)
    reports_svc.touch(session, report)
    session.commit()
    session.refresh(photo)
    log.info("event=photo.uploaded item=%s bytes=%d", item.id, len(prepared.data))
    return photo


def delete_photo(session: Session, photo: ReportItemPhoto, report: Report) -> None:
    """Blob first, then the row."""
    reports_svc.ensure_draft(report)
    try:
        storage.delete_blobs([photo.storage_path])
    except storage.StorageError as e:
        raise UpstreamError("Could not delete photo from storage") from e
    session.delete(photo)
    reports_svc.touch(session, report)
    session.commit()


__all__ = [
    "PreparedImage",
    "prepare_image",
    "build_storage_key",
    "get_owned_photo",
    "list_photos",
    "signed",
    "upload_photo",
    "delete_photo",
]
