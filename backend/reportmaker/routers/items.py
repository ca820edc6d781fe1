import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from sqlmodel import Session

from ..billing.plans import Entitlements
from ..core.auth import get_current_user, get_entitlements
from ..core.database import get_session
from ..core.errors import ValidationFailed
from ..models.profile import Profile
from ..models.report import ItemPublic, ItemUpdate, PhotoPublic
from ..services import items as items_svc
from ..services import photos as photos_svc
from ..services import reports as reports_svc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/items", tags=["Items"])

MAX_UPLOAD_BYTES = 15 * 1024 * 1024


@router.patch("/{item_id}", response_model=ItemPublic)
def update_item(
    item_id: UUID,
    body: ItemUpdate,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    item, report = items_svc.get_owned_item(session, current_user.id, item_id)
    return items_svc.update_item(session, item, report, body.model_dump(exclude_unset=True))


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    item_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    item, report = items_svc.get_owned_item(session, current_user.id, item_id)
    items_svc.delete_item(session, item, report)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{item_id}/move-up", response_model=List[ItemPublic])
def move_item_up(
    item_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Returns the report's items in their new order."""
    item, report = items_svc.get_owned_item(session, current_user.id, item_id)
    items_svc.move_up(session, item, report)
    return reports_svc.list_items(session, report.id)


@router.post("/{item_id}/move-down", response_model=List[ItemPublic])
def move_item_down(
    item_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    item, report = items_svc.get_owned_item(session, current_user.id, item_id)
    items_svc.move_down(session, item, report)
    return reports_svc.list_items(session, report.id)


@router.get("/{item_id}/photos", response_model=List[PhotoPublic])
def list_item_photos(
    item_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    item, _report = items_svc.get_owned_item(session, current_user.id, item_id)
    return [photos_svc.signed(p) for p in photos_svc.list_photos(session, item.id)]


@router.post("/{item_id}/photos", response_model=PhotoPublic, status_code=status.HTTP_201_CREATED)
async def upload_item_photo(
    item_id: UUID,
    file: UploadFile = File(...),
    current_user: Profile = Depends(get_current_user),
    ent: Entitlements = Depends(get_entitlements),
    session: Session = Depends(get_session),
):
    item, report = items_svc.get_owned_item(session, current_user.id, item_id)
    raw = await file.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise ValidationFailed("Photo is too large", details={"max_bytes": MAX_UPLOAD_BYTES})
    photo = photos_svc.upload_photo(
        session,
        user_id=current_user.id,
        report=report,
        item=item,
        ent=ent,
        raw=raw,
        filename=file.filename,
    )
    return photos_svc.signed(photo)
