from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from ..core.auth import get_current_user
from ..core.database import get_session
from ..models.profile import Profile
from ..services import photos as photos_svc

router = APIRouter(prefix="/photos", tags=["Photos"])


@router.delete("/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_photo(
    photo_id: UUID,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    photo, _item, report = photos_svc.get_owned_photo(session, current_user.id, photo_id)
    photos_svc.delete_photo(session, photo, report)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
