from fastapi import APIRouter, Depends

from ..billing.plans import Entitlements
from ..core.auth import get_current_user, get_entitlements
from ..models.profile import EntitlementsPublic, Profile, ProfilePublic

router = APIRouter(tags=["Profile"])


@router.get("/me", response_model=ProfilePublic)
def read_me(
    current_user: Profile = Depends(get_current_user),
    ent: Entitlements = Depends(get_entitlements),
):
    """The caller's profile plus the entitlements in force for this request."""
    data = current_user.model_dump(exclude={"created_at", "updated_at"})
    return ProfilePublic(**data, entitlements=EntitlementsPublic(**ent.as_dict()))
