import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlmodel import Session

from ..billing.plans import list_plans
from ..core.auth import get_current_user
from ..core.database import get_session
from ..limits import limiter
from ..models.profile import Profile
from ..services.billing import checkout as checkout_svc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


class CheckoutRequest(BaseModel):
    # Missing and unknown plans both get the 400 from price_for_plan
    plan: Optional[str] = None


class UrlResponse(BaseModel):
    url: str


@router.get("/plans")
def get_plans():
    return {"plans": list_plans()}


@router.post("/checkout", response_model=UrlResponse)
@limiter.limit("10/minute")
async def create_checkout_session(
    request: Request,
    req: CheckoutRequest,
    current_user: Profile = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    # Request must not be Optional; FastAPI special-cases Request only when non-optional.
    url = checkout_svc.create_checkout_url(session, current_user, req.plan, request.headers.get("origin"))
    return UrlResponse(url=url)


@router.post("/portal", response_model=UrlResponse)
@limiter.limit("10/minute")
async def create_billing_portal(
    request: Request,
    current_user: Profile = Depends(get_current_user),
):
    url = checkout_svc.create_portal_url(current_user, request.headers.get("origin"))
    return UrlResponse(url=url)
