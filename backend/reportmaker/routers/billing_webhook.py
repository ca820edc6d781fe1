import json
import logging

import stripe
from fastapi import APIRouter, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from ..core.config import settings
from ..core.database import session_scope
from ..services.billing import reconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing Webhook"])


@router.post("/webhook")
async def stripe_webhook(request: Request):
    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        # Refuse to process webhooks without a secret (prevents spoofing)
        logger.error("event=billing.webhook_unconfigured")
        raise HTTPException(status_code=500, detail="Stripe webhook secret not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    try:
        stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=secret)
        # Reconcile from the verified body as plain dicts
        event = json.loads(payload)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("event=billing.webhook_rejected error=%s", type(e).__name__)
        raise HTTPException(status_code=400, detail=f"Webhook error: {e}")

    try:
        with session_scope() as session:
            result = reconciler.reconcile(session, event)
    except SQLAlchemyError as e:
        # 5xx makes Stripe redeliver
        logger.error("event=billing.webhook_db_error type=%s error=%s", event.get("type"), e, exc_info=True)
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    logger.info(
        "event=billing.webhook_processed type=%s applied=%s user_id=%s",
        event.get("type"), result.applied, result.user_id,
    )
    return {"received": True, "applied": result.applied}
