"""Stripe Checkout and Billing Portal helpers used by the billing router."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import HTTPException
from sqlmodel import Session

from reportmaker.billing.plans import PURCHASABLE
from reportmaker.core.clock import utcnow
from reportmaker.core.config import settings
from reportmaker.models.profile import Profile

logger = logging.getLogger(__name__)


def configure_stripe() -> None:
    """Point the stripe SDK at the configured key or fail with 500."""
    if not settings.STRIPE_SECRET_KEY:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    stripe.api_key = settings.STRIPE_SECRET_KEY


def resolve_base_url(origin: Optional[str]) -> str:
    """Redirect base: the caller's Origin when it is http(s), else APP_BASE_URL."""
    if origin and origin.lower().startswith(("http://", "https://")):
        return origin.rstrip("/")
    return settings.APP_BASE_URL.rstrip("/")


def price_for_plan(plan: str) -> str:
    if plan not in PURCHASABLE:
        raise HTTPException(status_code=400, detail="Invalid plan")
    price_id = {
        "premium": settings.STRIPE_PRICE_PREMIUM,
        "super": settings.STRIPE_PRICE_SUPER,
    }[plan]
    if not price_id:
        logger.error("event=billing.price_missing plan=%s", plan)
        raise HTTPException(status_code=500, detail=f"Price for plan '{plan}' is not configured")
    return price_id


def ensure_customer(profile: Profile, session: Session) -> str:
    """Ensure the profile has a Stripe customer ID, creating one if needed."""
    if profile.stripe_customer_id:
        return profile.stripe_customer_id
    try:
        params: Dict[str, Any] = {"metadata": {"user_id": profile.id}}
        if profile.email:
            params["email"] = profile.email
        cust = stripe.Customer.create(**params)
    except stripe.StripeError as e:
        logger.error(
            "event=billing.customer_create_failed user_id=%s error=%s",
            profile.id, str(e),
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Failed to create Stripe customer: {e}")
    profile.stripe_customer_id = cust.id
    profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    logger.info("event=billing.customer_created user_id=%s customer=%s", profile.id, cust.id)
    return cust.id


def checkout_params(profile: Profile, customer_id: str, plan: str, price_id: str, base_url: str) -> Dict[str, Any]:
    metadata = {"user_id": profile.id, "plan": plan, "price_id": price_id}
    return {
        "mode": "subscription",
        "customer": customer_id,
        "client_reference_id": profile.id,
        "line_items": [{"price": price_id, "quantity": 1}],
        "metadata": metadata,
        "subscription_data": {"metadata": dict(metadata)},
        "allow_promotion_codes": True,
        "success_url": f"{base_url}/account?upgrade=success",
        "cancel_url": f"{base_url}/account?upgrade=cancelled",
    }


def create_checkout_url(session: Session, profile: Profile, plan: str, origin: Optional[str]) -> str:
    plan = (plan or "").strip().lower()
    price_id = price_for_plan(plan)
    configure_stripe()
    customer_id = ensure_customer(profile, session)
    params = checkout_params(profile, customer_id, plan, price_id, resolve_base_url(origin))
    try:
        checkout = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error("event=billing.checkout_failed user_id=%s plan=%s error=%s", profile.id, plan, e)
        raise HTTPException(status_code=500, detail=f"Stripe error: {e}")
    url = getattr(checkout, "url", None)
    if not url:
        raise HTTPException(status_code=502, detail="Stripe did not return a checkout URL")
    logger.info("event=billing.checkout_created user_id=%s plan=%s", profile.id, plan)
    return str(url)


def create_portal_url(profile: Profile, origin: Optional[str]) -> str:
    if not profile.stripe_customer_id:
        raise HTTPException(status_code=400, detail="No billing account yet. Upgrade first.")
    configure_stripe()
    try:
        portal = stripe.billing_portal.Session.create(
            customer=profile.stripe_customer_id,
            return_url=f"{resolve_base_url(origin)}/account",
        )
    except stripe.StripeError as e:
        msg = str(e)
        if "No configuration provided" in msg or "default configuration" in msg:
            raise HTTPException(status_code=503, detail="Stripe Customer Portal is not configured for this account.")
        raise HTTPException(status_code=500, detail=f"Stripe error: {msg}")
    url = getattr(portal, "url", None)
    if not url:
        raise HTTPException(status_code=502, detail="Stripe did not return a portal URL")
    return str(url)


__all__ = [
    "configure_stripe",
    "resolve_base_url",
    "price_for_plan",
    "ensure_customer",
    "checkout_params",
    "create_checkout_url",
    "create_portal_url",
]
