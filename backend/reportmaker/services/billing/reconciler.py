"""Apply verified Stripe events to the ``profile`` table.

Stripe is the only writer of ``profile.plan``. Every handler is a single
idempotent write, so redelivered events leave the row unchanged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy import or_, update
from sqlmodel import Session, select

from reportmaker.billing.plans import ENTITLED_STATUSES, FREE
from reportmaker.core.clock import utcnow
from reportmaker.core.config import settings
from reportmaker.models.profile import Profile

logger = logging.getLogger(__name__)


class BillingEventKind(str, Enum):
    checkout_completed = "checkout.session.completed"
    subscription_created = "customer.subscription.created"
    subscription_updated = "customer.subscription.updated"
    subscription_deleted = "customer.subscription.deleted"
    unhandled = "unhandled"

    @classmethod
    def from_type(cls, event_type: Optional[str]) -> "BillingEventKind":
        try:
            kind = cls(event_type)
        except ValueError:
            return cls.unhandled
        return kind


@dataclass(frozen=True)
class BillingEvent:
    kind: BillingEventKind
    type: str
    id: Optional[str]
    obj: Mapping[str, Any]


@dataclass(frozen=True)
class ReconcileResult:
    kind: BillingEventKind
    applied: bool
    user_id: Optional[str] = None
    plan: Optional[str] = None
    reason: Optional[str] = None


def parse_event(event: Mapping[str, Any]) -> BillingEvent:
    event_type = str(event.get("type") or "")
    data = event.get("data") or {}
    obj = data.get("object") or {}
    return BillingEvent(
        kind=BillingEventKind.from_type(event_type),
        type=event_type,
        id=event.get("id"),
        obj=obj,
    )


def _metadata_user_id(obj: Mapping[str, Any]) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    user_id = metadata.get("user_id")
    return str(user_id) if user_id else None


def _first_item(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    items = (obj.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _from_epoch(ts: Any) -> Optional[datetime]:
    if ts in (None, ""):
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def plan_for_subscription(price_id: Optional[str], status: Optional[str]) -> str:
    """Plan a subscription entitles its customer to.

    Unknown prices and statuses that no longer entitle (canceled, unpaid,
    incomplete...) both resolve to free.
    """
    if (status or "") not in ENTITLED_STATUSES:
        return FREE
    return settings.price_to_plan.get(price_id or "", FREE)


def _apply_by_customer(
    session: Session,
    customer_id: Optional[str],
    fallback_user_id: Optional[str],
    values: Dict[str, Any],
) -> Optional[str]:
    """Write ``values`` to the profile owning ``customer_id``.

    Falls back to ``fallback_user_id`` (subscription metadata) when no row
    carries the customer yet. Returns the user id written, or None.

    The customer write is one conditional ``UPDATE`` that only matches when a
    value differs, so a replayed event leaves the row untouched, ``updated_at``
    included.
    """
    if customer_id:
        differs = or_(*(getattr(Profile, key).is_distinct_from(value) for key, value in values.items()))
        session.execute(
            update(Profile)
            .where(Profile.stripe_customer_id == customer_id, differs)
            .values(**values, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        session.commit()
        user_id = session.exec(select(Profile.id).where(Profile.stripe_customer_id == customer_id)).first()
        if user_id is not None:
            return user_id

    if not fallback_user_id:
        return None

    profile = session.get(Profile, fallback_user_id)
    if profile is None:
        profile = Profile(id=fallback_user_id, stripe_customer_id=customer_id, **values)
    else:
        for key, value in values.items():
            setattr(profile, key, value)
        if customer_id:
            profile.stripe_customer_id = customer_id
        profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    return fallback_user_id


def handle_checkout_completed(session: Session, event: BillingEvent) -> ReconcileResult:
    obj = event.obj
    customer_id = obj.get("customer")
    subscription_id = obj.get("subscription")
    user_id = obj.get("client_reference_id") or _metadata_user_id(obj)
    if not user_id or not customer_id:
        logger.warning(
            "event=billing.checkout_unlinked event_id=%s customer=%s has_user=%s",
            event.id, customer_id, bool(user_id),
        )
        return ReconcileResult(event.kind, applied=False, reason="missing_user_or_customer")

    user_id = str(user_id)
    profile = session.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id)
    profile.stripe_customer_id = customer_id
    if subscription_id:
        profile.stripe_subscription_id = subscription_id
    profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    logger.info("event=billing.checkout_linked user_id=%s customer=%s", user_id, customer_id)
    return ReconcileResult(event.kind, applied=True, user_id=user_id)


def handle_subscription_upsert(session: Session, event: BillingEvent) -> ReconcileResult:
    obj = event.obj
    item = _first_item(obj)
    price_id = (item.get("price") or {}).get("id")
    status = obj.get("status")
    plan = plan_for_subscription(price_id, status)
    period_end = _from_epoch(obj.get("current_period_end") or item.get("current_period_end"))

    values = {
        "plan": plan,
        "stripe_subscription_id": obj.get("id"),
        "subscription_status": status,
        "current_period_end": period_end,
    }
    user_id = _apply_by_customer(session, obj.get("customer"), _metadata_user_id(obj), values)
    if user_id is None:
        logger.warning(
            "event=billing.subscription_unmatched event_id=%s customer=%s sub=%s",
            event.id, obj.get("customer"), obj.get("id"),
        )
        return ReconcileResult(event.kind, applied=False, plan=plan, reason="no_matching_profile")

    logger.info(
        "event=billing.subscription_synced user_id=%s plan=%s status=%s price=%s",
        user_id, plan, status, price_id,
    )
    return ReconcileResult(event.kind, applied=True, user_id=user_id, plan=plan)


def handle_subscription_deleted(session: Session, event: BillingEvent) -> ReconcileResult:
    obj = event.obj
    values = {
        "plan": FREE,
        "stripe_subscription_id": None,
        "subscription_status": "canceled",
    }
    user_id = _apply_by_customer(session, obj.get("customer"), _metadata_user_id(obj), values)
    if user_id is None:
        logger.warning("event=billing.cancel_unmatched event_id=%s customer=%s", event.id, obj.get("customer"))
        return ReconcileResult(event.kind, applied=False, plan=FREE, reason="no_matching_profile")
    logger.info("event=billing.subscription_canceled user_id=%s", user_id)
    return ReconcileResult(event.kind, applied=True, user_id=user_id, plan=FREE)


def handle_unhandled(session: Session, event: BillingEvent) -> ReconcileResult:
    logger.debug("event=billing.ignored type=%s event_id=%s", event.type, event.id)
    return ReconcileResult(event.kind, applied=False, reason="unhandled")


HANDLERS: Dict[BillingEventKind, Callable[[Session, BillingEvent], ReconcileResult]] = {
    BillingEventKind.checkout_completed: handle_checkout_completed,
    BillingEventKind.subscription_created: handle_subscription_upsert,
    BillingEventKind.subscription_updated: handle_subscription_upsert,
    BillingEventKind.subscription_deleted: handle_subscription_deleted,
    BillingEventKind.unhandled: handle_unhandled,
}


def reconcile(session: Session, event: Mapping[str, Any]) -> ReconcileResult:
    """Dispatch a signature-verified Stripe event to its handler."""
    parsed = parse_event(event)
    return HANDLERS[parsed.kind](session, parsed)


__all__ = [
    "BillingEventKind",
    "BillingEvent",
    "ReconcileResult",
    "parse_event",
    "plan_for_subscription",
    "handle_checkout_completed",
    "handle_subscription_upsert",
    "handle_subscription_deleted",
    "HANDLERS",
    "reconcile",
]
