"""
Plan definitions and entitlement resolution.

Single source of truth for plan tiers and the limits each one grants.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)

FREE = "free"
PREMIUM = "premium"
SUPER = "super"

# Paid plans that can be bought through Checkout
PURCHASABLE = (PREMIUM, SUPER)

# Subscription statuses that keep the paid plan
ENTITLED_STATUSES = frozenset({"active", "trialing", "past_due"})


@dataclass(frozen=True)
class Entitlements:
    key: str
    name: str
    price: float
    max_reports: int
    max_items: int
    max_photos_per_item: int
    can_download_docx: bool
    can_create_templates: bool
    show_ads: bool
    branded_footer: bool

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


PLANS: Dict[str, Entitlements] = {
    FREE: Entitlements(
        key=FREE,
        name="Free",
        price=0,
        max_reports=3,
        max_items=5,
        max_photos_per_item=2,
        can_download_docx=False,
        can_create_templates=False,
        show_ads=True,
        branded_footer=True,
    ),
    PREMIUM: Entitlements(
        key=PREMIUM,
        name="Premium",
        price=4.99,
        max_reports=10,
        max_items=25,
        max_photos_per_item=4,
        can_download_docx=True,
        can_create_templates=True,
        show_ads=False,
        branded_footer=False,
    ),
    SUPER: Entitlements(
        key=SUPER,
        name="Super Premium",
        price=19.99,
        max_reports=50,
        max_items=40,
        max_photos_per_item=6,
        can_download_docx=True,
        can_create_templates=True,
        show_ads=False,
        branded_footer=False,
    ),
}


def normalize_plan_key(plan_key: Optional[str]) -> str:
    """Return a known plan key; anything unrecognised collapses to free."""
    key = (plan_key or "").strip().lower()
    return key if key in PLANS else FREE


def resolve_entitlements(plan_key: Optional[str]) -> Entitlements:
    return PLANS[normalize_plan_key(plan_key)]


def list_plans() -> List[Dict[str, Any]]:
    """Public plan catalogue, cheapest first."""
    return [p.as_dict() for p in sorted(PLANS.values(), key=lambda p: p.price)]


def effective_plan_key(stored_plan: Optional[str], *, override: Optional[str], production: bool) -> str:
    """Plan used for a request.

    ``override`` (the PLAN_OVERRIDE setting) wins outside production when it names
    a real plan. In production it is ignored.
    """
    if override and override.strip():
        if production:
            log.warning("event=plans.override_ignored reason=production override=%s", override)
        elif override.strip().lower() in PLANS:
            return override.strip().lower()
        else:
            log.warning("event=plans.override_ignored reason=unknown_plan override=%s", override)
    return normalize_plan_key(stored_plan)


__all__ = [
    "FREE",
    "PREMIUM",
    "SUPER",
    "PURCHASABLE",
    "ENTITLED_STATUSES",
    "Entitlements",
    "PLANS",
    "normalize_plan_key",
    "resolve_entitlements",
    "list_plans",
    "effective_plan_key",
]
