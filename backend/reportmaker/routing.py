from __future__ import annotations

import logging
from typing import List

from fastapi import FastAPI

from reportmaker.routers import billing, billing_webhook, items, me, photos, reports

log = logging.getLogger(__name__)

API_PREFIX = "/api"

ROUTERS = (
    ("me", me.router),
    ("billing", billing.router),
    ("billing_webhook", billing_webhook.router),
    ("reports", reports.router),
    ("items", items.router),
    ("photos", photos.router),
)


def attach_routers(app: FastAPI) -> List[str]:
    """Mount every API router under /api and return their names."""
    attached = []
    for name, router in ROUTERS:
        app.include_router(router, prefix=API_PREFIX)
        attached.append(name)
        log.debug("[routing] attached %s (%d routes)", name, len(router.routes))
    return attached


__all__ = ["attach_routers", "API_PREFIX", "ROUTERS"]
