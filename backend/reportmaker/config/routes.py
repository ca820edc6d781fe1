"""Routes and health check configuration for the FastAPI application."""
from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from fastapi import FastAPI


def attach_routes(app: FastAPI) -> None:
    """Attach all routers and the health check endpoints.

    Args:
        app: FastAPI application instance
    """
    from reportmaker.core.logging import get_logger
    from reportmaker.routing import attach_routers
    from reportmaker.core import database

    log = get_logger("reportmaker.config.routes")

    attached = attach_routers(app)
    log.info("[startup] Routers attached: %s", ", ".join(attached))

    # --- Health Check Endpoints ---
    @app.get("/api/health")
    def api_health():
        return {"status": "ok"}

    @app.get("/api/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/api/readyz")
    def readyz():
        # Look the engine up at call time so a swapped engine (tests) is used
        try:
            with database.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return {"ok": True}
        except SQLAlchemyError as e:
            log.warning("[readyz] database not ready: %s", e)
            return JSONResponse(status_code=503, content={"ok": False, "error": "database unavailable"})
