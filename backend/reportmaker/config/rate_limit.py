"""Rate limiting configuration for the FastAPI application."""
from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI


def configure_rate_limiting(app: FastAPI) -> None:
    """Install slowapi unless limits are disabled (DISABLE_RATE_LIMITS=1)."""
    from reportmaker.exceptions import error_payload
    from reportmaker.limits import limiter, DISABLE as RL_DISABLED

    if RL_DISABLED:
        return

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    async def _rate_limit_handler(request, exc):  # type: ignore
        return JSONResponse(
            status_code=429,
            content=error_payload("rate_limit_exceeded", "Too many requests", None, request),
            headers={"Retry-After": "60"},
        )

    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore
