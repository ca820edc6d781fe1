"""Middleware configuration for the FastAPI application."""
from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI
    from reportmaker.core.config import Settings


def configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure all middleware and exception handlers for the application.

    Args:
        app: FastAPI application instance
        settings: Application settings
    """
    from reportmaker.core.logging import get_logger
    log = get_logger("reportmaker.config.middleware")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
        allow_credentials=True,
    )
    log.debug("[startup] CORS origins: %s", settings.cors_allowed_origin_list)

    # Security and Request ID middleware
    from reportmaker.middleware.request_id import RequestIDMiddleware
    from reportmaker.middleware.security_headers import SecurityHeadersMiddleware
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)

    from reportmaker.exceptions import install_exception_handlers
    install_exception_handlers(app)
