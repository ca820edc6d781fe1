"""FastAPI application factory.

This module provides the create_app() function that creates and configures
the FastAPI application instance. The app.py file uses this to expose the
app instance for ASGI servers.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware


@asynccontextmanager
async def _lifespan(app: FastAPI):
    from reportmaker.core.database import create_db_and_tables
    from reportmaker.core.logging import get_logger

    create_db_and_tables()
    get_logger("reportmaker.main").info("[startup] Database tables ensured")
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    1. Logging and Sentry configuration
    2. FastAPI app instantiation
    3. Proxy headers middleware
    4. Application middleware and exception handlers
    5. Rate limiting
    6. Routes and health checks

    Returns:
        FastAPI: Configured application instance ready for use by ASGI server.
    """
    from reportmaker.config.logging import configure_logging, setup_sentry
    from reportmaker.core.config import settings
    from reportmaker.core.logging import get_logger

    configure_logging()
    setup_sentry(environment=settings.APP_ENV.lower(), dsn=settings.SENTRY_DSN)
    log = get_logger("reportmaker.main")

    # Never leak tracebacks outside dev
    app = FastAPI(title=f"{settings.BUSINESS_NAME} API", debug=settings.is_dev_mode, lifespan=_lifespan)

    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    from reportmaker.config.middleware import configure_middleware
    configure_middleware(app, settings)

    from reportmaker.config.rate_limit import configure_rate_limiting
    configure_rate_limiting(app)

    from reportmaker.config.routes import attach_routes
    attach_routes(app)

    log.info("[startup] Application configured successfully (env=%s)", settings.APP_ENV)
    return app
