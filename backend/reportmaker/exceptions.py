from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError
import traceback
import uuid
from reportmaker.core.errors import ReportMakerError
from reportmaker.core.logging import get_logger


def error_payload(code: str, message: str, details=None, request: Request | None = None, error_id: str | None = None):
    """Create error payload with user-friendly messages.

    Maps technical error codes to user-friendly messages while preserving
    technical details for debugging.
    """
    USER_FRIENDLY_MESSAGES = {
        "internal_error": "We're experiencing technical difficulties. Please try again in a moment.",
        "validation_error": "Please check your input and try again.",
        "rate_limit_exceeded": "Too many requests. Please wait a moment before trying again.",
        "upstream_error": "A service we depend on is temporarily unavailable. Please try again shortly.",
        "http_error": message,
    }

    retryable_codes = {
        "rate_limit_exceeded",
        "upstream_error",
        "internal_error",
    }

    user_message = USER_FRIENDLY_MESSAGES.get(code, message)

    out = {
        "error": {
            "code": code,
            "message": user_message,
            "technical_message": message if user_message != message else None,  # Only include if different
            "details": details,
            "retryable": code in retryable_codes,
        }
    }

    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        out["error"]["request_id"] = rid
    if error_id:
        out["error"]["error_id"] = error_id
    return out


def _rid(request: Request):
    return getattr(getattr(request, "state", None), "request_id", None)


def install_exception_handlers(app):
    log = get_logger("reportmaker.exceptions")

    @app.exception_handler(ReportMakerError)
    async def domain_exc_handler(request: Request, exc: ReportMakerError):
        log.info(
            "%s %s %s -> %s: %s",
            type(exc).__name__, request.method, request.url.path, exc.status_code, exc.message,
            extra={"request_id": _rid(request)},
        )
        payload = error_payload(exc.code, exc.message, exc.details, request)
        payload["error"].update(exc.extra())
        return JSONResponse(payload, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):
        log.warning(
            "HTTPException %s %s -> %s: %s",
            request.method, request.url.path, exc.status_code, exc.detail,
            extra={"request_id": _rid(request)},
        )
        return JSONResponse(
            error_payload("http_error", exc.detail, {"status_code": exc.status_code}, request),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exc_handler(request: Request, exc: RequestValidationError):
        log.info("RequestValidationError %s %s", request.method, request.url.path,
                 extra={"request_id": _rid(request)})
        return JSONResponse(
            error_payload("validation_error", "Validation failed", jsonable_errors(exc.errors()), request),
            status_code=422,
        )

    @app.exception_handler(ValidationError)
    async def validation_exc_handler(request: Request, exc: ValidationError):
        log.info("ValidationError %s %s", request.method, request.url.path,
                 extra={"request_id": _rid(request)})
        return JSONResponse(
            error_payload("validation_error", "Validation failed", jsonable_errors(exc.errors()), request),
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        err_id = str(uuid.uuid4())
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        log.error(
            "Unhandled exception [%s] %s %s\nTraceback:\n%s",
            err_id, request.method, request.url.path, tb,
            extra={"request_id": _rid(request)},
        )
        return JSONResponse(
            error_payload("internal_error", "Something went wrong", None, request, error_id=err_id),
            status_code=500,
        )


def jsonable_errors(errors):
    """Pydantic error dicts may carry exception objects in ``ctx``; stringify them."""
    out = []
    for err in errors:
        err = dict(err)
        ctx = err.get("ctx")
        if isinstance(ctx, dict):
            err["ctx"] = {k: str(v) for k, v in ctx.items()}
        err.pop("input", None)
        out.append(err)
    return out
