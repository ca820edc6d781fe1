import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

HEADER = "X-Request-ID"
_VALID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request id to ``request.state`` and echo it on the response.

    An incoming X-Request-ID is reused when it looks sane so ids line up with
    the caller's own logs.
    """

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(HEADER)
        rid = incoming if incoming and _VALID.match(incoming) else uuid.uuid4().hex
        request.state.request_id = rid
        response = await call_next(request)
        response.headers[HEADER] = rid
        return response
