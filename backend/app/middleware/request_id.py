"""
PetMatch Backend - Request ID Middleware
========================================

What:  Assigns a correlation ID to each incoming request and echoes it in
       the X-Request-ID response header.
How:   Stored in a ContextVar so the access log, the audit log and the error
       handlers can read it without the request object. Every error body
       carries it as request_id.
Who:   Applied to every request via Starlette middleware.

A caller-supplied X-Request-ID (usually from the API gateway) is kept only
if it is a short token of letters, digits, '.', '_' or '-'; anything else is
replaced so it cannot inject text into log lines.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Coroutine-local: concurrent requests share a thread but not this value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def resolve_request_id(header_value: str | None) -> str:
    """The caller's ID when well-formed, otherwise a fresh short UUID prefix."""
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return uuid.uuid4().hex[:12]


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        # Not reset afterwards: the outermost 500 handler still reads it
        request_id_var.set(rid)
        # Also creates scope["state"] so inner layers share request.state
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
