"""
PetMatch Backend - Access Log Middleware
========================================

What:  One access-log line per API request on the `petmatch.access` logger:
       method, path, status, duration, request ID and the acting principal.
Who:   Applied to every request via Starlette middleware, inside
       RequestIDMiddleware so the ID is already set.

The actor comes from request.state.actor, which get_current_actor sets once
the bearer token is verified. Requests rejected before that (missing or bad
token) are logged as "anonymous".

What we log vs what we DON'T log (privacy):
    Log:       method, path, status, duration, request ID, actor id and role
    Don't log: request bodies (applications carry personal and housing
               details), Authorization headers, client IPs
"""

import logging
import time
from typing import Any, Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var
from app.services.permissions import Actor

logger = logging.getLogger("petmatch.access")

ANONYMOUS = "anonymous"

# Health checks and API docs are not access-logged
UNLOGGED_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


def access_level(status: int) -> int:
    """5xx → ERROR, 4xx other than 404 → WARNING, everything else → INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400 and status != 404:
        return logging.WARNING
    return logging.INFO


def access_fields(
    method: str,
    path: str,
    status: int,
    duration_ms: float,
    request_id: str,
    actor: Optional[Actor],
) -> Tuple[str, Dict[str, Any]]:
    """Build the access-log message and its structured `extra` fields."""
    actor_id = actor.id if actor else ANONYMOUS
    actor_role = actor.role if actor else None
    who = f"{actor_id} ({actor_role})" if actor_role else actor_id
    message = f"{method} {path} {status} {duration_ms:.1f}ms [{request_id}] by {who}"
    return message, {
        "request_id": request_id,
        "method": method,
        "path": path,
        "status": status,
        "duration_ms": round(duration_ms, 2),
        "actor_id": actor_id,
        "actor_role": actor_role,
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in UNLOGGED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        message, extra = access_fields(
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id_var.get(""),
            getattr(request.state, "actor", None),
        )
        logger.log(access_level(response.status_code), message, extra=extra)
        return response
