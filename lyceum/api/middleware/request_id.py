"""
Request correlation.

Every request gets an id (the caller's ``X-Request-ID`` when it sends a
sane one), which is echoed on the response and bound to the logging
context. Slow requests are logged with their timing.
"""

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from lyceum.logging_config import actor_id_var, get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def incoming_request_id(request: Request) -> str:
    """Reuse the caller's id if it is short and printable, else mint one."""
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    return supplied if _VALID_REQUEST_ID.match(supplied) else uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = incoming_request_id(request)
        request.state.request_id = request_id
        request_token = request_id_var.set(request_id)
        actor_token = actor_id_var.set(None)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
            if elapsed_ms > SLOW_REQUEST_MS:
                logger.warning(
                    "Slow request %s %s",
                    request.method,
                    request.url.path,
                    extra={"duration_ms": elapsed_ms},
                )
            return response
        finally:
            request_id_var.reset(request_token)
            actor_id_var.reset(actor_token)
