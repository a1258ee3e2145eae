"""
Per-client request throttling with fixed one-minute windows.

``POST /auth/*`` is counted per client IP. Everything else under the API
prefix is counted per user when the bearer token is valid, per IP otherwise.
Counters live in process memory.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lyceum.api.deps import get_client_ip
from lyceum.config import get_settings
from lyceum.kernel.identity.jwt import verify_access_token
from lyceum.logging_config import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60
# Windows idle this long are dropped on the next sweep
STALE_AFTER_SECONDS = WINDOW_SECONDS * 10


@dataclass
class _Window:
    started: float
    hits: int = 0


class FixedWindowLimiter:
    def __init__(self, window_seconds: int = WINDOW_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str, limit: int) -> Optional[int]:
        """Count one request. Returns None when allowed, else seconds until the window resets."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.started >= self.window_seconds:
            window = self._windows[key] = _Window(started=now)
        if window.hits >= limit:
            return max(1, math.ceil(window.started + self.window_seconds - now))
        window.hits += 1
        return None

    def sweep(self) -> None:
        now = self._clock()
        for key in [k for k, w in self._windows.items() if now - w.started > STALE_AFTER_SECONDS]:
            del self._windows[key]

    def reset(self) -> None:
        self._windows.clear()


limiter = FixedWindowLimiter()


def _bearer_subject(request: Request) -> Optional[str]:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    claims = verify_access_token(token.strip())
    return claims.sub if claims else None


def classify(request: Request) -> tuple[str, int]:
    """(counter key, per-minute limit) for a request under the API prefix."""
    settings = get_settings()
    client_ip = get_client_ip(request) or "unknown"
    if request.method == "POST" and request.url.path.startswith(f"{settings.api_v1_prefix}/auth"):
        return f"auth:{client_ip}", settings.rate_limit_auth_per_minute
    subject = _bearer_subject(request)
    key = f"api:user:{subject}" if subject else f"api:ip:{client_ip}"
    return key, settings.rate_limit_api_per_minute


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled or not request.url.path.startswith(settings.api_v1_prefix):
            return await call_next(request)

        limiter.sweep()
        key, limit = classify(request)
        retry_after = limiter.hit(key, limit)
        if retry_after is None:
            return await call_next(request)

        logger.warning("Rate limit exceeded", extra={"key": key.split(":", 1)[0], "path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Too many requests. Please try again later.", "code": "rate_limited"},
            headers={"Retry-After": str(retry_after)},
        )
