"""
Per-client fixed-window rate limiting.

A single application-wide limit is counted per client address across all
routes. The ``Limiter`` is built per application in ``app.create_app()``, attached to
``app.state.limiter`` and enforced on every route by ``SlowAPIMiddleware``.
Counters live in process memory and are cleared on restart.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from travelsafe.config import Settings


def rate_limit_string(settings: Settings) -> str:
    return f"{settings.rate_limit_max} per {settings.rate_limit_window_seconds} seconds"


def build_limiter(settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        application_limits=[rate_limit_string(settings)],
        strategy="fixed-window",
        storage_uri="memory://",
        enabled=settings.rate_limit_enabled,
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429, content={"error": f"Rate limit exceeded: {exc.detail}"}
    )
