"""Rate limiting middleware for the HTTP layer.

This module wires the rate limiting adapter into FastAPI.

Design goals:
- Minimal coupling: the middleware reads the limiter from ``app.state`` and
  depends on the abstract interface only.
- Isolated state: the limiter is built per application by ``build_rate_limiter``,
  never held in module globals.
- Safe rejections: throttled requests get a JSON 429 envelope and never reach
  the route handlers.

Rate limiting strategy:
- Key is ``rate:<Authorization header or "anon">:<client ip>``.
- Sliding window count with exponential-backoff cooldowns for repeat offenders.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from app.adapters.rate_limit.abuse_log import (
    AbstractAbuseSink,
    FileAbuseLogSink,
    NullAbuseSink,
)
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryBackoffRateLimiter, hash_limiter_key
from app.core.config import RateLimitSettings, settings

logger = logging.getLogger(__name__)

ANONYMOUS_TOKEN = "anon"


def build_abuse_sink(rate_settings: RateLimitSettings) -> AbstractAbuseSink:
    if not rate_settings.abuse_log_enabled:
        return NullAbuseSink()
    return FileAbuseLogSink(rate_settings.abuse_log_path)


def build_rate_limiter(
    rate_settings: RateLimitSettings | None = None,
    *,
    abuse_sink: AbstractAbuseSink | None = None,
) -> InMemoryBackoffRateLimiter:
    """Build a limiter from configuration.

    Args:
        rate_settings: Limiter settings; defaults to the global settings.
        abuse_sink: Optional sink override (tests pass a NullAbuseSink or a mock).

    Returns:
        A fresh limiter with its own state container.
    """

    cfg = rate_settings or settings.rate_limit
    return InMemoryBackoffRateLimiter(
        max_requests=cfg.max_requests,
        window_ms=cfg.window_ms,
        offense_reset_window_ms=cfg.offense_reset_window_ms,
        base_cooldown_ms=cfg.base_cooldown_ms,
        alert_threshold=cfg.alert_threshold,
        abuse_sink=abuse_sink if abuse_sink is not None else build_abuse_sink(cfg),
    )


def build_rate_limit_key(request: Request) -> str:
    """Build the limiter key for the current request.

    Args:
        request: Incoming request.

    Returns:
        str: ``rate:<token>:<ip>`` with ``anon`` for missing credentials.
    """

    token = request.headers.get("authorization") or ANONYMOUS_TOKEN
    client_host = request.client.host if request.client else "unknown"
    return f"rate:{token}:{client_host}"


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the per-identity rate limit.

    The limiter is looked up on ``request.app.state.rate_limiter``; when it is
    absent or limiting is disabled the request passes through untouched.

    Args:
        request: FastAPI request.
        call_next: The next middleware/route handler in the stack.

    Returns:
        The downstream response, or a 429 JSON response when throttled.
    """

    cfg: RateLimitSettings = getattr(request.app.state, "rate_limit_settings", settings.rate_limit)
    limiter: AbstractRateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if not cfg.enabled or limiter is None:
        return await call_next(request)

    key = build_rate_limit_key(request)
    result = limiter.consume(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": hash_limiter_key(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return await call_next(request)

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "rate_key": key,
            "key_hash": hash_limiter_key(key),
            "reason": result.reason.value if result.reason else None,
            "limit": result.limit,
            "retry_after_s": retry_after,
            "offense_count": result.offense_count,
            "path": request.url.path,
        },
    )

    headers: dict[str, str] = {}
    if cfg.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "message": result.message},
        headers=headers or None,
    )
