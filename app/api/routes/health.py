from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness probe for load balancers.

    Also reports whether the rate limiter is active and how many identities
    it currently tracks, which helps spot runaway key cardinality.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    enabled = request.app.state.rate_limit_settings.enabled and limiter is not None
    tracked = len(limiter.state.requests) if enabled else 0
    return {
        "status": "ok",
        "rate_limit": {"enabled": enabled, "tracked_keys": tracked},
    }
