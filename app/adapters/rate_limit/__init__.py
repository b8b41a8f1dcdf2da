"""Rate limiting adapters.

This package keeps limiter state and policy behind a small abstraction so the
in-memory implementation can later be swapped for a shared store without
changing the HTTP layer.
"""

from app.adapters.rate_limit.abuse_log import (
    AbstractAbuseSink,
    FileAbuseLogSink,
    NullAbuseSink,
)
from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    CleanupReport,
    RateLimitResult,
    RejectReason,
)
from app.adapters.rate_limit.cleanup import PeriodicCleanup
from app.adapters.rate_limit.in_memory import InMemoryBackoffRateLimiter
from app.adapters.rate_limit.state import OffenseRecord, RateLimitState

__all__ = [
    "AbstractAbuseSink",
    "AbstractRateLimiter",
    "CleanupReport",
    "FileAbuseLogSink",
    "InMemoryBackoffRateLimiter",
    "NullAbuseSink",
    "OffenseRecord",
    "PeriodicCleanup",
    "RateLimitResult",
    "RateLimitState",
    "RejectReason",
]
