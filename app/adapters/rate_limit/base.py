"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class RejectReason(str, Enum):
    """Why a request was throttled."""

    COOLDOWN = "cooldown"
    LIMIT_EXCEEDED = "limit_exceeded"


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reason: Why the request was rejected, None when allowed.
        retry_after_seconds: Whole seconds to wait when blocked.
        offense_count: Consecutive offenses for the key (limit rejections only).
    """

    allowed: bool
    limit: int
    remaining: int
    reason: RejectReason | None = None
    retry_after_seconds: int | None = None
    offense_count: int | None = None

    @property
    def message(self) -> str | None:
        """Client-facing rejection message, None when allowed."""
        if self.reason is RejectReason.COOLDOWN:
            return f"Too many requests. Cooldown: wait {self.retry_after_seconds}s."
        if self.reason is RejectReason.LIMIT_EXCEEDED:
            return f"Rate limit exceeded. Try again in {self.retry_after_seconds}s"
        return None


@dataclass(frozen=True)
class CleanupReport:
    """Number of entries removed from each map by a sweep."""

    requests_removed: int
    offenses_removed: int
    cooldowns_removed: int

    @property
    def total(self) -> int:
        return self.requests_removed + self.offenses_removed + self.cooldowns_removed


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Decide whether a request for ``key`` is accepted and record it.

        Args:
            key: Unique requester identity (e.g. ``rate:<token>:<ip>``).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> CleanupReport:
        """Drop stale per-key state.

        Returns:
            CleanupReport with the number of removed entries.
        """
        raise NotImplementedError
