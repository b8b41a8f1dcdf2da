"""In-memory sliding-window rate limiter with exponential backoff.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: every decision and sweep runs under the state lock.
- Repeat offenders are put in a cooldown that doubles with each consecutive
  offense (10s, 20s, 40s, ... by default).
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from typing import Callable

from app.adapters.rate_limit.abuse_log import AbstractAbuseSink, NullAbuseSink
from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    CleanupReport,
    RateLimitResult,
    RejectReason,
)
from app.adapters.rate_limit.state import OffenseRecord, RateLimitState

logger = logging.getLogger(__name__)


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing credentials."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class InMemoryBackoffRateLimiter(AbstractRateLimiter):
    """Sliding-window limiter that escalates cooldowns for repeat offenders.

    Each key may make ``max_requests`` accepted requests per rolling
    ``window_ms``. Exceeding that records an offense and blocks the key for
    ``base_cooldown_ms * 2 ** (offenses - 1)``. Offenses are forgotten after
    ``offense_reset_window_ms`` of silence. Any accepted request clears an
    outstanding cooldown.
    """

    def __init__(
        self,
        *,
        max_requests: int = 10,
        window_ms: int = 10_000,
        offense_reset_window_ms: int = 120_000,
        base_cooldown_ms: int = 10_000,
        alert_threshold: int = 5,
        state: RateLimitState | None = None,
        abuse_sink: AbstractAbuseSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_requests: Accepted requests allowed per window.
            window_ms: Sliding window length in milliseconds.
            offense_reset_window_ms: Silence after which offenses start over.
            base_cooldown_ms: Cooldown applied on the first offense.
            alert_threshold: Offense count at which an alert is logged.
            state: Optional pre-built state container (shared or inspected by tests).
            abuse_sink: Destination for offense records; discards by default.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If any limit or duration is not positive.
        """
        for name, value in (
            ("max_requests", max_requests),
            ("window_ms", window_ms),
            ("offense_reset_window_ms", offense_reset_window_ms),
            ("base_cooldown_ms", base_cooldown_ms),
            ("alert_threshold", alert_threshold),
        ):
            if value < 1:
                raise ValueError(f"{name} must be >= 1")

        self._max_requests = max_requests
        self._window_ms = window_ms
        self._offense_reset_window_ms = offense_reset_window_ms
        self._base_cooldown_ms = base_cooldown_ms
        self._alert_threshold = alert_threshold
        self._state = state if state is not None else RateLimitState()
        self._abuse_sink = abuse_sink or NullAbuseSink()
        self._clock = clock

    @property
    def state(self) -> RateLimitState:
        return self._state

    @property
    def limit(self) -> int:
        return self._max_requests

    @property
    def abuse_sink(self) -> AbstractAbuseSink:
        return self._abuse_sink

    def _now_ms(self) -> int:
        return int(round(self._clock() * 1000))

    def cooldown_for(self, offense_count: int) -> int:
        """Cooldown in milliseconds for the given consecutive offense count."""
        return self._base_cooldown_ms * 2 ** (offense_count - 1)

    def consume(self, key: str) -> RateLimitResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._now_ms()
        state = self._state

        with state.lock:
            cooldown_until = state.cooldowns.get(key)
            if cooldown_until is not None and now < cooldown_until:
                return RateLimitResult(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    reason=RejectReason.COOLDOWN,
                    retry_after_seconds=math.ceil((cooldown_until - now) / 1000),
                )

            timestamps = [
                ts for ts in state.requests.get(key, []) if now - ts < self._window_ms
            ]
            state.requests[key] = timestamps

            if len(timestamps) >= self._max_requests:
                offense = state.offenses.get(key) or OffenseRecord()
                if now - offense.last_offense_time > self._offense_reset_window_ms:
                    offense.count = 0
                offense.count += 1
                offense.last_offense_time = now

                cooldown_ms = self.cooldown_for(offense.count)
                state.cooldowns[key] = now + cooldown_ms
                state.offenses[key] = offense
                offense_count = offense.count
                rejected = RateLimitResult(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    reason=RejectReason.LIMIT_EXCEEDED,
                    retry_after_seconds=math.ceil(cooldown_ms / 1000),
                    offense_count=offense_count,
                )
            else:
                timestamps.append(now)
                # Any accepted request lifts an outstanding cooldown
                state.cooldowns.pop(key, None)
                return RateLimitResult(
                    allowed=True,
                    limit=self._max_requests,
                    remaining=self._max_requests - len(timestamps),
                )

        self._report_offense(key, offense_count, cooldown_ms)
        return rejected

    def _report_offense(self, key: str, offense_count: int, cooldown_ms: int) -> None:
        key_hash = hash_limiter_key(key)
        logger.warning(
            "rate_limit.offense",
            extra={
                "rate_key": key,
                "key_hash": key_hash,
                "offense_count": offense_count,
                "cooldown_ms": cooldown_ms,
            },
        )
        try:
            self._abuse_sink.record(key, offense_count)
        except Exception as exc:  # noqa: BLE001 - sink failures never reach the caller
            logger.debug(
                "rate_limit.abuse_sink_failed",
                extra={"key_hash": key_hash, "error_type": type(exc).__name__},
            )

        if offense_count >= self._alert_threshold:
            # TODO: forward to the on-call paging integration once it exists
            logger.warning(
                "rate_limit.abuse_alert",
                extra={"rate_key": key, "key_hash": key_hash, "offense_count": offense_count},
            )

    def sweep(self) -> CleanupReport:
        now = self._now_ms()
        state = self._state

        with state.lock:
            stale_requests = [
                key
                for key, timestamps in state.requests.items()
                if not timestamps or now - timestamps[-1] > self._window_ms
            ]
            for key in stale_requests:
                del state.requests[key]

            stale_offenses = [
                key
                for key, offense in state.offenses.items()
                if now - offense.last_offense_time > self._offense_reset_window_ms
            ]
            for key in stale_offenses:
                del state.offenses[key]

            expired_cooldowns = [
                key for key, until in state.cooldowns.items() if until < now
            ]
            for key in expired_cooldowns:
                del state.cooldowns[key]

        report = CleanupReport(
            requests_removed=len(stale_requests),
            offenses_removed=len(stale_offenses),
            cooldowns_removed=len(expired_cooldowns),
        )
        logger.info(
            "rate_limit.cleanup",
            extra={
                "requests_removed": report.requests_removed,
                "offenses_removed": report.offenses_removed,
                "cooldowns_removed": report.cooldowns_removed,
            },
        )
        return report
