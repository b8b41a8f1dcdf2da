"""Background task that periodically sweeps stale limiter state."""

from __future__ import annotations

import asyncio
import logging

from app.adapters.rate_limit.base import AbstractRateLimiter, CleanupReport

logger = logging.getLogger(__name__)


class PeriodicCleanup:
    """Cancellable asyncio loop calling ``limiter.sweep()`` on an interval.

    Owned by the application lifespan: ``start()`` on startup, ``stop()`` on
    shutdown. ``run_once()`` lets callers trigger a sweep without waiting on
    the timer.
    """

    def __init__(self, limiter: AbstractRateLimiter, *, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._limiter = limiter
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> CleanupReport:
        return self._limiter.sweep()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.run_once()
            except Exception as exc:
                logger.error(
                    "rate_limit.cleanup_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )

    def start(self) -> None:
        """Schedule the loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="rate-limit-cleanup")
        logger.info("rate_limit.cleanup_started", extra={"interval_s": self._interval})

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("rate_limit.cleanup_stopped")
