"""Tests for the periodic limiter cleanup task."""

from __future__ import annotations

import asyncio
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.base import CleanupReport
from app.adapters.rate_limit.cleanup import PeriodicCleanup
from app.adapters.rate_limit.in_memory import InMemoryBackoffRateLimiter


def _empty_report() -> CleanupReport:
    return CleanupReport(requests_removed=0, offenses_removed=0, cooldowns_removed=0)


def test_run_once_sweeps_immediately() -> None:
    clock = Mock(return_value=0.0)
    limiter = InMemoryBackoffRateLimiter(clock=clock)
    limiter.consume("rate:anon:10.0.0.1")
    cleanup = PeriodicCleanup(limiter, interval_seconds=300)

    clock.return_value = 60.0
    report = cleanup.run_once()

    assert report.requests_removed == 1
    assert limiter.state.requests == {}


def test_loop_sweeps_on_interval_and_stops() -> None:
    limiter = Mock()
    limiter.sweep.return_value = _empty_report()
    cleanup = PeriodicCleanup(limiter, interval_seconds=0.01)

    async def scenario() -> None:
        cleanup.start()
        assert cleanup.running
        await asyncio.sleep(0.1)
        await cleanup.stop()
        assert not cleanup.running

    asyncio.run(scenario())

    assert limiter.sweep.call_count >= 2


def test_loop_survives_failing_sweep() -> None:
    limiter = Mock()
    calls = []

    def sweep() -> CleanupReport:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return _empty_report()

    limiter.sweep.side_effect = sweep
    cleanup = PeriodicCleanup(limiter, interval_seconds=0.01)

    async def scenario() -> None:
        cleanup.start()
        await asyncio.sleep(0.1)
        assert cleanup.running
        await cleanup.stop()

    asyncio.run(scenario())

    assert limiter.sweep.call_count >= 2


def test_start_is_idempotent_and_stop_without_start_is_safe() -> None:
    limiter = Mock()
    limiter.sweep.return_value = _empty_report()
    cleanup = PeriodicCleanup(limiter, interval_seconds=60)

    async def scenario() -> None:
        await cleanup.stop()
        cleanup.start()
        first = cleanup._task
        cleanup.start()
        assert cleanup._task is first
        await cleanup.stop()

    asyncio.run(scenario())

    limiter.sweep.assert_not_called()


def test_invalid_interval() -> None:
    with pytest.raises(ValueError):
        PeriodicCleanup(Mock(), interval_seconds=0)
