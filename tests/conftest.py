"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the TESTING/APP_ENV variables so settings never read a local .env
file, and keeps the abuse log off the filesystem by default.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("RATE_LIMIT_ABUSE_LOG_ENABLED", "false")

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from app.adapters.rate_limit.in_memory import InMemoryBackoffRateLimiter  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Controllable time source returning UNIX seconds (starts at 0)."""
    return Mock(return_value=0.0)


@pytest.fixture
def limiter(clock: Mock) -> InMemoryBackoffRateLimiter:
    """Limiter with default policy (10 req / 10s, 10s base cooldown)."""
    return InMemoryBackoffRateLimiter(clock=clock)
