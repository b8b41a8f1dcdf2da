"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Each subclass fixes the HTTP status for its error code family; route layers
raise them and ``exception_handlers.app_error_handler`` renders the envelope.
The global 429 from the rate limit middleware is built there directly and
does not go through ``RateLimitAppError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context returned to clients under ``details``.

    ``retry_after`` is also copied into the ``Retry-After`` header.
    """

    field: str
    hint: str
    retry_after: int


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    status_code: ClassVar[int] = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when credentials are missing or invalid."""

    status_code: ClassVar[int] = 401


class ForbiddenAppError(AppError):
    """Raised when an authenticated caller lacks the required role."""

    status_code: ClassVar[int] = 403


class NotFoundAppError(AppError):
    """Raised when a requested record does not exist."""

    status_code: ClassVar[int] = 404


class RateLimitAppError(AppError):
    """Raised when a caller is throttled outside the global middleware."""

    status_code: ClassVar[int] = 429
