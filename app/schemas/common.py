"""Response envelope shared by every JSON endpoint."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard ``success``/``message`` envelope with optional payload."""

    success: bool = Field(..., description="Whether the request succeeded")
    message: str = Field(..., description="Human-readable outcome")
    data: T | None = Field(None, description="Endpoint-specific payload")
    error: str | None = Field(None, description="Debug information (non-production only)")


class ServiceStatus(BaseModel):
    status: str = Field("OK", description="Liveness indicator")
    timestamp: str = Field(..., description="Server time, ISO-8601 UTC")
    environment: str = Field(..., description="Deployment environment (APP_ENV)")
    version: str = Field(..., description="Service version")
