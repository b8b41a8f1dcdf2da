from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.schemas.common import ApiResponse, ServiceStatus

router = APIRouter(tags=["Health"])


@router.get("/", response_model=ApiResponse[ServiceStatus])
def service_status(request: Request) -> ApiResponse[ServiceStatus]:
    """Root status endpoint reporting environment and version."""

    app_settings = request.app.state.settings
    return ApiResponse[ServiceStatus](
        success=True,
        message=f"{app_settings.app.name} is running!",
        data=ServiceStatus(
            timestamp=datetime.now(timezone.utc).isoformat(),
            environment=app_settings.app_env,
            version=app_settings.app.version,
        ),
    )
