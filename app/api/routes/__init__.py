from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.status import router as status_router

__all__ = ["health_router", "status_router"]
