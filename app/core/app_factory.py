from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
rate limiter lifecycle) so tests can build isolated instances.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.adapters.rate_limit.abuse_log import AbstractAbuseSink
from app.adapters.rate_limit.cleanup import PeriodicCleanup
from app.api.routes import health_router, status_router
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.rate_limit import build_rate_limiter, rate_limit_middleware

logger = logging.getLogger(__name__)


def parse_origins(origins: str | None) -> list[str]:
    """Split a comma-separated origin list, dropping blanks."""
    if not origins:
        return []
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the limiter cleanup loop on startup and tear it down on shutdown."""
    cleanup: PeriodicCleanup = app.state.rate_limit_cleanup
    logger.info(
        "app.startup",
        extra={"environment": app.state.settings.app_env, "version": app.version},
    )
    cleanup.start()
    try:
        yield
    finally:
        await cleanup.stop()
        # Drains pending writes; the sink starts a new worker on the next record
        app.state.rate_limiter.abuse_sink.close()
        logger.info("app.shutdown")


def create_app(
    app_settings: Settings | None = None,
    *,
    abuse_sink: AbstractAbuseSink | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        abuse_sink: Optional abuse sink override for the rate limiter.
        configure_logs: Whether to (re)configure the root logger.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    app = FastAPI(
        title=cfg.app.name,
        description=(
            "Car rental backend. Every request passes a per-identity rate "
            "limiter with exponential-backoff cooldowns for repeat offenders."
        ),
        version=cfg.app.version,
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    limiter = build_rate_limiter(cfg.rate_limit, abuse_sink=abuse_sink)
    app.state.settings = cfg
    app.state.rate_limit_settings = cfg.rate_limit
    app.state.rate_limiter = limiter
    app.state.rate_limit_cleanup = PeriodicCleanup(
        limiter,
        interval_seconds=cfg.rate_limit.cleanup_interval_ms / 1000,
    )

    # Middleware: the last registered runs first, so request ids wrap CORS,
    # which wraps the rate limiter.
    app.middleware("http")(rate_limit_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_origins(cfg.app.allowed_origins),
        allow_origin_regex=cfg.app.allowed_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(status_router)
    app.include_router(health_router)

    return app
