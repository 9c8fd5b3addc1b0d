"""
FastAPI application factory.
"""

import time

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from profile_monitor import __version__
from profile_monitor.api.routes import health, identities
from profile_monitor.monitor.checker import IdentityChecker
from profile_monitor.monitor.scheduler import Scheduler
from profile_monitor.storage.database import Database
from profile_monitor.tracking.service import TrackingService

logger = structlog.get_logger(__name__)


def create_app(
    scheduler: Scheduler,
    database: Database,
    tracking: TrackingService | None = None,
    checker: IdentityChecker | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        scheduler: The process's scheduler, reported by /health.
        database: Connected database, probed by /health.
        tracking: Enables the /identities routes together with ``checker``.
        checker: The process's checker, used for on-demand checks.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Profile Monitor",
        description="Health, status and tracked identities of the profile monitor.",
        version=__version__,
        docs_url="/docs",
        redoc_url=None,
        openapi_tags=[
            {"name": "health", "description": "Service health checks"},
            {"name": "identities", "description": "Tracked identities"},
        ],
    )
    app.state.scheduler = scheduler
    app.state.database = database
    app.state.tracking = tracking
    app.state.checker = checker

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time
        logger.debug(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    if tracking is not None and checker is not None:
        app.include_router(identities.router, tags=["identities"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Profile Monitor",
            "version": __version__,
            "state": scheduler.state.value,
        }

    return app
