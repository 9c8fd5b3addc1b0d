"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends, Response, status

from profile_monitor import __version__
from profile_monitor.api.dependencies import get_database, get_scheduler
from profile_monitor.api.models import ComponentHealth, HealthResponse
from profile_monitor.monitor.scheduler import Scheduler, SchedulerState
from profile_monitor.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="up" if healthy else "down",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="down",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


def _check_scheduler(scheduler: Scheduler) -> ComponentHealth:
    snapshot = scheduler.status()
    state = scheduler.state
    if state == SchedulerState.RUNNING:
        component_status = "up"
    elif state == SchedulerState.INITIALIZING:
        component_status = "initializing"
    else:
        component_status = "down"
    return ComponentHealth(status=component_status, details={"loops": snapshot["loops"]})


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Report scheduler and database health. Returns 503 unless up.",
)
async def health_check(
    response: Response,
    db: Database = Depends(get_database),
    scheduler: Scheduler = Depends(get_scheduler),
) -> HealthResponse:
    """
    Status logic:
    - initializing: scheduler is probing its dependencies
    - down: scheduler stopped or database unreachable
    - up: scheduler running and database answering
    """
    components = {
        "database": await _check_database(db),
        "monitor": _check_scheduler(scheduler),
    }

    monitor_status = components["monitor"].status
    if monitor_status == "initializing":
        overall = "initializing"
    elif monitor_status == "up" and components["database"].status == "up":
        overall = "up"
    else:
        overall = "down"

    if overall != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("Health check not up", status=overall)

    return HealthResponse(status=overall, components=components, version=__version__)
