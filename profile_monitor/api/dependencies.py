"""
Dependency injection for FastAPI endpoints.

The monitor process owns the database pool, the scheduler and the engine
services; the app factory stores them on ``app.state`` and these helpers
hand them out.
"""

from fastapi import Request

from profile_monitor.monitor.checker import IdentityChecker
from profile_monitor.monitor.scheduler import Scheduler
from profile_monitor.storage.database import Database
from profile_monitor.tracking.service import TrackingService


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def get_tracking(request: Request) -> TrackingService:
    return request.app.state.tracking


def get_checker(request: Request) -> IdentityChecker:
    return request.app.state.checker
