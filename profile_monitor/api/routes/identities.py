"""
Identity endpoints, served by the monitor process.

Adds, removes and one-off checks run here so they share the process's rate
limiter, new-identity suppression and per-identity write locks with the
poll loops. The CLI forwards to these routes whenever a monitor answers.
"""

from typing import Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from profile_monitor.api.dependencies import get_checker, get_tracking
from profile_monitor.api.models import (
    AddIdentityRequest,
    AddIdentityResponse,
    CheckResponse,
    ErrorResponse,
    RemoveIdentityResponse,
)
from profile_monitor.ingestion.schemas import FetchError
from profile_monitor.monitor.checker import IdentityChecker
from profile_monitor.tracking.schemas import InvalidIdentityError, normalize_identity
from profile_monitor.tracking.service import TrackingService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/identities",
    response_model=AddIdentityResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Track an identity for a target",
)
async def add_identity(
    body: AddIdentityRequest,
    tracking: TrackingService = Depends(get_tracking),
) -> AddIdentityResponse:
    try:
        result = await tracking.add(
            body.identity,
            body.target,
            created_by=body.created_by,
            run_checks=body.run_checks,
        )
    except InvalidIdentityError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return AddIdentityResponse(
        identity=result.identity, target=result.target, created=result.created
    )


@router.delete(
    "/identities/{identity}",
    response_model=RemoveIdentityResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Stop tracking an identity for a target",
)
async def remove_identity(
    identity: str,
    target: str = Query(..., min_length=1, description="Destination id"),
    tracking: TrackingService = Depends(get_tracking),
) -> RemoveIdentityResponse:
    try:
        result = await tracking.remove(identity, target)
    except InvalidIdentityError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return RemoveIdentityResponse(
        identity=result.identity,
        target=result.target,
        removed=result.removed,
        history_deleted=result.history_deleted,
    )


@router.post(
    "/identities/{identity}/check",
    response_model=CheckResponse,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Run one check for an identity now",
)
async def check_identity(
    identity: str,
    loop: Literal["profile", "stories", "posts"] = Query(default="profile"),
    checker: IdentityChecker = Depends(get_checker),
) -> CheckResponse:
    try:
        name = normalize_identity(identity)
    except InvalidIdentityError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        if loop == "profile":
            outcome = await checker.check_profile(name)
        elif loop == "stories":
            outcome = await checker.check_stories(name)
        else:
            outcome = await checker.check_feed(name)
    except FetchError as e:
        logger.warning("On-demand check failed", identity=name, loop=loop, error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return CheckResponse(identity=name, loop=loop, outcome=outcome)
