"""
Request and response models for the monitor API.
"""

from typing import Any

from pydantic import BaseModel, Field


class ComponentHealth(BaseModel):
    """Health of one dependency."""

    status: str = Field(..., description="up, down or initializing")
    latency_ms: float | None = Field(default=None, description="Probe latency")
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall status: up, down or initializing",
    )
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    version: str = Field(..., description="Service version")


class ErrorResponse(BaseModel):
    """Error body returned by the identity endpoints."""

    detail: str


class AddIdentityRequest(BaseModel):
    """Request body for tracking an identity."""

    identity: str = Field(..., min_length=1, description="Account name, '@' optional")
    target: str = Field(..., min_length=1, description="Destination id to notify")
    created_by: str | None = Field(default=None, description="Who asked for it")
    run_checks: bool = Field(default=True, description="Run the immediate checks")


class AddIdentityResponse(BaseModel):
    identity: str
    target: str
    created: bool


class RemoveIdentityResponse(BaseModel):
    identity: str
    target: str
    removed: bool
    history_deleted: bool = False


class CheckResponse(BaseModel):
    """Result of a one-off check run inside the monitor process."""

    identity: str
    loop: str
    outcome: bool | int | str = Field(
        ...,
        description="Profile outcome, story recorded flag or new post count",
    )
