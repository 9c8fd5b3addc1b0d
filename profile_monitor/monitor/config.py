"""Monitoring engine configuration.

Controls poll intervals, pacing between identities, upstream timeouts,
suppression windows and shutdown behaviour. All settings can be
overridden via ``MONITOR_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitorConfig(BaseSettings):
    """Configuration for the scheduler and per-identity checks."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_",
        case_sensitive=False,
        extra="ignore",
    )

    # Poll intervals
    profile_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between profile check cycles",
    )
    story_interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds between story check cycles",
    )
    post_interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds between post check cycles",
    )

    # Shared provider budget
    rate_limit_interval_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Minimum spacing between upstream requests across all loops",
    )

    # Pacing between identities within a cycle: base + uniform(0, jitter)
    profile_delay_seconds: float = Field(default=30.0, ge=0)
    profile_jitter_seconds: float = Field(default=0.5, ge=0)
    media_delay_seconds: float = Field(default=2.0, ge=0)
    media_jitter_seconds: float = Field(default=1.0, ge=0)

    # Upstream timeouts
    api_timeout_seconds: float = Field(default=15.0, gt=0)
    image_fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    story_timeout_seconds: float = Field(default=15.0, gt=0)
    post_timeout_seconds: float = Field(default=10.0, gt=0)

    # Suppression windows
    new_identity_grace_seconds: float = Field(
        default=90.0,
        ge=0,
        description="Suppress the initial-data notification this long after an add",
    )
    post_check_cooldown_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Minimum spacing of profile-triggered feed checks per identity",
    )
    cache_max_entries: int = Field(
        default=10000,
        ge=1,
        description="Upper bound on entries held by each expiring cache",
    )

    # Delivery resume
    pending_retry_hours: int = Field(
        default=24,
        ge=1,
        le=168,
        description="Retry un-notified targets of a media event for this long",
    )

    shutdown_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="How long stop() waits for in-flight cycles before cancelling",
    )
