"""Notification delivery configuration.

All settings can be overridden via ``NOTIFICATIONS_*`` environment
variables.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationConfig(BaseSettings):
    """Configuration for the notification transport."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout for the bot API (media uploads by URL are slow)",
    )
    parse_mode: Literal["Markdown", "MarkdownV2", "HTML"] = Field(
        default="Markdown",
        description="Formatting mode for captions and messages",
    )
    caption_limit: int = Field(
        default=1024,
        ge=1,
        description="Maximum caption length for photo/video messages",
    )
    text_limit: int = Field(
        default=4096,
        ge=1,
        description="Maximum length of a text message",
    )
