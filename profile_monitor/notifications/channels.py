"""Notification transports.

Provides an ABC for transports plus a Telegram Bot API implementation and
a logging-only fallback used when no bot token is configured. Transports
report failures as ``False``; they never raise for delivery problems.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from profile_monitor.ingestion.schemas import MediaKind
from profile_monitor.notifications.config import NotificationConfig

logger = logging.getLogger(__name__)


def truncate(text: str, limit: int) -> str:
    """Cut text to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class NotificationTransport(ABC):
    """Abstract base for notification transports."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier for this transport (e.g. 'telegram')."""

    @abstractmethod
    async def send_rich(
        self,
        target: str,
        media_url: str,
        media_kind: MediaKind,
        caption: str,
    ) -> bool:
        """Deliver a photo or video with a caption.

        Returns:
            True if delivery succeeded, False otherwise.
        """

    @abstractmethod
    async def send_text(self, target: str, text: str) -> bool:
        """Deliver a plain text message.

        Returns:
            True if delivery succeeded, False otherwise.
        """


class TelegramTransport(NotificationTransport):
    """Delivers notifications through the Telegram Bot API.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    Media is sent by URL; Telegram fetches it server-side.
    """

    def __init__(
        self,
        token: str,
        api_base: str = "https://api.telegram.org",
        config: NotificationConfig | None = None,
    ) -> None:
        self._base_url = f"{api_base.rstrip('/')}/bot{token}"
        self._config = config or NotificationConfig()

    @property
    def name(self) -> str:
        return "telegram"

    async def _call(self, method: str, target: str, payload: dict[str, Any]) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                resp = await client.post(f"{self._base_url}/{method}", json=payload)
            if resp.is_success and resp.json().get("ok"):
                return True
            logger.warning(
                "Telegram %s returned %d for target %s: %s",
                method, resp.status_code, target, resp.text[:200],
            )
            return False
        except httpx.TimeoutException:
            logger.warning("Telegram %s timed out for target %s", method, target)
            return False
        except Exception as e:
            logger.warning("Telegram %s failed for target %s: %s", method, target, e)
            return False

    async def send_rich(
        self,
        target: str,
        media_url: str,
        media_kind: MediaKind,
        caption: str,
    ) -> bool:
        if media_kind == MediaKind.VIDEO:
            method, field = "sendVideo", "video"
        else:
            method, field = "sendPhoto", "photo"
        payload = {
            "chat_id": target,
            field: media_url,
            "caption": truncate(caption, self._config.caption_limit),
            "parse_mode": self._config.parse_mode,
        }
        return await self._call(method, target, payload)

    async def send_text(self, target: str, text: str) -> bool:
        payload = {
            "chat_id": target,
            "text": truncate(text, self._config.text_limit),
            "parse_mode": self._config.parse_mode,
            "disable_web_page_preview": True,
        }
        return await self._call("sendMessage", target, payload)


class LoggingTransport(NotificationTransport):
    """Writes notifications to the log instead of delivering them."""

    @property
    def name(self) -> str:
        return "log"

    async def send_rich(
        self,
        target: str,
        media_url: str,
        media_kind: MediaKind,
        caption: str,
    ) -> bool:
        logger.info(
            "[%s -> %s] %s %s\n%s", self.name, target, media_kind.value, media_url, caption,
        )
        return True

    async def send_text(self, target: str, text: str) -> bool:
        logger.info("[%s -> %s] %s", self.name, target, text)
        return True
