"""
Story and feed media client.

The media provider answers with a JSON envelope ``{"status": ..., "html":
...}``; the HTML fragment is handed to ``parsing`` for extraction.
"""

import logging
from typing import Any

from profile_monitor.config.settings import get_settings
from profile_monitor.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig
from profile_monitor.ingestion.parsing import extract_posts, extract_story_media
from profile_monitor.ingestion.schemas import FeedItem, FetchError, StoryItem

logger = logging.getLogger(__name__)


class MediaClient:
    """Client for the story and post endpoints."""

    def __init__(
        self,
        api_url: str | None = None,
        story_timeout: float = 15.0,
        post_timeout: float = 10.0,
        retry_config: RetryConfig | None = None,
    ):
        settings = get_settings()
        self._api_url = api_url or settings.media_api_url
        self._story_timeout = story_timeout
        self._post_timeout = post_timeout
        self._retry_config = retry_config or RetryConfig(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        )

    async def _get_envelope(
        self,
        identity: str,
        method: str,
        timeout: float,
    ) -> dict[str, Any]:
        try:
            async with HTTPClient(
                retry_config=self._retry_config,
                timeout=timeout,
            ) as client:
                response = await client.get(
                    self._api_url,
                    params={"url": identity, "method": method},
                )
            payload = response.json()
        except HTTPClientError as e:
            raise FetchError(identity, f"{method} request failed: {e}") from e
        except ValueError as e:
            raise FetchError(identity, f"{method} response is not JSON") from e

        if not isinstance(payload, dict):
            raise FetchError(identity, f"{method} response is not an object")
        return payload

    async def fetch_story(self, identity: str) -> StoryItem | None:
        """
        Fetch the currently active story.

        Returns:
            StoryItem, or None when the identity has no active stories.

        Raises:
            FetchError: On transport errors, provider errors, or when the
                story markup holds no media link.
        """
        payload = await self._get_envelope(
            identity, "allstories", self._story_timeout
        )

        status = payload.get("status")
        if status == "ok" and payload.get("html"):
            media = extract_story_media(payload["html"])
            if media is None:
                raise FetchError(identity, "no media URL found in story HTML")
            media_url, media_kind = media
            return StoryItem(identity=identity, media_url=media_url, media_kind=media_kind)

        message = str(payload.get("msg") or "")
        if status == "error" and "no stories" in message.lower():
            logger.debug(f"No active stories for @{identity}")
            return None

        raise FetchError(identity, message or "unknown error from story API")

    async def fetch_posts(self, identity: str) -> list[FeedItem]:
        """
        Fetch the recent feed posts, newest first as the provider orders them.

        Raises:
            FetchError: On transport errors or a non-ok envelope.
        """
        payload = await self._get_envelope(identity, "allposts", self._post_timeout)

        if payload.get("status") != "ok" or not payload.get("html"):
            raise FetchError(identity, str(payload.get("msg") or "failed to fetch posts"))

        items = extract_posts(payload["html"], identity)
        logger.debug(f"Parsed {len(items)} posts for @{identity}")
        return items
