"""
Profile data client.

Fetches the public profile of an identity from the upstream provider and
turns it into a ``Snapshot``. The avatar image is downloaded and hashed
(MD5 of the bytes) under its own timeout so URL churn on the CDN does not
look like a picture change.
"""

import hashlib
import logging
from typing import Any

import httpx

from profile_monitor.config.settings import get_settings
from profile_monitor.history.schemas import Snapshot
from profile_monitor.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig
from profile_monitor.ingestion.schemas import FetchError

logger = logging.getLogger(__name__)

PROVIDER_HEADERS = {
    "Origin": "https://www.tucktools.com",
    "Referer": "https://www.tucktools.com/",
    "User-Agent": "Mozilla/5.0 (compatible; InstagramMonitorBot/1.0)",
}


def _to_int(value: Any) -> int:
    """Parse provider counters, which may arrive as strings."""
    try:
        return int(str(value).replace(",", "").strip())
    except (TypeError, ValueError):
        return 0


class ProfileClient:
    """
    Client for the profile endpoint.

    Usage:
        client = ProfileClient()
        snapshot = await client.fetch_profile("alpha")
    """

    def __init__(
        self,
        api_url: str | None = None,
        timeout: float = 15.0,
        image_timeout: float = 10.0,
        retry_config: RetryConfig | None = None,
    ):
        settings = get_settings()
        self._api_url = api_url or settings.profile_api_url
        self._timeout = timeout
        self._image_timeout = image_timeout
        self._retry_config = retry_config or RetryConfig(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        )

    async def fetch_profile(self, identity: str) -> Snapshot | None:
        """
        Fetch the current profile observation.

        Returns:
            Snapshot, or None when the provider reports the profile as not
            found.

        Raises:
            FetchError: On timeouts, non-2xx responses or malformed payloads.
        """
        try:
            async with HTTPClient(
                retry_config=self._retry_config,
                timeout=self._timeout,
                headers=PROVIDER_HEADERS,
            ) as client:
                response = await client.get(self._api_url, params={"username": identity})
            payload = response.json()
        except HTTPClientError as e:
            raise FetchError(identity, f"profile request failed: {e}") from e
        except ValueError as e:
            raise FetchError(identity, "profile response is not JSON") from e

        if not isinstance(payload, dict):
            raise FetchError(identity, "profile response is not an object")

        if payload.get("status") is not True:
            logger.debug(f"Provider has no profile for @{identity}")
            return None

        snapshot = self.parse_profile(identity, payload)
        if snapshot.avatar_url:
            avatar_hash = await self.hash_avatar(snapshot.avatar_url)
            snapshot.avatar_hash = avatar_hash
            snapshot.avatar_hash_status = "ok" if avatar_hash else "failed"
        return snapshot

    @staticmethod
    def parse_profile(identity: str, payload: dict[str, Any]) -> Snapshot:
        """Map a successful provider payload onto a Snapshot (avatar not hashed)."""
        return Snapshot(
            identity=identity,
            display_name=payload.get("user_fullname") or None,
            description=payload.get("user_description") or None,
            avatar_url=payload.get("user_profile_pic") or None,
            avatar_hash=None,
            avatar_hash_status="absent",
            is_private=payload.get("is_private") is True,
            is_verified=payload.get("is_verified") is True,
            followers=_to_int(payload.get("user_followers")),
            following=_to_int(payload.get("user_following")),
            posts=_to_int(payload.get("total_posts")),
            raw_payload=payload,
        )

    async def hash_avatar(self, url: str) -> str | None:
        """MD5 of the avatar bytes, or None when the image cannot be fetched."""
        try:
            async with httpx.AsyncClient(
                timeout=self._image_timeout, follow_redirects=True
            ) as client:
                response = await client.get(url)
            if response.status_code != 200 or not response.content:
                logger.warning(f"Avatar fetch returned {response.status_code}")
                return None
            return hashlib.md5(response.content).hexdigest()
        except httpx.TimeoutException:
            logger.warning("Avatar fetch timed out")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching avatar: {e}")
            return None
