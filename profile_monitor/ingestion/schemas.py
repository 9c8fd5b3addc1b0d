"""
Output contract of the upstream fetchers.

The profile client produces ``Snapshot`` records (see ``history.schemas``);
the media client produces ``StoryItem`` / ``FeedItem`` values defined here.
Each media item carries a stable, identity-scoped ``event_key`` that the
dedup ledger uses as its uniqueness key.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlsplit, urlunsplit


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class MediaKind(str, Enum):
    """Kind of media attached to a story or post."""

    PHOTO = "photo"
    VIDEO = "video"


class FetchError(Exception):
    """Transient failure talking to the upstream provider.

    Covers timeouts, non-2xx responses and malformed payloads. The
    identity is skipped for the current cycle and retried on the next.
    """

    def __init__(self, identity: str, message: str):
        super().__init__(f"{identity}: {message}")
        self.identity = identity


def stable_hash(value: str) -> str:
    """
    Generate a stable, deterministic hash from a string.

    Uses SHA256 truncated to 16 hex characters (64 bits). Unlike Python's
    built-in hash(), this is deterministic across process restarts.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def media_key(url: str) -> str:
    """
    Derive a dedup key from a media URL.

    CDN links carry per-request signatures in the query string, so only
    scheme, host and path take part in the key.
    """
    parts = urlsplit(url.strip())
    return stable_hash(urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")))


@dataclass
class StoryItem:
    """The currently active piece of ephemeral media for an identity."""

    identity: str
    media_url: str
    media_kind: MediaKind
    fetched_at: datetime = field(default_factory=_utc_now)

    @property
    def event_key(self) -> str:
        return media_key(self.media_url)


@dataclass
class FeedItem:
    """
    A durable feed post.

    Attributes:
        identity: Owning identity.
        media_url: Download link for the post media.
        media_kind: photo or video.
        caption: Post caption, if any.
        timestamp: Content timestamp (approximate when the provider only
            reports relative times such as "3 days ago").
        item_id: Provider id; derived from the media URL when absent.
    """

    identity: str
    media_url: str
    media_kind: MediaKind = MediaKind.PHOTO
    caption: str | None = None
    timestamp: datetime = field(default_factory=_utc_now)
    item_id: str | None = None

    def __post_init__(self) -> None:
        if not self.item_id:
            self.item_id = media_key(self.media_url)

    @property
    def event_key(self) -> str:
        return self.item_id
