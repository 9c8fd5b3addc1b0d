"""Schema definitions for observation history.

``Snapshot`` maps to the ``snapshots`` table (append-only profile
observations). ``MediaRecord`` maps to the ``media_events`` table, which
doubles as the dedup ledger for stories and posts.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from profile_monitor.ingestion.schemas import MediaKind

AvatarHashStatus = Literal["ok", "absent", "failed"]

VALID_AVATAR_HASH_STATUSES: frozenset[str] = frozenset({"ok", "absent", "failed"})


class MediaCategory(str, Enum):
    """Which poll loop produced a media record."""

    STORY = "story"
    POST = "post"


@dataclass
class Snapshot:
    """An immutable point-in-time observation of one identity.

    Attributes:
        identity: Canonical lowercase identity key.
        display_name: Full/display name.
        description: Bio text.
        avatar_url: Profile picture URL.
        avatar_hash: MD5 of the avatar bytes, when hashing succeeded.
        avatar_hash_status: ``ok`` (hashed), ``absent`` (no avatar) or
            ``failed`` (an avatar exists but could not be fetched).
        is_private / is_verified: Account flags.
        followers / following / posts: Counters.
        raw_payload: Provider response kept for audit.
        created_at: Observation time.
    """

    identity: str
    display_name: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    avatar_hash: str | None = None
    avatar_hash_status: str = "absent"
    is_private: bool | None = None
    is_verified: bool | None = None
    followers: int = 0
    following: int = 0
    posts: int = 0
    raw_payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.avatar_hash_status not in VALID_AVATAR_HASH_STATUSES:
            raise ValueError(
                f"Invalid avatar_hash_status {self.avatar_hash_status!r}. "
                f"Must be one of: {sorted(VALID_AVATAR_HASH_STATUSES)}"
            )

    def with_avatar_hash_from(self, previous: "Snapshot") -> "Snapshot":
        """Carry the previous known avatar hash over a failed hash attempt."""
        if self.avatar_hash_status != "failed":
            return self
        return replace(
            self,
            avatar_hash=previous.avatar_hash,
            avatar_hash_status=previous.avatar_hash_status,
        )


@dataclass
class MediaRecord:
    """A story or post observed for an identity.

    Unique on ``(identity, category, event_key)``. ``notified_targets``
    only ever grows.

    Attributes:
        baseline: Recorded while establishing the feed baseline for a newly
            tracked identity; never delivered.
    """

    identity: str
    category: MediaCategory
    event_key: str
    media_url: str
    media_kind: MediaKind
    caption: str | None = None
    content_timestamp: datetime | None = None
    first_seen_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    notified_targets: list[str] = field(default_factory=list)
    baseline: bool = False


def row_to_snapshot(row: Any) -> Snapshot:
    """Convert an asyncpg Record to a Snapshot."""
    raw_payload = row.get("raw_payload") or {}
    if isinstance(raw_payload, str):
        raw_payload = json.loads(raw_payload)

    return Snapshot(
        identity=row["identity"],
        display_name=row["display_name"],
        description=row["description"],
        avatar_url=row["avatar_url"],
        avatar_hash=row["avatar_hash"],
        avatar_hash_status=row["avatar_hash_status"],
        is_private=row["is_private"],
        is_verified=row["is_verified"],
        followers=row["followers"],
        following=row["following"],
        posts=row["posts"],
        raw_payload=raw_payload,
        created_at=row["created_at"],
    )


def row_to_media_record(row: Any) -> MediaRecord:
    """Convert an asyncpg Record to a MediaRecord."""
    return MediaRecord(
        identity=row["identity"],
        category=MediaCategory(row["category"]),
        event_key=row["event_key"],
        media_url=row["media_url"],
        media_kind=MediaKind(row["media_kind"]),
        caption=row.get("caption"),
        content_timestamp=row.get("content_timestamp"),
        first_seen_at=row["first_seen_at"],
        notified_targets=list(row.get("notified_targets") or []),
        baseline=row.get("baseline", False),
    )
