"""Repositories for profile snapshots and observed media events.

Snapshots are append-only. Media events are insert-if-absent on
``(identity, category, event_key)``; their ``notified_targets`` array only
grows, one atomic append per confirmed delivery.
"""

import json
import logging

import asyncpg

from profile_monitor.history.schemas import (
    MediaCategory,
    MediaRecord,
    Snapshot,
    row_to_media_record,
    row_to_snapshot,
)
from profile_monitor.storage.database import Database, affected_rows

logger = logging.getLogger(__name__)

_CREATE_SNAPSHOTS_SQL = """
CREATE TABLE IF NOT EXISTS snapshots (
    id                  BIGSERIAL PRIMARY KEY,
    identity            TEXT NOT NULL,
    display_name        TEXT,
    description         TEXT,
    avatar_url          TEXT,
    avatar_hash         TEXT,
    avatar_hash_status  TEXT NOT NULL DEFAULT 'absent',
    is_private          BOOLEAN,
    is_verified         BOOLEAN,
    followers           INTEGER NOT NULL DEFAULT 0,
    following           INTEGER NOT NULL DEFAULT 0,
    posts               INTEGER NOT NULL DEFAULT 0,
    raw_payload         JSONB NOT NULL DEFAULT '{}',
    created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_snapshots_identity_created
    ON snapshots(identity, created_at DESC, id DESC);
"""

_CREATE_MEDIA_EVENTS_SQL = """
CREATE TABLE IF NOT EXISTS media_events (
    id                 BIGSERIAL PRIMARY KEY,
    identity           TEXT NOT NULL,
    category           TEXT NOT NULL,
    event_key          TEXT NOT NULL,
    media_url          TEXT NOT NULL,
    media_kind         TEXT NOT NULL,
    caption            TEXT,
    content_timestamp  TIMESTAMPTZ,
    first_seen_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    notified_targets   TEXT[] NOT NULL DEFAULT '{}',
    baseline           BOOLEAN NOT NULL DEFAULT FALSE,
    UNIQUE (identity, category, event_key)
);

CREATE INDEX IF NOT EXISTS idx_media_events_identity
    ON media_events(identity, category);
"""

_INSERT_SNAPSHOT_SQL = """
INSERT INTO snapshots (
    identity, display_name, description, avatar_url, avatar_hash,
    avatar_hash_status, is_private, is_verified, followers, following,
    posts, raw_payload, created_at
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
RETURNING *
"""

_INSERT_MEDIA_EVENT_SQL = """
INSERT INTO media_events (
    identity, category, event_key, media_url, media_kind,
    caption, content_timestamp, first_seen_at, baseline
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
ON CONFLICT (identity, category, event_key) DO NOTHING
RETURNING *
"""

_ADD_NOTIFIED_SQL = """
UPDATE media_events
SET notified_targets = array_append(notified_targets, $4)
WHERE identity = $1 AND category = $2 AND event_key = $3
  AND NOT ($4 = ANY(notified_targets))
RETURNING id
"""


class SnapshotRepository:
    """Append-only storage for profile snapshots."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the snapshots table and indexes (idempotent)."""
        await self._db.execute(_CREATE_SNAPSHOTS_SQL)
        logger.info("Snapshots table ensured")

    async def latest(self, identity: str) -> Snapshot | None:
        """Most recent snapshot of an identity, ties broken by insert order."""
        row = await self._db.fetchrow(
            """
            SELECT * FROM snapshots WHERE identity = $1
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            identity,
        )
        return row_to_snapshot(row) if row else None

    async def append(self, snapshot: Snapshot) -> Snapshot:
        """Insert a new snapshot row."""
        row = await self._db.fetchrow(
            _INSERT_SNAPSHOT_SQL,
            snapshot.identity,
            snapshot.display_name,
            snapshot.description,
            snapshot.avatar_url,
            snapshot.avatar_hash,
            snapshot.avatar_hash_status,
            snapshot.is_private,
            snapshot.is_verified,
            snapshot.followers,
            snapshot.following,
            snapshot.posts,
            json.dumps(snapshot.raw_payload),
            snapshot.created_at,
        )
        return row_to_snapshot(row)

    async def recent(self, identity: str, limit: int = 10) -> list[Snapshot]:
        """Newest-first snapshots of an identity."""
        rows = await self._db.fetch(
            """
            SELECT * FROM snapshots WHERE identity = $1
            ORDER BY created_at DESC, id DESC
            LIMIT $2
            """,
            identity, limit,
        )
        return [row_to_snapshot(r) for r in rows]

    async def delete_for_identity(
        self, identity: str, conn: asyncpg.Connection | None = None
    ) -> int:
        """Delete every snapshot of an identity. Returns rows deleted.

        Pass ``conn`` to run inside a caller-owned transaction.
        """
        result = await (conn or self._db).execute(
            "DELETE FROM snapshots WHERE identity = $1", identity,
        )
        return affected_rows(result)


class MediaEventRepository:
    """Storage for story and post observations (the dedup ledger's table)."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the media_events table and indexes (idempotent)."""
        await self._db.execute(_CREATE_MEDIA_EVENTS_SQL)
        logger.info("Media events table ensured")

    async def insert_if_absent(self, record: MediaRecord) -> MediaRecord | None:
        """Insert a record unless its key exists. Returns None on conflict."""
        row = await self._db.fetchrow(
            _INSERT_MEDIA_EVENT_SQL,
            record.identity,
            record.category.value,
            record.event_key,
            record.media_url,
            record.media_kind.value,
            record.caption,
            record.content_timestamp,
            record.first_seen_at,
            record.baseline,
        )
        return row_to_media_record(row) if row else None

    async def exists(
        self, identity: str, category: MediaCategory, event_key: str
    ) -> bool:
        return bool(
            await self._db.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM media_events
                    WHERE identity = $1 AND category = $2 AND event_key = $3
                )
                """,
                identity, category.value, event_key,
            )
        )

    async def get(
        self, identity: str, category: MediaCategory, event_key: str
    ) -> MediaRecord | None:
        row = await self._db.fetchrow(
            """
            SELECT * FROM media_events
            WHERE identity = $1 AND category = $2 AND event_key = $3
            """,
            identity, category.value, event_key,
        )
        return row_to_media_record(row) if row else None

    async def add_notified(
        self,
        identity: str,
        category: MediaCategory,
        event_key: str,
        target: str,
    ) -> bool:
        """Atomically append a target. Returns True only if newly added."""
        row = await self._db.fetchrow(
            _ADD_NOTIFIED_SQL, identity, category.value, event_key, target,
        )
        return row is not None

    async def has_any(self, identity: str, category: MediaCategory) -> bool:
        """Whether any record of this category exists for the identity."""
        return bool(
            await self._db.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM media_events WHERE identity = $1 AND category = $2
                )
                """,
                identity, category.value,
            )
        )

    async def delete_for_identity(
        self, identity: str, conn: asyncpg.Connection | None = None
    ) -> int:
        """Delete every media record of an identity. Returns rows deleted."""
        result = await (conn or self._db).execute(
            "DELETE FROM media_events WHERE identity = $1", identity,
        )
        return affected_rows(result)


async def delete_identity_history(database: Database, identity: str) -> tuple[int, int]:
    """
    Purge snapshots and media records of an identity in one transaction.

    Returns:
        (snapshots_deleted, media_events_deleted)
    """
    async with database.transaction() as conn:
        snapshots = await SnapshotRepository(database).delete_for_identity(identity, conn)
        media = await MediaEventRepository(database).delete_for_identity(identity, conn)
    logger.info(f"Deleted history for @{identity}")
    return snapshots, media
