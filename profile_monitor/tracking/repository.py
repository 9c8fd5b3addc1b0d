"""Database repository for the subscriptions table."""

import logging

from profile_monitor.storage.database import Database, affected_rows
from profile_monitor.tracking.schemas import Subscription

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS subscriptions (
    identity    TEXT NOT NULL,
    target      TEXT NOT NULL,
    created_by  TEXT,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (identity, target)
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_target
    ON subscriptions(target);
"""

_INSERT_SQL = """
INSERT INTO subscriptions (identity, target, created_by)
VALUES ($1, $2, $3)
ON CONFLICT (identity, target) DO NOTHING
RETURNING identity
"""


def _record_to_subscription(record) -> Subscription:
    """Convert an asyncpg Record to a Subscription dataclass."""
    return Subscription(
        identity=record["identity"],
        target=record["target"],
        created_by=record["created_by"],
        created_at=record["created_at"],
    )


class SubscriptionRepository:
    """CRUD operations for the subscriptions table (the identity store)."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the subscriptions table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Subscriptions table ensured")

    async def ping(self) -> None:
        """Probe the store; raises when it is unreachable."""
        await self._db.fetchval("SELECT COUNT(*) FROM subscriptions")

    async def add(
        self,
        identity: str,
        target: str,
        created_by: str | None = None,
    ) -> bool:
        """Insert a subscription. Returns False if it already existed."""
        row = await self._db.fetchrow(_INSERT_SQL, identity, target, created_by)
        return row is not None

    async def remove(self, identity: str, target: str) -> bool:
        """Delete a subscription. Returns True if a row was deleted."""
        result = await self._db.execute(
            "DELETE FROM subscriptions WHERE identity = $1 AND target = $2",
            identity, target,
        )
        return affected_rows(result) > 0

    async def list_distinct_identities(self) -> list[str]:
        """All identities with at least one subscriber, in stable order."""
        rows = await self._db.fetch(
            "SELECT DISTINCT identity FROM subscriptions ORDER BY identity"
        )
        return [r["identity"] for r in rows]

    async def list_targets(self, identity: str) -> list[str]:
        """Distinct targets subscribed to an identity."""
        rows = await self._db.fetch(
            "SELECT target FROM subscriptions WHERE identity = $1 ORDER BY created_at, target",
            identity,
        )
        return [r["target"] for r in rows]

    async def list_subscriptions(self, identity: str) -> list[Subscription]:
        """Subscriptions of an identity, oldest first."""
        rows = await self._db.fetch(
            "SELECT * FROM subscriptions WHERE identity = $1 ORDER BY created_at, target",
            identity,
        )
        return [_record_to_subscription(r) for r in rows]

    async def count_subscribers(self, identity: str) -> int:
        """Number of targets subscribed to an identity."""
        return await self._db.fetchval(
            "SELECT COUNT(*) FROM subscriptions WHERE identity = $1",
            identity,
        ) or 0

    async def list_for_target(self, target: str) -> list[Subscription]:
        """Everything a target is subscribed to, alphabetically."""
        rows = await self._db.fetch(
            "SELECT * FROM subscriptions WHERE target = $1 ORDER BY identity",
            target,
        )
        return [_record_to_subscription(r) for r in rows]
