"""
Dedup ledger for media events.

Backed by ``MediaEventRepository``. Guarantees that an event is recorded
once per ``(identity, category, event_key)`` and that each target is
marked notified at most once. Delivery is send-then-mark, so a crash
between the two can re-send at most one message per target; it never
loses one that a later cycle could still deliver.
"""

import logging
from datetime import datetime, timedelta, timezone

from profile_monitor.history.repository import MediaEventRepository
from profile_monitor.history.schemas import MediaCategory, MediaRecord
from profile_monitor.tracking.schemas import Subscription

logger = logging.getLogger(__name__)


class DedupLedger:
    """Idempotent record-then-mark bookkeeping for stories and posts."""

    def __init__(
        self,
        repository: MediaEventRepository,
        pending_retry_hours: int = 24,
    ) -> None:
        self._repo = repository
        self._retry_window = timedelta(hours=pending_retry_hours)

    async def should_process(
        self, identity: str, category: MediaCategory, event_key: str
    ) -> bool:
        """
        True iff no record exists for this key yet.

        A cheap pre-check; ``record_seen`` stays the authoritative answer when
        two writers race on the same key.
        """
        return not await self._repo.exists(identity, category, event_key)

    async def record_seen(self, record: MediaRecord) -> bool:
        """
        Insert the record if its key is new.

        Returns:
            True if this call created the record, False if it was already
            seen. A uniqueness conflict is never an error.
        """
        created = await self._repo.insert_if_absent(record)
        if created is None:
            logger.debug(
                f"{record.category.value} {record.event_key} for @{record.identity} already seen"
            )
            return False
        record.first_seen_at = created.first_seen_at
        return True

    async def get(
        self, identity: str, category: MediaCategory, event_key: str
    ) -> MediaRecord | None:
        return await self._repo.get(identity, category, event_key)

    async def mark_notified(self, record: MediaRecord, target: str) -> bool:
        """Append ``target`` to the notified set. True only if newly added."""
        added = await self._repo.add_notified(
            record.identity, record.category, record.event_key, target,
        )
        if added and target not in record.notified_targets:
            record.notified_targets.append(target)
        return added

    async def has_history(self, identity: str, category: MediaCategory) -> bool:
        return await self._repo.has_any(identity, category)

    async def pending_targets(
        self,
        record: MediaRecord,
        subscriptions: list[Subscription],
        now: datetime | None = None,
    ) -> list[str]:
        """
        Targets still owed this event.

        A target is owed the event when it subscribed no later than the
        event was first seen and is not in the notified set. Baseline
        records and records older than the retry window owe nothing.
        """
        stored = await self._repo.get(record.identity, record.category, record.event_key)
        if stored is None or stored.baseline:
            return []

        now = now or datetime.now(timezone.utc)
        if now - stored.first_seen_at > self._retry_window:
            return []

        notified = set(stored.notified_targets)
        pending: list[str] = []
        for sub in subscriptions:
            if sub.target in notified or sub.target in pending:
                continue
            if sub.created_at > stored.first_seen_at:
                continue
            pending.append(sub.target)
        return pending
