"""
Per-identity checks run by the poll loops.

Each check follows the same shape: pace through the shared rate limiter,
fetch, compare against what is stored, then persist and notify. The
persist-and-notify phase runs shielded so a scheduler shutdown never
interrupts a write half way.
"""

import asyncio
from collections import defaultdict
from typing import Literal

import structlog

from profile_monitor.config.settings import get_settings
from profile_monitor.history.repository import SnapshotRepository
from profile_monitor.history.schemas import MediaCategory, MediaRecord, Snapshot
from profile_monitor.ingestion.media_client import MediaClient
from profile_monitor.ingestion.profile_client import ProfileClient
from profile_monitor.ingestion.rate_limiter import RateLimiter
from profile_monitor.ingestion.schemas import FeedItem, MediaKind, StoryItem
from profile_monitor.monitor.changes import ChangeSet, diff
from profile_monitor.monitor.ledger import DedupLedger
from profile_monitor.monitor.suppression import ExpiringCache, NewIdentitySuppression
from profile_monitor.notifications import messages
from profile_monitor.notifications.notifier import Notifier
from profile_monitor.notifications.schemas import Notification
from profile_monitor.observability.metrics import get_metrics
from profile_monitor.tracking.repository import SubscriptionRepository

logger = structlog.get_logger(__name__)

ProfileOutcome = Literal["changed", "unchanged", "not_found", "untracked"]


def _replaces_failed_avatar_hash(current: Snapshot, previous: Snapshot | None) -> bool:
    """A stored ``failed`` hash that a fresh fetch can now replace."""
    return (
        previous is not None
        and previous.avatar_hash_status == "failed"
        and current.avatar_hash_status != "failed"
    )


class IdentityChecker:
    """
    Runs profile, story and feed checks for one identity at a time.

    Story and feed checks of the same identity never overlap (a per-identity
    lock per category), whether they come from a poll loop or from a
    profile-triggered feed check.

    Every write happens under ``identity_lock(identity)`` and only while the
    identity still has subscribers. ``TrackingService.remove`` takes the same
    lock around its cascade delete, so a check that was already under way
    cannot leave history behind for an identity nobody tracks.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        profile_client: ProfileClient,
        media_client: MediaClient,
        subscriptions: SubscriptionRepository,
        snapshots: SnapshotRepository,
        ledger: DedupLedger,
        notifier: Notifier,
        suppression: NewIdentitySuppression,
        feed_cooldown: ExpiringCache,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._profile_client = profile_client
        self._media_client = media_client
        self._subscriptions = subscriptions
        self._snapshots = snapshots
        self._ledger = ledger
        self._notifier = notifier
        self._suppression = suppression
        self._feed_cooldown = feed_cooldown
        self._media_locks: defaultdict[tuple[str, MediaCategory], asyncio.Lock] = (
            defaultdict(asyncio.Lock)
        )
        self._identity_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._metrics = get_metrics()

    @property
    def suppression(self) -> NewIdentitySuppression:
        return self._suppression

    def identity_lock(self, identity: str) -> asyncio.Lock:
        """Lock serializing history writes and cascade deletes of one identity."""
        return self._identity_locks[identity]

    def _profile_url(self, identity: str) -> str:
        return get_settings().profile_url(identity)

    # ── Profile ─────────────────────────────────────────────

    async def check_profile(
        self,
        identity: str,
        force_initial_notification: bool = False,
    ) -> ProfileOutcome:
        """
        Fetch the profile, persist it if it changed and notify subscribers.

        Raises:
            FetchError: When the provider call fails; nothing is written.
        """
        await self._rate_limiter.acquire()
        current = await self._profile_client.fetch_profile(identity)
        if current is None:
            logger.debug("Profile not found", identity=identity)
            self._metrics.record_check("profile", "not_found")
            return "not_found"

        outcome, changes = await asyncio.shield(
            self._record_profile(current, force_initial_notification)
        )
        self._metrics.record_check("profile", outcome)

        if outcome == "changed" and changes.posts_delta > 0:
            await self.check_feed_triggered(identity)
        return outcome

    async def _record_profile(
        self,
        current: Snapshot,
        force_initial_notification: bool,
    ) -> tuple[ProfileOutcome, ChangeSet]:
        identity = current.identity
        async with self.identity_lock(identity):
            previous = await self._snapshots.latest(identity)
            changes = diff(current, previous)

            if not changes.changed:
                if _replaces_failed_avatar_hash(current, previous):
                    if not await self._still_tracked(identity):
                        return "untracked", changes
                    # Known hash replaces a failed baseline, nobody is told
                    await self._snapshots.append(current)
                    self._metrics.record_snapshot()
                    logger.info("Avatar baseline refreshed", identity=identity)
                return "unchanged", changes

            if not await self._still_tracked(identity):
                return "untracked", changes

            if previous is not None:
                current = current.with_avatar_hash_from(previous)
            await self._persist_profile(
                current, previous, changes, force_initial_notification
            )
            return "changed", changes

    async def _still_tracked(self, identity: str) -> bool:
        if await self._subscriptions.count_subscribers(identity) > 0:
            return True
        logger.info("Identity no longer tracked, nothing written", identity=identity)
        return False

    async def _persist_profile(
        self,
        current: Snapshot,
        previous: Snapshot | None,
        changes: ChangeSet,
        force_initial_notification: bool,
    ) -> None:
        identity = current.identity
        await self._snapshots.append(current)
        self._metrics.record_snapshot()
        url = self._profile_url(identity)

        if previous is not None:
            logger.info("Profile changed", identity=identity, signals=changes.signals)
            text = messages.format_change_summary(changes, current, previous, url)
            await self._notifier.notify(identity, Notification(text=text))
            return

        subscriptions = await self._subscriptions.list_subscriptions(identity)
        added_at = max((s.created_at for s in subscriptions), default=None)
        if self._suppression.should_suppress(
            identity, force=force_initial_notification, added_at=added_at
        ):
            logger.info("Initial data notification suppressed", identity=identity)
            return

        logger.info("First observation", identity=identity)
        text = messages.format_initial_data(current, url)
        notification = Notification(
            text=text,
            media_url=current.avatar_url,
            media_kind=MediaKind.PHOTO if current.avatar_url else None,
            fallback_text=text,
        )
        await self._notifier.notify(identity, notification)

    # ── Stories ─────────────────────────────────────────────

    async def check_stories(self, identity: str) -> bool:
        """
        Fetch the active story and announce it if it is new.

        Returns:
            True if a new story was recorded.

        Raises:
            FetchError: When the provider call fails.
        """
        async with self._media_locks[(identity, MediaCategory.STORY)]:
            await self._rate_limiter.acquire()
            story = await self._media_client.fetch_story(identity)
            if story is None:
                self._metrics.record_check("stories", "not_found")
                return False

            record = self._story_record(story)
            outcome = await asyncio.shield(self._handle_story(story, record))
            self._metrics.record_check("stories", outcome)
            return outcome == "changed"

    @staticmethod
    def _story_record(story: StoryItem) -> MediaRecord:
        return MediaRecord(
            identity=story.identity,
            category=MediaCategory.STORY,
            event_key=story.event_key,
            media_url=story.media_url,
            media_kind=story.media_kind,
            first_seen_at=story.fetched_at,
        )

    async def _handle_story(self, story: StoryItem, record: MediaRecord) -> str:
        identity = story.identity
        async with self.identity_lock(identity):
            if not await self._still_tracked(identity):
                return "untracked"

            # Known keys skip the insert; record_seen still settles races
            created = False
            if await self._ledger.should_process(
                identity, MediaCategory.STORY, record.event_key
            ):
                created = await self._ledger.record_seen(record)
            self._metrics.record_media_event("story", "new" if created else "seen")
            if created:
                logger.info("New story", identity=identity, kind=story.media_kind.value)

            # Seen records are re-offered so targets missed by a failed send catch up
            caption = messages.format_story(story, self._profile_url(identity))
            notification = Notification(
                text=caption,
                media_url=story.media_url,
                media_kind=story.media_kind,
            )
            await self._notifier.notify(identity, notification, event=record)
            return "changed" if created else "unchanged"

    # ── Feed ────────────────────────────────────────────────

    async def check_feed_triggered(self, identity: str) -> int:
        """Feed check caused by a rising posts counter, rate-limited per identity."""
        if self._feed_cooldown.contains(identity):
            logger.debug("Feed check cooling down", identity=identity)
            return 0
        self._feed_cooldown.put(identity)
        try:
            return await self.check_feed(identity)
        except Exception as e:
            logger.warning("Triggered feed check failed", identity=identity, error=str(e))
            return 0

    async def check_feed(self, identity: str) -> int:
        """
        Fetch recent posts and announce the ones not seen before.

        The first feed observation of an identity is recorded as baseline
        and announced to nobody.

        Returns:
            Number of newly recorded, announceable posts.

        Raises:
            FetchError: When the provider call fails.
        """
        async with self._media_locks[(identity, MediaCategory.POST)]:
            await self._rate_limiter.acquire()
            items = await self._media_client.fetch_posts(identity)
            new_count = await asyncio.shield(self._handle_feed(identity, items))
            self._metrics.record_check("posts", "changed" if new_count else "unchanged")
            return new_count

    async def _handle_feed(self, identity: str, items: list[FeedItem]) -> int:
        async with self.identity_lock(identity):
            if not await self._still_tracked(identity):
                return 0
            return await self._record_feed(identity, items)

    async def _record_feed(self, identity: str, items: list[FeedItem]) -> int:
        baseline = not await self._ledger.has_history(identity, MediaCategory.POST)
        url = self._profile_url(identity)
        new_count = 0

        # Provider lists newest first; announce in chronological order
        for item in reversed(items):
            record = MediaRecord(
                identity=identity,
                category=MediaCategory.POST,
                event_key=item.event_key,
                media_url=item.media_url,
                media_kind=item.media_kind,
                caption=item.caption,
                content_timestamp=item.timestamp,
                baseline=baseline,
            )
            created = await self._ledger.record_seen(record)
            if baseline:
                self._metrics.record_media_event("post", "baseline")
                continue
            self._metrics.record_media_event("post", "new" if created else "seen")
            if created:
                new_count += 1
                logger.info("New post", identity=identity, kind=item.media_kind.value)

            notification = Notification(
                text=messages.format_post(item, url),
                media_url=item.media_url,
                media_kind=item.media_kind,
            )
            await self._notifier.notify(identity, notification, event=record)

        if baseline and items:
            logger.info("Feed baseline recorded", identity=identity, posts=len(items))
        return new_count
