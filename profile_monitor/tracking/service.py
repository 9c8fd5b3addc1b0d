"""Tracking service: add, remove and inspect tracked identities.

Adding runs an immediate profile check (which always announces the
initial data to the caller's subscribers) and a story check. Removing the
last subscription of an identity purges its history.
"""

from dataclasses import dataclass

import structlog

from profile_monitor.config.settings import get_settings
from profile_monitor.history.repository import SnapshotRepository, delete_identity_history
from profile_monitor.history.schemas import Snapshot
from profile_monitor.monitor.checker import IdentityChecker
from profile_monitor.notifications import messages
from profile_monitor.storage.database import Database
from profile_monitor.tracking.repository import SubscriptionRepository
from profile_monitor.tracking.schemas import (
    AddResult,
    InvalidIdentityError,
    RemoveResult,
    Subscription,
    normalize_identity,
)

logger = structlog.get_logger(__name__)

__all__ = ["IdentityStats", "InvalidIdentityError", "TrackingService"]


@dataclass
class IdentityStats:
    """Latest snapshot plus the follower trend over recent snapshots."""

    identity: str
    latest: Snapshot | None
    follower_change: int = 0
    history_length: int = 0

    def format(self) -> str:
        if self.latest is None:
            return (
                f"📊 No historical data found for @{self.identity}. "
                "Has it been checked yet?"
            )
        return messages.format_stats_card(
            self.latest,
            get_settings().profile_url(self.identity),
            follower_change=self.follower_change,
            history_length=self.history_length,
        )


class TrackingService:
    """Orchestrates subscription changes and their side effects."""

    def __init__(
        self,
        database: Database,
        subscriptions: SubscriptionRepository,
        snapshots: SnapshotRepository,
        checker: IdentityChecker,
    ) -> None:
        self._db = database
        self._subscriptions = subscriptions
        self._snapshots = snapshots
        self._checker = checker

    async def add(
        self,
        raw_identity: str,
        target: str,
        created_by: str | None = None,
        run_checks: bool = True,
    ) -> AddResult:
        """
        Subscribe a target to an identity.

        Raises:
            InvalidIdentityError: If the identity is malformed.
        """
        identity = normalize_identity(raw_identity)
        created = await self._subscriptions.add(identity, target, created_by)
        if not created:
            logger.info("Already tracking", identity=identity, target=target)
            return AddResult(identity=identity, target=target, created=False)

        self._checker.suppression.mark_added(identity)
        logger.info("Tracking added", identity=identity, target=target)

        if run_checks:
            await self._initial_checks(identity)
        return AddResult(identity=identity, target=target, created=True)

    async def _initial_checks(self, identity: str) -> None:
        # The subscription stands even when the provider is unavailable
        try:
            await self._checker.check_profile(identity, force_initial_notification=True)
        except Exception as e:
            logger.warning("Initial profile check failed", identity=identity, error=str(e))
        try:
            await self._checker.check_stories(identity)
        except Exception as e:
            logger.warning("Initial story check failed", identity=identity, error=str(e))

    async def remove(self, raw_identity: str, target: str) -> RemoveResult:
        """
        Unsubscribe a target. Purges history once nobody tracks the identity.

        Raises:
            InvalidIdentityError: If the identity is malformed.
        """
        identity = normalize_identity(raw_identity)
        async with self._checker.identity_lock(identity):
            removed = await self._subscriptions.remove(identity, target)
            if not removed:
                return RemoveResult(identity=identity, target=target, removed=False)

            history_deleted = False
            if await self._subscriptions.count_subscribers(identity) == 0:
                snapshots, media = await delete_identity_history(self._db, identity)
                history_deleted = True
                logger.info(
                    "Last subscriber removed, history purged",
                    identity=identity,
                    snapshots=snapshots,
                    media_events=media,
                )
            else:
                logger.info("Tracking removed", identity=identity, target=target)

        return RemoveResult(
            identity=identity,
            target=target,
            removed=True,
            history_deleted=history_deleted,
        )

    async def list_identities(self, target: str) -> list[Subscription]:
        return await self._subscriptions.list_for_target(target)

    async def stats(self, raw_identity: str, limit: int = 10) -> IdentityStats:
        """Latest snapshot and the follower change across the last ``limit``."""
        identity = normalize_identity(raw_identity)
        history = await self._snapshots.recent(identity, limit=limit)
        if not history:
            return IdentityStats(identity=identity, latest=None)

        latest, oldest = history[0], history[-1]
        return IdentityStats(
            identity=identity,
            latest=latest,
            follower_change=latest.followers - oldest.followers,
            history_length=len(history),
        )
