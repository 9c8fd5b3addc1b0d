"""
Wiring of the monitoring engine.

Builds every collaborator from configuration around one connected
database, so the CLI commands and the long-running process share the
exact same object graph.
"""

import logging
from dataclasses import dataclass

from profile_monitor.config.settings import get_settings
from profile_monitor.history.repository import MediaEventRepository, SnapshotRepository
from profile_monitor.ingestion.media_client import MediaClient
from profile_monitor.ingestion.profile_client import ProfileClient
from profile_monitor.ingestion.rate_limiter import RateLimiter
from profile_monitor.monitor.checker import IdentityChecker
from profile_monitor.monitor.config import MonitorConfig
from profile_monitor.monitor.ledger import DedupLedger
from profile_monitor.monitor.scheduler import Scheduler
from profile_monitor.monitor.suppression import ExpiringCache, NewIdentitySuppression
from profile_monitor.notifications.channels import (
    LoggingTransport,
    NotificationTransport,
    TelegramTransport,
)
from profile_monitor.notifications.config import NotificationConfig
from profile_monitor.notifications.notifier import Notifier
from profile_monitor.storage.database import Database
from profile_monitor.tracking.repository import SubscriptionRepository
from profile_monitor.tracking.service import TrackingService

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """The assembled engine."""

    database: Database
    subscriptions: SubscriptionRepository
    snapshots: SnapshotRepository
    media_events: MediaEventRepository
    checker: IdentityChecker
    scheduler: Scheduler
    tracking: TrackingService
    notifier: Notifier

    async def create_tables(self) -> None:
        """Create every table the engine uses (idempotent)."""
        await self.subscriptions.create_table()
        await self.snapshots.create_table()
        await self.media_events.create_table()


def create_transport(config: NotificationConfig | None = None) -> NotificationTransport:
    """Telegram when a bot token is configured, the log otherwise."""
    settings = get_settings()
    if settings.telegram_configured:
        return TelegramTransport(
            token=settings.telegram_bot_token,
            api_base=settings.telegram_api_base,
            config=config,
        )
    logger.warning("No Telegram bot token configured, notifications go to the log")
    return LoggingTransport()


def build_engine(
    database: Database,
    config: MonitorConfig | None = None,
    transport: NotificationTransport | None = None,
) -> Engine:
    """Assemble the engine around a connected database."""
    config = config or MonitorConfig()

    subscriptions = SubscriptionRepository(database)
    snapshots = SnapshotRepository(database)
    media_events = MediaEventRepository(database)
    ledger = DedupLedger(media_events, pending_retry_hours=config.pending_retry_hours)
    notifier = Notifier(subscriptions, transport or create_transport(), ledger)

    checker = IdentityChecker(
        rate_limiter=RateLimiter(min_interval=config.rate_limit_interval_seconds),
        profile_client=ProfileClient(
            timeout=config.api_timeout_seconds,
            image_timeout=config.image_fetch_timeout_seconds,
        ),
        media_client=MediaClient(
            story_timeout=config.story_timeout_seconds,
            post_timeout=config.post_timeout_seconds,
        ),
        subscriptions=subscriptions,
        snapshots=snapshots,
        ledger=ledger,
        notifier=notifier,
        suppression=NewIdentitySuppression(
            ExpiringCache(config.new_identity_grace_seconds, config.cache_max_entries)
        ),
        feed_cooldown=ExpiringCache(
            config.post_check_cooldown_seconds, config.cache_max_entries
        ),
    )

    return Engine(
        database=database,
        subscriptions=subscriptions,
        snapshots=snapshots,
        media_events=media_events,
        checker=checker,
        scheduler=Scheduler(subscriptions, checker, config=config),
        tracking=TrackingService(database, subscriptions, snapshots, checker),
        notifier=notifier,
    )
