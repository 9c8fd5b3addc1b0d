"""Notifier fanning out one notification to every subscriber of an identity.

Each target is delivered independently: rich media first, then a plain
text fallback. A failure or exception for one target never blocks the
others. For media events the ledger decides who is still owed the event
and is marked per target only after a confirmed delivery.
"""

import logging

from profile_monitor.history.schemas import MediaRecord
from profile_monitor.monitor.ledger import DedupLedger
from profile_monitor.notifications.channels import NotificationTransport
from profile_monitor.notifications.schemas import DeliveryResult, Notification
from profile_monitor.observability.metrics import get_metrics
from profile_monitor.tracking.repository import SubscriptionRepository

logger = logging.getLogger(__name__)


class Notifier:
    """Orchestrates per-target delivery through a transport."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        transport: NotificationTransport,
        ledger: DedupLedger,
    ) -> None:
        self._subscriptions = subscriptions
        self._transport = transport
        self._ledger = ledger

    @property
    def transport(self) -> NotificationTransport:
        return self._transport

    async def notify(
        self,
        identity: str,
        notification: Notification,
        *,
        event: MediaRecord | None = None,
    ) -> list[DeliveryResult]:
        """Deliver a notification to the subscribers of an identity.

        Args:
            identity: Identity the notification is about.
            notification: Message (and optional media) to send.
            event: The media record being announced. When given, only
                targets still owed this event are contacted, and each
                successful delivery is marked in the ledger.

        Returns:
            One DeliveryResult per contacted target.
        """
        if event is not None:
            subs = await self._subscriptions.list_subscriptions(identity)
            targets = await self._ledger.pending_targets(event, subs)
        else:
            targets = await self._subscriptions.list_targets(identity)

        results: list[DeliveryResult] = []
        for target in dict.fromkeys(targets):
            try:
                status = await self._deliver(target, notification)
            except Exception as e:
                logger.error("Unexpected error notifying %s about @%s: %s", target, identity, e)
                status = "failed"

            if status != "failed" and event is not None:
                try:
                    await self._ledger.mark_notified(event, target)
                except Exception as e:
                    # The next cycle re-sends to this target
                    logger.error(
                        "Failed to mark %s notified for @%s %s: %s",
                        target, identity, event.event_key, e,
                    )

            results.append(DeliveryResult(target=target, status=status))

        self._record_delivery(identity, results)
        return results

    async def _deliver(self, target: str, notification: Notification) -> str:
        if notification.is_rich:
            try:
                if await self._transport.send_rich(
                    target,
                    notification.media_url,
                    notification.media_kind,
                    notification.text,
                ):
                    return "rich"
            except Exception as e:
                logger.warning("Rich delivery to %s raised: %s", target, e)
            logger.info("Rich delivery to %s failed, falling back to text", target)

        text = notification.fallback_text or notification.text
        if notification.is_rich and not notification.fallback_text:
            text = f"{text}\n\n{notification.media_url}"
        if await self._transport.send_text(target, text):
            return "text"
        return "failed"

    def _record_delivery(self, identity: str, results: list[DeliveryResult]) -> None:
        """Log delivery results and update metrics."""
        metrics = get_metrics()
        for result in results:
            metrics.record_notification(result.status)

        successes = [r.target for r in results if r.delivered]
        failures = [r.target for r in results if not r.delivered]

        if failures and not successes:
            logger.error("Notification for @%s failed ALL targets: %s", identity, failures)
        elif failures:
            logger.warning(
                "Notification for @%s partial delivery: ok=%s failed=%s",
                identity, successes, failures,
            )
        else:
            logger.debug("Notification for @%s delivered to %d targets", identity, len(successes))
