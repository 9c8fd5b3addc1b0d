"""Notifications: transports, message formatting and per-target fan-out.

Components:
- NotificationTransport / TelegramTransport / LoggingTransport: Delivery
- Notifier: Rich-then-text delivery to every subscriber, ledger aware
- Notification / DeliveryResult: Message and per-target outcome
- NotificationConfig: ``NOTIFICATIONS_*`` settings
"""

from profile_monitor.notifications.channels import (
    LoggingTransport,
    NotificationTransport,
    TelegramTransport,
)
from profile_monitor.notifications.config import NotificationConfig
from profile_monitor.notifications.notifier import Notifier
from profile_monitor.notifications.schemas import DeliveryResult, Notification

__all__ = [
    "DeliveryResult",
    "LoggingTransport",
    "Notification",
    "NotificationConfig",
    "NotificationTransport",
    "Notifier",
    "TelegramTransport",
]
