"""Tracking: which targets subscribe to which identities."""

from profile_monitor.tracking.repository import SubscriptionRepository
from profile_monitor.tracking.schemas import (
    InvalidIdentityError,
    Subscription,
    normalize_identity,
)

__all__ = [
    "InvalidIdentityError",
    "Subscription",
    "SubscriptionRepository",
    "normalize_identity",
]
