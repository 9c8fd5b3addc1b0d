"""Schema definitions for identity subscriptions."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

IDENTITY_PATTERN = re.compile(r"^[a-z0-9._]{1,30}$")


class InvalidIdentityError(ValueError):
    """Raised when an identity does not look like a valid account name."""


def normalize_identity(raw: str) -> str:
    """
    Canonicalize an identity: trim, drop a leading ``@``, lowercase.

    Raises:
        InvalidIdentityError: If the result is not a valid account name.
    """
    identity = raw.strip().lstrip("@").lower()
    if not IDENTITY_PATTERN.match(identity):
        raise InvalidIdentityError(f"Invalid identity: {raw!r}")
    return identity


@dataclass
class Subscription:
    """One target's subscription to one identity.

    Maps to the ``subscriptions`` table, primary key ``(identity, target)``.
    """

    identity: str
    target: str
    created_by: str | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


@dataclass
class AddResult:
    """Outcome of adding a subscription."""

    identity: str
    target: str
    created: bool


@dataclass
class RemoveResult:
    """Outcome of removing a subscription.

    ``history_deleted`` is True when the removed subscription was the last
    one and the identity's snapshots and media records were purged.
    """

    identity: str
    target: str
    removed: bool
    history_deleted: bool = False
