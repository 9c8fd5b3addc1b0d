"""
Bounded in-memory caches with expiry.

Used for the new-identity grace window and the per-identity feed-check
cooldown. Both caches are process-local and reset on restart; the grace
window also honours the persisted subscription time of adds made elsewhere.
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpiringCache:
    """
    Key set where each entry expires ``ttl_seconds`` after it was put.

    At most ``max_entries`` keys are held; inserting beyond that evicts the
    oldest entry first.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, float] = OrderedDict()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def put(self, key: str) -> None:
        """Insert or refresh a key."""
        self._entries.pop(key, None)
        self._entries[key] = self._clock() + self._ttl
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def contains(self, key: str) -> bool:
        """True while the key is present and unexpired."""
        expires_at = self._entries.get(key)
        if expires_at is None:
            return False
        if self._clock() >= expires_at:
            del self._entries[key]
            return False
        return True

    def purge(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, expires_at in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        return len(self._entries)


class NewIdentitySuppression:
    """
    Grace window that silences the initial-data message after an add.

    An add made in this process marks the cache directly. Adds made by
    another process are recognised through the subscription's persisted
    ``created_at``, passed in as ``added_at``.
    """

    def __init__(
        self,
        cache: ExpiringCache,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self._now = now

    @property
    def grace_seconds(self) -> float:
        return self._cache.ttl_seconds

    def mark_added(self, identity: str) -> None:
        self._cache.put(identity)

    def should_suppress(
        self,
        identity: str,
        force: bool = False,
        added_at: datetime | None = None,
    ) -> bool:
        """Whether to skip the initial-data notification for this identity."""
        if force:
            return False
        if self._cache.contains(identity):
            return True
        if added_at is None:
            return False
        return (self._now() - added_at).total_seconds() < self.grace_seconds
