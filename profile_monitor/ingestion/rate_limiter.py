"""
Shared rate limiter for calls to the upstream data provider.

The provider enforces a global (not per-loop) request budget, so a single
RateLimiter instance is shared by every poll loop and by the add flow.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from profile_monitor.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class RateLimiter:
    """
    Minimum-spacing rate limiter.

    ``acquire()`` returns only once at least ``min_interval`` seconds have
    passed since the previous grant. Acquirers are served one at a time, so
    the grant timestamp is never read and written concurrently.
    """

    min_interval: float  # seconds between grants
    _last_grant: float | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def acquire(self) -> None:
        """Wait until the spacing since the last grant has elapsed, then grant."""
        async with self._lock:
            started = time.monotonic()
            if self._last_grant is not None:
                wait_time = self._last_grant + self.min_interval - started
                if wait_time > 0:
                    logger.debug(f"Rate limited, waiting {wait_time:.2f}s")
                # The event loop may wake a timer marginally early
                while wait_time > 0:
                    await asyncio.sleep(wait_time)
                    wait_time = self._last_grant + self.min_interval - time.monotonic()

            self._last_grant = time.monotonic()
            get_metrics().record_rate_limit_wait(self._last_grant - started)

    @property
    def last_grant(self) -> float | None:
        """Monotonic timestamp of the most recent grant."""
        return self._last_grant
