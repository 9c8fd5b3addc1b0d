"""Tests for the shared rate limiter."""

import asyncio
import time

import pytest

from profile_monitor.ingestion.rate_limiter import RateLimiter


class TestRateLimiter:
    """Minimum spacing between grants."""

    @pytest.mark.asyncio
    async def test_first_acquire_is_immediate(self):
        limiter = RateLimiter(min_interval=10.0)

        start = time.monotonic()
        await limiter.acquire()

        assert time.monotonic() - start < 0.5
        assert limiter.last_grant is not None

    @pytest.mark.asyncio
    async def test_sequential_grants_are_spaced(self):
        limiter = RateLimiter(min_interval=1.0)

        await limiter.acquire()
        first = limiter.last_grant
        await limiter.acquire()

        assert limiter.last_grant - first >= 1.0

    @pytest.mark.asyncio
    async def test_concurrent_acquirers_are_serialized(self):
        limiter = RateLimiter(min_interval=0.05)
        grants: list[float] = []

        async def worker():
            await limiter.acquire()
            grants.append(limiter.last_grant)

        await asyncio.gather(*(worker() for _ in range(4)))

        grants.sort()
        gaps = [b - a for a, b in zip(grants, grants[1:])]
        assert len(grants) == 4
        assert all(gap >= 0.05 for gap in gaps)

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_elapsed(self):
        limiter = RateLimiter(min_interval=0.05)
        await limiter.acquire()
        await asyncio.sleep(0.1)

        start = time.monotonic()
        await limiter.acquire()

        assert time.monotonic() - start < 0.05

    @pytest.mark.asyncio
    async def test_zero_interval_never_waits(self):
        limiter = RateLimiter(min_interval=0)

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()

        assert time.monotonic() - start < 0.5
