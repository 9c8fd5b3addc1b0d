"""
Scheduler running the three poll loops.

Each loop (profile, stories, posts) is one timer task that fires an
immediate first cycle and then one per interval. A timer never runs two
cycles of its loop at once: a tick that finds the previous cycle still
running is skipped. Within a cycle identities are checked one by one with
a jittered, stop-interruptible pause between them.

State machine:
    stopped --start()--> initializing --probe ok--> running
    initializing --probe fails--> stopped (error propagates)
    running --stop()--> stopped
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from profile_monitor.ingestion.schemas import FetchError
from profile_monitor.monitor.checker import IdentityChecker
from profile_monitor.monitor.config import MonitorConfig
from profile_monitor.observability.logging import bind_context
from profile_monitor.observability.metrics import get_metrics
from profile_monitor.tracking.repository import SubscriptionRepository

logger = structlog.get_logger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle state of the scheduler."""

    STOPPED = "stopped"
    INITIALIZING = "initializing"
    RUNNING = "running"


@dataclass
class PollLoop:
    """One poll loop and its bookkeeping."""

    name: str
    interval: float
    delay: float
    jitter: float
    check: Callable[[str], Awaitable[Any]] = field(repr=False)
    cycles_completed: int = 0
    cycles_skipped: int = 0
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_duration: float | None = None
    last_identity_count: int = 0
    last_error_count: int = 0
    cycle_task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def cycle_running(self) -> bool:
        return self.cycle_task is not None and not self.cycle_task.done()

    def to_dict(self) -> dict[str, Any]:
        return {
            "interval_seconds": self.interval,
            "cycle_running": self.cycle_running,
            "cycles_completed": self.cycles_completed,
            "cycles_skipped": self.cycles_skipped,
            "last_started_at": (
                self.last_started_at.isoformat() if self.last_started_at else None
            ),
            "last_finished_at": (
                self.last_finished_at.isoformat() if self.last_finished_at else None
            ),
            "last_duration_seconds": self.last_duration,
            "last_identity_count": self.last_identity_count,
            "last_error_count": self.last_error_count,
        }


class Scheduler:
    """
    Owns the poll loops and their lifecycle.

    Usage:
        scheduler = Scheduler(subscriptions, checker)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        checker: IdentityChecker,
        config: MonitorConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or MonitorConfig()
        self._subscriptions = subscriptions
        self._checker = checker
        self._rng = rng or random.Random()
        self._state = SchedulerState.STOPPED
        self._stop_event = asyncio.Event()
        self._timers: list[asyncio.Task] = []
        self._metrics = get_metrics()

        config = self._config
        self._loops: dict[str, PollLoop] = {
            loop.name: loop
            for loop in (
                PollLoop(
                    name="profile",
                    interval=config.profile_interval_seconds,
                    delay=config.profile_delay_seconds,
                    jitter=config.profile_jitter_seconds,
                    check=checker.check_profile,
                ),
                PollLoop(
                    name="stories",
                    interval=config.story_interval_seconds,
                    delay=config.media_delay_seconds,
                    jitter=config.media_jitter_seconds,
                    check=checker.check_stories,
                ),
                PollLoop(
                    name="posts",
                    interval=config.post_interval_seconds,
                    delay=config.media_delay_seconds,
                    jitter=config.media_jitter_seconds,
                    check=checker.check_feed,
                ),
            )
        }

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    @property
    def loops(self) -> dict[str, PollLoop]:
        return self._loops

    async def start(self) -> None:
        """
        Probe the identity store and launch the poll loops.

        Raises:
            Exception: Whatever the probe raised; the scheduler is left
                stopped.
        """
        if self._state != SchedulerState.STOPPED:
            logger.info("Scheduler already started", state=self._state.value)
            return

        self._state = SchedulerState.INITIALIZING
        logger.info("Starting scheduler")

        try:
            await self._subscriptions.ping()
        except Exception as e:
            self._state = SchedulerState.STOPPED
            logger.error("Scheduler initialization failed", error=str(e))
            raise

        if self._state != SchedulerState.INITIALIZING:
            # stop() was called while the probe was in flight
            return

        self._stop_event = asyncio.Event()
        self._state = SchedulerState.RUNNING
        self._metrics.set_scheduler_running(True)
        self._timers = [
            asyncio.create_task(self._run_timer(loop), name=f"timer_{loop.name}")
            for loop in self._loops.values()
        ]
        logger.info(
            "Scheduler running",
            loops={name: loop.interval for name, loop in self._loops.items()},
        )

    async def stop(self) -> None:
        """
        Stop the loops. Safe to call repeatedly.

        No new identity starts once this is called; in-flight cycles get
        ``shutdown_timeout_seconds`` to finish before being cancelled.
        """
        if self._state == SchedulerState.STOPPED:
            return

        logger.info("Stopping scheduler")
        self._state = SchedulerState.STOPPED
        self._metrics.set_scheduler_running(False)
        self._stop_event.set()

        if self._timers:
            await asyncio.gather(*self._timers, return_exceptions=True)
            self._timers = []

        cycles = [loop.cycle_task for loop in self._loops.values() if loop.cycle_running]
        if cycles:
            _, pending = await asyncio.wait(
                cycles, timeout=self._config.shutdown_timeout_seconds
            )
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Cancelled in-flight cycles", count=len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

        logger.info("Scheduler stopped")

    def status(self) -> dict[str, Any]:
        """State and per-loop bookkeeping for health queries."""
        return {
            "state": self._state.value,
            "loops": {name: loop.to_dict() for name, loop in self._loops.items()},
        }

    async def _run_timer(self, loop: PollLoop) -> None:
        while self.is_running:
            self._tick(loop)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=loop.interval)
            except asyncio.TimeoutError:
                continue

    def _tick(self, loop: PollLoop) -> None:
        if loop.cycle_running:
            loop.cycles_skipped += 1
            self._metrics.record_cycle_skipped(loop.name)
            logger.warning("Previous cycle still running, skipping tick", loop=loop.name)
            return
        loop.cycle_task = asyncio.create_task(
            self.run_cycle(loop), name=f"cycle_{loop.name}"
        )

    async def run_cycle(self, loop: PollLoop) -> int:
        """
        Check every tracked identity once.

        Returns:
            Number of identities whose check raised.
        """
        bind_context(loop=loop.name)
        started = time.monotonic()
        loop.last_started_at = datetime.now(timezone.utc)

        try:
            identities = await self._subscriptions.list_distinct_identities()
        except Exception as e:
            logger.error("Could not list identities", error=str(e))
            return 0

        errors = 0
        for index, identity in enumerate(identities):
            if not self.is_running:
                break
            if index > 0 and await self._pause(loop):
                break

            try:
                await loop.check(identity)
            except FetchError as e:
                errors += 1
                self._metrics.record_check(loop.name, "error")
                logger.warning("Fetch failed", identity=identity, error=str(e))
            except Exception as e:
                errors += 1
                self._metrics.record_check(loop.name, "error")
                logger.error("Check failed", identity=identity, error=str(e), exc_info=True)

        duration = time.monotonic() - started
        loop.cycles_completed += 1
        loop.last_finished_at = datetime.now(timezone.utc)
        loop.last_duration = duration
        loop.last_identity_count = len(identities)
        loop.last_error_count = errors
        self._metrics.record_cycle(loop.name, duration, len(identities))
        logger.info(
            "Cycle completed",
            identities=len(identities),
            errors=errors,
            elapsed_seconds=round(duration, 2),
        )
        return errors

    async def _pause(self, loop: PollLoop) -> bool:
        """Sleep base + jitter between identities. True if stop interrupted it."""
        delay = loop.delay + self._rng.uniform(0, loop.jitter)
        if delay <= 0:
            return not self.is_running
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False
