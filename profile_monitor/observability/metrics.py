"""
Prometheus metrics for monitoring the poll loops.

Defines and exposes metrics for:
- Per-identity check outcomes and cycle latency
- Skipped (overlapping) cycles
- Snapshot and media event persistence
- Notification delivery outcomes
- Rate limiter wait time

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from profile_monitor.config.settings import get_settings

logger = logging.getLogger(__name__)

# Cycles are long (jittered delays between identities), so buckets reach hours
CYCLE_BUCKETS = (1.0, 5.0, 15.0, 60.0, 300.0, 900.0, 1800.0, 3600.0, 7200.0)
WAIT_BUCKETS = (0.0, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the monitoring engine.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_check("profile", "changed")
        metrics.record_notification("rich")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.checks = Counter(
            "profile_monitor_checks_total",
            "Per-identity checks by loop and outcome",
            ["loop", "outcome"],  # outcome: changed, unchanged, not_found, error
        )

        self.cycle_latency = Histogram(
            "profile_monitor_cycle_duration_seconds",
            "Time to run one cycle over all tracked identities",
            ["loop"],
            buckets=CYCLE_BUCKETS,
        )

        self.cycles_skipped = Counter(
            "profile_monitor_cycles_skipped_total",
            "Ticks skipped because the previous cycle was still running",
            ["loop"],
        )

        self.snapshots_persisted = Counter(
            "profile_monitor_snapshots_persisted_total",
            "Snapshots written after a detected change",
        )

        self.media_events = Counter(
            "profile_monitor_media_events_total",
            "Observed media events by category and outcome",
            ["category", "outcome"],  # outcome: new, seen, baseline
        )

        self.notifications = Counter(
            "profile_monitor_notifications_total",
            "Per-target notification deliveries",
            ["status"],  # status: rich, text, failed
        )

        self.rate_limit_wait = Histogram(
            "profile_monitor_rate_limit_wait_seconds",
            "Time spent waiting on the shared rate limiter",
            buckets=WAIT_BUCKETS,
        )

        self.scheduler_running = Gauge(
            "profile_monitor_scheduler_running",
            "Scheduler state (1=running, 0=not running)",
        )

        self.tracked_identities = Gauge(
            "profile_monitor_tracked_identities",
            "Distinct identities enumerated in the last cycle",
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        if self._server_started:
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")

    def record_check(self, loop: str, outcome: str) -> None:
        """Record the outcome of one per-identity check."""
        self.checks.labels(loop=loop, outcome=outcome).inc()

    def record_cycle(self, loop: str, latency: float, identities: int) -> None:
        """
        Record a completed cycle.

        Args:
            loop: Loop name (profile, stories, posts)
            latency: Cycle duration in seconds
            identities: Number of identities enumerated
        """
        self.cycle_latency.labels(loop=loop).observe(latency)
        self.tracked_identities.set(identities)

    def record_cycle_skipped(self, loop: str) -> None:
        """Record a tick skipped by the re-entrancy guard."""
        self.cycles_skipped.labels(loop=loop).inc()

    def record_snapshot(self) -> None:
        """Record a persisted snapshot."""
        self.snapshots_persisted.inc()

    def record_media_event(self, category: str, outcome: str) -> None:
        """Record an observed story or post."""
        self.media_events.labels(category=category, outcome=outcome).inc()

    def record_notification(self, status: str) -> None:
        """Record one per-target delivery outcome."""
        self.notifications.labels(status=status).inc()

    def record_rate_limit_wait(self, seconds: float) -> None:
        """Record time spent blocked in RateLimiter.acquire()."""
        self.rate_limit_wait.observe(seconds)

    def set_scheduler_running(self, running: bool) -> None:
        """Set scheduler running gauge."""
        self.scheduler_running.set(1 if running else 0)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
