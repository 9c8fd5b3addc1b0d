"""Observability: structured logging and Prometheus metrics."""

from profile_monitor.observability.logging import setup_logging
from profile_monitor.observability.metrics import MetricsCollector, get_metrics

__all__ = ["MetricsCollector", "get_metrics", "setup_logging"]
