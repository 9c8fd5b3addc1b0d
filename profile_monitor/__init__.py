"""Profile monitor: change detection and deduplicated notifications for tracked profiles."""

__version__ = "0.1.0"
