"""Configuration module."""

from profile_monitor.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
