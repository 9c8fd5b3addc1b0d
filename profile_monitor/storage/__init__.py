"""Storage layer: asyncpg connection pool."""

from profile_monitor.storage.database import Database

__all__ = ["Database"]
