"""History: append-only snapshots and observed media events."""

from profile_monitor.history.repository import MediaEventRepository, SnapshotRepository
from profile_monitor.history.schemas import MediaCategory, MediaRecord, Snapshot

__all__ = [
    "MediaCategory",
    "MediaEventRepository",
    "MediaRecord",
    "Snapshot",
    "SnapshotRepository",
]
