# Managers module exports
from managers.snapshot_cache import SnapshotCache

__all__ = [
    # Snapshot cache
    "SnapshotCache",
]
