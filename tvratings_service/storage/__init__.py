"""File-backed relational stores"""

from tvratings_service.storage.snapshot_store import SnapshotStore

__all__ = ["SnapshotStore"]
