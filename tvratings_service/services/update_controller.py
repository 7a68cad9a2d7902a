"""Owns the catalog snapshot files: selection at startup, daily rebuilds and promotion."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set

from tvratings_service.config import SNAPSHOT_SUFFIX
from tvratings_service.exceptions import FatalError, SnapshotStoreError
from tvratings_service.repos import CatalogSnapshot
from tvratings_service.services.dataset_importer import ImdbDatasetImporter

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60

# land at 00:01 UTC, clear of the date boundary
UPDATE_DELAY_SECONDS = 60


def get_date_string(timestamp: float) -> str:
    """UTC date of a unix timestamp as yyyyMMdd."""
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y%m%d")


def seconds_until_next_update(timestamp: float) -> float:
    """Seconds from `timestamp` until 00:01 UTC of the next day."""
    return DAY_SECONDS - timestamp % DAY_SECONDS + UPDATE_DELAY_SECONDS


class LiveSnapshot:
    """
    The reference to the snapshot serving requests.

    Requests read through acquire(), which keeps the handle open until the
    request is done. swap() replaces the reference in one step; retire()
    closes a replaced snapshot once its last reader has released it.
    """

    def __init__(self, snapshot: Optional[CatalogSnapshot] = None):
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self._readers: Dict[CatalogSnapshot, int] = {}
        self._retired: Set[CatalogSnapshot] = set()

    def get(self) -> Optional[CatalogSnapshot]:
        return self._snapshot

    @contextmanager
    def acquire(self) -> Iterator[CatalogSnapshot]:
        """
        Hold the live snapshot for the duration of a request.

        Raises:
            FatalError: If no snapshot is live
        """
        with self._lock:
            snapshot = self._snapshot
            if snapshot is None:
                raise FatalError("No catalog snapshot is live")
            self._readers[snapshot] = self._readers.get(snapshot, 0) + 1
        try:
            yield snapshot
        finally:
            self._release(snapshot)

    def reader_count(self, snapshot: CatalogSnapshot) -> int:
        with self._lock:
            return self._readers.get(snapshot, 0)

    def swap(self, snapshot: CatalogSnapshot) -> Optional[CatalogSnapshot]:
        """Publish `snapshot` and return the one it replaces."""
        with self._lock:
            previous, self._snapshot = self._snapshot, snapshot
        return previous

    def retire(self, snapshot: CatalogSnapshot) -> bool:
        """
        Close a replaced snapshot, or mark it to be closed by its last reader.

        Returns:
            True if it was closed right away
        """
        with self._lock:
            readers = self._readers.get(snapshot, 0)
            if readers:
                self._retired.add(snapshot)
        if readers:
            logger.info(f"Snapshot {snapshot.path.name} still has {readers} reader(s), closing after release")
            return False

        self._close(snapshot)
        return True

    def close(self) -> None:
        """Close the live snapshot and every retired one, readers or not."""
        with self._lock:
            snapshots = list(self._retired)
            if self._snapshot is not None:
                snapshots.append(self._snapshot)
            self._retired.clear()
        for snapshot in snapshots:
            if snapshot.is_open:
                self._close(snapshot)

    def _release(self, snapshot: CatalogSnapshot) -> None:
        with self._lock:
            self._readers[snapshot] -= 1
            if self._readers[snapshot] > 0:
                return
            del self._readers[snapshot]
            if snapshot not in self._retired:
                return
            self._retired.discard(snapshot)
        self._close(snapshot)

    @staticmethod
    def _close(snapshot: CatalogSnapshot) -> None:
        try:
            snapshot.close()
            logger.info(f"Closed snapshot {snapshot.path.name}")
        except SnapshotStoreError as e:
            logger.error(f"Error while disconnecting from snapshot {snapshot.path.name}: {e}")


class SnapshotUpdateController:
    """
    Selects the snapshot to serve at startup, rebuilds a new one every day
    and hands finished snapshots to `on_promote`.

    Snapshot files are named <yyyyMMdd>.snap (UTC) so the newest one sorts last.
    """

    def __init__(
            self,
            snapshot_dir: Path,
            on_promote: Callable[[CatalogSnapshot], None],
            importer_factory: Callable[[CatalogSnapshot], ImdbDatasetImporter] = ImdbDatasetImporter,
            update_enabled: bool = True,
            retention: int = 0,
            clock: Callable[[], float] = time.time
    ):
        """
        Args:
            snapshot_dir: Directory holding the snapshot files
            on_promote: Called with each freshly built, open snapshot
            importer_factory: Builds the importer for a new snapshot
            update_enabled: Whether to build new snapshots at all
            retention: Keep only this many snapshot files after a promotion (0: keep all)
            clock: Returns the current unix time
        """
        self.snapshot_dir = Path(snapshot_dir)
        self.on_promote = on_promote
        self.importer_factory = importer_factory
        self.update_enabled = update_enabled
        self.retention = retention
        self.clock = clock

        self.current_path: Optional[Path] = None
        self.last_update_date: Optional[str] = None

        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="snapshot-update")
        self._update_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._stopped = False
        self._pending_update_path: Optional[Path] = None

    # ===== SNAPSHOT FILES =====

    def list_snapshot_paths(self) -> List[Path]:
        """Snapshot files sorted oldest first."""
        return sorted(self.snapshot_dir.glob(f"*{SNAPSHOT_SUFFIX}"), key=lambda path: path.name)

    def get_old_snapshot_path(self) -> Optional[Path]:
        """The newest existing snapshot file, or None."""
        paths = self.list_snapshot_paths()
        return paths[-1] if paths else None

    def get_new_snapshot_path(self) -> Path:
        """The snapshot file for today (UTC)."""
        return self.snapshot_dir / f"{get_date_string(self.clock())}{SNAPSHOT_SUFFIX}"

    # ===== LIFECYCLE =====

    def start(self) -> Optional[CatalogSnapshot]:
        """
        Looks for existing snapshot files:
        - If there are none, imports a new snapshot and then returns it.
          A failed import is logged and None is returned; the daily update retries.
        - If the newest one is outdated, returns it. start_updates() builds today's in the background.
        - If the newest one is from today, returns it.

        Returns:
            The open snapshot to serve, or None if there is none yet

        Raises:
            FatalError: If an existing snapshot cannot be opened
        """
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)

        old_path = self.get_old_snapshot_path()
        new_path = self.get_new_snapshot_path()
        self._pending_update_path = None

        if old_path is None:
            logger.info("No snapshots -> import first and then start serving")
            snapshot = CatalogSnapshot(new_path).open()
            try:
                self.importer_factory(snapshot).start()
            except Exception as e:
                logger.error(f"Error while importing the first snapshot {new_path.name}: {e}", exc_info=True)
                self._discard(snapshot)
                return None
            self.last_update_date = get_date_string(self.clock())

        elif old_path.name != new_path.name:
            logger.info(f"Snapshot {old_path.name} is outdated -> start serving and import in the background")
            snapshot = CatalogSnapshot(old_path).open()
            self._pending_update_path = new_path

        else:
            logger.info(f"Snapshot {new_path.name} is up to date -> start serving")
            snapshot = CatalogSnapshot(new_path).open()
            self.last_update_date = get_date_string(self.clock())

        self.current_path = snapshot.path
        return snapshot

    def start_updates(self) -> None:
        """
        Submit the background import for an outdated snapshot, then start the
        timer that updates the snapshot every day at 00:01 UTC.

        Call after the snapshot returned by start() is being served.
        """
        if not self.update_enabled:
            logger.info("Snapshot updates are disabled")
            return

        if self._pending_update_path is not None:
            self._executor.submit(self.update_snapshot, self._pending_update_path)
            self._pending_update_path = None

        self.start_daily_updater()

    def stop(self) -> None:
        """Cancel the daily timer and any queued update."""
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def start_daily_updater(self) -> None:
        if self._stopped:
            return

        delay = seconds_until_next_update(self.clock())
        logger.info(f"Next snapshot update in {delay / 3600:.2f} h")

        self._timer = threading.Timer(delay, self._run_daily_update)
        self._timer.daemon = True
        self._timer.start()

    def _run_daily_update(self) -> None:
        if self._stopped:
            return
        self._executor.submit(self.update_snapshot, self.get_new_snapshot_path())
        self.start_daily_updater()

    # ===== UPDATES =====

    def update_snapshot(self, new_path: Path) -> bool:
        """
        Build a snapshot at `new_path` and promote it.

        A failure is logged, the partial file is removed and the live
        snapshot stays in place; the next daily run retries.

        Returns:
            True if a new snapshot was promoted
        """
        with self._update_lock:
            new_path = Path(new_path)
            if self.current_path is not None and new_path == self.current_path:
                logger.info(f"Snapshot {new_path.name} is already live")
                return False

            if new_path.exists():
                logger.warning(f"Removing stale snapshot file {new_path}")
                new_path.unlink()

            logger.info(f"Updating snapshot -> {new_path.name}")
            snapshot = CatalogSnapshot(new_path)
            try:
                snapshot.open()
                self.importer_factory(snapshot).start()
            except Exception as e:
                logger.error(f"Error while updating snapshot {new_path.name}: {e}", exc_info=True)
                self._discard(snapshot)
                return False

            logger.info(f"✓ Finished building snapshot {new_path.name}")
            self.promote(snapshot)
            return True

    def promote(self, snapshot: CatalogSnapshot) -> None:
        """Hand a finished snapshot to the server, then prune old files."""
        self.on_promote(snapshot)
        self.current_path = snapshot.path
        self.last_update_date = get_date_string(self.clock())

        if self.retention > 0:
            self.prune_snapshots(self.retention)

    def prune_snapshots(self, keep: int) -> List[Path]:
        """
        Delete all but the `keep` newest snapshot files. The live file is never deleted.

        Returns:
            The deleted paths
        """
        paths = self.list_snapshot_paths()
        doomed = [path for path in paths[:-keep] if path != self.current_path] if keep > 0 else []

        for path in doomed:
            logger.info(f"Deleting old snapshot {path.name}")
            path.unlink(missing_ok=True)

        return doomed

    def _discard(self, snapshot: CatalogSnapshot) -> None:
        if snapshot.is_open:
            try:
                snapshot.close()
            except SnapshotStoreError as e:
                logger.error(f"Error while closing {snapshot.path}: {e}")
        snapshot.path.unlink(missing_ok=True)
