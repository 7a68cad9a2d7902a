"""Wires the stores, the update controller and the auth helpers together."""

import logging
import threading
from pathlib import Path
from typing import Callable, ContextManager, Optional

from sqlalchemy.exc import SQLAlchemyError

from tvratings_service.config import (
    Configuration,
    get_configuration,
    get_database_directory,
    get_snapshot_directory,
    get_user_store_path,
)
from tvratings_service.exceptions import FatalError
from tvratings_service.repos import CatalogSnapshot, UserStore
from tvratings_service.services.dataset_importer import ImdbDatasetImporter
from tvratings_service.services.mail_service import Mailer
from tvratings_service.services.notification_service import NewEpisodeNotifier
from tvratings_service.services.rate_limiter import LoginRateLimiter
from tvratings_service.services.recaptcha_service import RecaptchaVerifier
from tvratings_service.services.token_service import SignedTokenManager
from tvratings_service.services.update_controller import LiveSnapshot, SnapshotUpdateController

logger = logging.getLogger(__name__)


class Backend:
    """
    Central point of the application: holds the configuration, the mailer,
    the user store and the live catalog snapshot.
    """

    def __init__(
            self,
            configuration: Configuration,
            database_dir: Optional[Path] = None,
            mailer: Optional[Mailer] = None,
            importer_factory: Callable[[CatalogSnapshot], ImdbDatasetImporter] = ImdbDatasetImporter
    ):
        self.configuration = configuration
        self.database_dir = Path(database_dir or get_database_directory())

        self.mailer = mailer or Mailer.from_configuration(configuration)
        self.notifier = NewEpisodeNotifier(self.mailer)
        self.token_manager = SignedTokenManager(configuration.jwtSecretKey)
        self.recaptcha = RecaptchaVerifier(configuration.recaptchaSecret)
        self.login_rate_limiter = LoginRateLimiter()

        self.user_store = UserStore(get_user_store_path(self.database_dir))
        self.live_snapshot = LiveSnapshot()
        self.update_controller = SnapshotUpdateController(
            get_snapshot_directory(self.database_dir),
            on_promote=self.on_snapshot_update,
            importer_factory=importer_factory,
            update_enabled=configuration.updateDatabase,
            retention=configuration.snapshotRetention,
        )

    def start(self) -> None:
        """Open the user store and the snapshot to serve, then start the snapshot updates."""
        self.database_dir.mkdir(parents=True, exist_ok=True)
        self.user_store.open()

        snapshot = self.update_controller.start()
        if snapshot is None:
            logger.error("No catalog snapshot available, serving errors until the next update")
        else:
            self.live_snapshot.swap(snapshot)

        self.update_controller.start_updates()
        logger.info("✓ Backend started")

    def stop(self) -> None:
        self.update_controller.stop()
        self.live_snapshot.close()
        if self.user_store.is_open:
            self.user_store.close()

    @property
    def catalog(self) -> CatalogSnapshot:
        """The live snapshot. Requests use read_catalog() instead."""
        snapshot = self.live_snapshot.get()
        if snapshot is None:
            raise FatalError("No catalog snapshot is live")
        return snapshot

    def read_catalog(self) -> ContextManager[CatalogSnapshot]:
        """Hold the live snapshot open until the request is done."""
        return self.live_snapshot.acquire()

    def on_snapshot_update(self, new_snapshot: CatalogSnapshot) -> None:
        """
        Promote a new snapshot: swap it in, email followers of shows with new
        episodes, then close the previous one once no request holds it.
        """
        old_snapshot = self.live_snapshot.swap(new_snapshot)
        logger.info(f"Promoted snapshot {new_snapshot.path.name}")

        if old_snapshot is None:
            return

        try:
            self.notifier.notify(new_snapshot, old_snapshot.path, self.user_store.path)
        except SQLAlchemyError as e:
            logger.error(f"Error while notifying users about new episodes: {e}", exc_info=True)

        self.live_snapshot.retire(old_snapshot)


_backend: Optional[Backend] = None
_backend_lock = threading.Lock()


def get_backend() -> Backend:
    """Build and start the process-wide backend on first use."""
    global _backend
    if _backend is not None:
        return _backend

    with _backend_lock:
        if _backend is None:
            backend = Backend(get_configuration())
            try:
                backend.start()
            except Exception:
                backend.stop()
                raise
            _backend = backend
    return _backend
