"""Verification codes and follow lists."""

import logging
from pathlib import Path
from typing import Dict, List

from sqlalchemy import delete, func, insert, select

from tvratings_service.models import Follow, UserBase, VerificationCode
from tvratings_service.storage import SnapshotStore

logger = logging.getLogger(__name__)


class UserStore(SnapshotStore):
    """
    The user store contains login verification codes and followed shows.
    Tables are created on open.
    """

    def open(self) -> "UserStore":
        super().open()
        UserBase.metadata.create_all(self.engine)
        return self

    # ===== VERIFICATION CODES =====

    def add_verification_code(self, email: str, code: str) -> int:
        """Store a code, replacing any previous code of the same email."""
        statement = insert(VerificationCode).prefix_with("OR REPLACE").values(email=email, code=code)
        with self.begin() as conn:
            return conn.execute(statement).rowcount

    def check_verification_code(self, email: str, code: str) -> bool:
        statement = (
            select(func.count())
            .select_from(VerificationCode)
            .where(VerificationCode.email == email, VerificationCode.code == code)
        )
        with self.connect() as conn:
            return conn.execute(statement).scalar_one() > 0

    def delete_verification_code(self, email: str) -> int:
        with self.begin() as conn:
            return conn.execute(delete(VerificationCode).where(VerificationCode.email == email)).rowcount

    # ===== FOLLOWS =====

    def follow_show(self, email: str, show_id: str) -> int:
        """Follow a show. Following twice is a no-op (returns 0)."""
        statement = insert(Follow).prefix_with("OR IGNORE").values(email=email, showId=show_id)
        with self.begin() as conn:
            return conn.execute(statement).rowcount

    def unfollow_show(self, email: str, show_id: str) -> int:
        statement = delete(Follow).where(Follow.email == email, Follow.showId == show_id)
        with self.begin() as conn:
            return conn.execute(statement).rowcount

    def get_followed_shows(self, email: str, snapshot_path: Path | str) -> List[Dict]:
        """
        Get the shows an email follows, with titles resolved from a catalog snapshot.

        Args:
            email: User email
            snapshot_path: Catalog snapshot file to take titles from

        Returns:
            List of {showId, title}; title is None for shows missing from the snapshot
        """
        with self.connect() as conn, self.attach(conn, snapshot_path, "imdb"):
            return self.fetch_all(
                conn,
                "SELECT f.showId, (SELECT s.title FROM imdb.shows s WHERE s.showId = f.showId) AS title "
                "FROM follows f WHERE f.email = :email",
                {"email": email},
            )
