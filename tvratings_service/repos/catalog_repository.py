"""Query surface of a catalog snapshot."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from tvratings_service.repos.search_query import SELECT_GENRES, SearchParameters, build_search_query
from tvratings_service.storage import SnapshotStore

logger = logging.getLogger(__name__)

# When a new episode airs, voting is enabled: votes go from NULL to a number.
# Unaired episodes are listed upstream long before they air, so comparing
# episode ids alone would fire too early.
NEW_EPISODES_QUERY = (
    "SELECT DISTINCT f.*, s.title FROM user.follows f "
    "LEFT JOIN shows s ON s.showId = f.showId "
    "LEFT JOIN episodes n ON f.showId = n.showId "
    "LEFT JOIN old.episodes o ON n.episodeId = o.episodeId "
    "WHERE n.votes IS NOT NULL AND o.votes IS NULL"
)


class CatalogSnapshot(SnapshotStore):
    """
    One immutable, dated catalog file (shows, episodes, genres).

    Request handlers only read from it; it is written once by the importer
    before being promoted.
    """

    def search(self, params: SearchParameters) -> List[Dict]:
        """
        Search shows or episodes.

        Args:
            params: Raw query string inputs, see SearchParameters

        Returns:
            One dict per row, including the aggregated 'genres' string
        """
        sql, values = build_search_query(params)
        return self.query(sql, values)

    def get_show(self, show_id: str) -> Optional[Dict]:
        """Get a show with its genres, or None. The most voted row wins."""
        rows = self.query(
            f"SELECT *, {SELECT_GENRES} FROM shows t WHERE showId = :showId ORDER BY votes DESC LIMIT 1",
            {"showId": show_id},
        )
        return rows[0] if rows else None

    def get_show_episodes(self, show_id: str) -> List[Dict]:
        """Get all episodes of a show ordered by season and episode number."""
        return self.query(
            "SELECT * FROM episodes WHERE showId = :showId ORDER BY season, episode",
            {"showId": show_id},
        )

    def get_genres(self) -> List[str]:
        """Get the distinct genres, sorted."""
        rows = self.query("SELECT DISTINCT genre FROM genres ORDER BY genre")
        return [row["genre"] for row in rows]

    def get_new_shows(self, old_snapshot_path: Path | str) -> List[Dict]:
        """Get shows that are not in an older snapshot, most voted first."""
        with self.connect() as conn, self.attach(conn, old_snapshot_path, "old"):
            return self.fetch_all(
                conn,
                "SELECT n.* FROM shows n WHERE n.showId NOT IN "
                "(SELECT o.showId FROM old.shows o) ORDER BY n.votes DESC",
            )

    def get_users_following_shows_with_new_episodes(
            self,
            old_snapshot_path: Path | str,
            user_store_path: Path | str
    ) -> List[Dict]:
        """
        Diff this snapshot against an older one.

        Args:
            old_snapshot_path: The previously live snapshot file
            user_store_path: The user store file (follows table)

        Returns:
            List of {email, showId, title}, one per follower and show with newly aired episodes
        """
        with self.connect() as conn, \
                self.attach(conn, old_snapshot_path, "old"), \
                self.attach(conn, user_store_path, "user"):
            rows = self.fetch_all(conn, NEW_EPISODES_QUERY)

        logger.info(f"Found {len(rows)} followed shows with new episodes")
        return rows

    def count_shows(self) -> int:
        return self.query("SELECT COUNT(*) AS count FROM shows")[0]["count"]

    def count_episodes(self) -> int:
        return self.query("SELECT COUNT(*) AS count FROM episodes")[0]["count"]
