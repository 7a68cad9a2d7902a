"""Downloads the IMDb datasets and imports them into a catalog snapshot."""

import csv
import logging
import tempfile
import time
import zlib
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from urllib3.util.retry import Retry

from tvratings_service.exceptions import DatasetImportError
from tvratings_service.models import Episode, Genre, Show
from tvratings_service.storage import SnapshotStore

logger = logging.getLogger(__name__)

IMDB_DATASETS_URL = "https://datasets.imdbws.com/"

# See https://developer.imdb.com/non-commercial-datasets/
DATASETS = (
    "title.basics.tsv.gz",
    "title.episode.tsv.gz",
    "title.ratings.tsv.gz",
)

# Upstream marker for a missing value
MISSING_VALUE = "\\N"

STAGING_TABLES = ("title_episode", "title_basics", "title_ratings")

# (log message, statement) in execution order, run after the staging tables are loaded
CATALOG_STEPS: List[Tuple[str, str]] = [
    (
        "adding temporary shows.genres column",
        "ALTER TABLE shows ADD COLUMN genres TEXT",
    ),
    (
        "inserting shows",
        "INSERT INTO shows (showId, title, startYear, endYear, duration, rating, votes, genres) "
        "SELECT b.tconst, primaryTitle, startYear, endYear, runtimeMinutes, averageRating, numVotes, genres "
        "FROM title_basics b "
        "LEFT JOIN title_ratings r ON b.tconst = r.tconst "
        "WHERE titleType IN ('tvSeries', 'tvMiniSeries') "
        "AND numVotes IS NOT NULL "
        "ORDER BY CAST(numVotes AS INTEGER) DESC",
    ),
    (
        "creating shows(votes) index",
        "CREATE INDEX showsVotesIndex ON shows(votes)",
    ),
    (
        "inserting episodes",
        "INSERT INTO episodes (episodeId, showId, title, season, episode, startYear, duration, rating, votes) "
        "SELECT e.tconst, parentTconst, primaryTitle, seasonNumber, episodeNumber, startYear, runtimeMinutes, "
        "averageRating, numVotes "
        "FROM title_episode e "
        "LEFT JOIN title_ratings r ON e.tconst = r.tconst "
        "LEFT JOIN title_basics b ON e.tconst = b.tconst "
        "WHERE seasonNumber IS NOT NULL AND episodeNumber IS NOT NULL "
        "ORDER BY CAST(numVotes AS INTEGER) DESC",
    ),
    (
        "creating episodes(showId) index",
        "CREATE INDEX episodesShowIdIndex ON episodes(showId)",
    ),
    (
        "creating episodes(votes) index",
        "CREATE INDEX episodesVotesIndex ON episodes(votes)",
    ),
    (
        "deleting shows with no episodes",
        "DELETE FROM shows WHERE NOT EXISTS (SELECT 1 FROM episodes WHERE episodes.showId = shows.showId)",
    ),
    (
        "deleting episodes with no show",
        "DELETE FROM episodes WHERE showId IS NULL OR showId NOT IN (SELECT showId FROM shows)",
    ),
] + [
    (f"dropping temporary table {table}", f"DROP TABLE {table}") for table in STAGING_TABLES
]

# run once the genres table exists
GENRE_STEPS: List[Tuple[str, str]] = [
    (
        # 'Drama,Crime' -> ('Drama'), ('Crime'): peel one token off 'next' per recursion
        "inserting genres",
        "INSERT OR IGNORE INTO genres (showId, genre) "
        "WITH RECURSIVE split_genres(id, genre, next) AS ("
        "SELECT showId, '', genres || ',' FROM shows WHERE genres IS NOT NULL "
        "UNION ALL "
        "SELECT id, substr(next, 1, instr(next, ',') - 1), substr(next, instr(next, ',') + 1) "
        "FROM split_genres WHERE next != ''"
        ") SELECT id, genre FROM split_genres WHERE genre != ''",
    ),
    (
        "creating genres(showId) index",
        "CREATE INDEX genresIndex ON genres(showId)",
    ),
    (
        "dropping temporary shows.genres column",
        "ALTER TABLE shows DROP COLUMN genres",
    ),
]


def build_session(total_retries: int = 3) -> requests.Session:
    """HTTP session retrying transient upstream failures."""
    session = requests.Session()
    retry_strategy = Retry(
        total=total_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504]
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    # noinspection HttpUrlsUsage
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class ImdbDatasetImporter:
    """
    Downloads the IMDb datasets and builds a query-ready catalog in `store`.

    The store must be a fresh, open snapshot file: staging tables are created
    under fixed names and the import fails if they already exist. A failed
    import leaves the partial file on disk for the caller to clean up.
    """

    def __init__(
            self,
            store: SnapshotStore,
            base_url: str = IMDB_DATASETS_URL,
            work_dir: Optional[Path] = None,
            chunk_size: int = 100_000,
            session: Optional[requests.Session] = None,
            timeout: Optional[float] = None
    ):
        """
        Args:
            store: Open snapshot store to import into
            base_url: Where the .tsv.gz files are served
            work_dir: Directory for the decompressed .tsv files (default: system temp dir)
            chunk_size: Rows read and inserted per batch
            session: Optional preconfigured requests session
            timeout: Socket timeout for downloads (None: no timeout)
        """
        self.store = store
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.work_dir = Path(work_dir or tempfile.gettempdir())
        self.chunk_size = chunk_size
        self.session = session or build_session()
        self.timeout = timeout

    def start(self) -> None:
        """
        Run the whole import: download and load each dataset, then transform.

        Raises:
            DatasetImportError: If any step fails
        """
        start_time = time.time()
        logger.info(f"Importing IMDb datasets into {self.store.path}")

        for dataset in DATASETS:
            dataset_file = self.download_dataset(dataset)
            try:
                self.import_dataset(dataset_file)
            finally:
                dataset_file.unlink(missing_ok=True)

        self.optimize_tables()

        elapsed = time.time() - start_time
        logger.info(f"✓ Imported IMDb datasets into {self.store.path} in {elapsed:.1f} s")

    def download_dataset(self, dataset_name: str) -> Path:
        """
        Download a dataset and decompress it while streaming to disk.

        Args:
            dataset_name: One of DATASETS

        Returns:
            The decompressed .tsv file
        """
        start_time = time.time()
        url = self.base_url + dataset_name
        output_file = self.work_dir / dataset_name.removesuffix(".gz")
        logger.info(f"Downloading {url}...")

        self.work_dir.mkdir(parents=True, exist_ok=True)
        decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)  # gzip container
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(output_file, "wb") as out:
                    for chunk in response.iter_content(chunk_size=1024 * 1024):
                        out.write(decompressor.decompress(chunk))
                    out.write(decompressor.flush())
            if not decompressor.eof:
                raise EOFError("compressed stream ended before the end-of-stream marker")
        except (requests.RequestException, OSError, EOFError, zlib.error) as e:
            output_file.unlink(missing_ok=True)
            raise DatasetImportError("download", f"{dataset_name}: {e}") from e

        size_mb = output_file.stat().st_size / 1024 / 1024
        logger.info(f"✓ Downloaded {dataset_name} ({size_mb:.2f} MB) in {time.time() - start_time:.1f} s")
        return output_file

    def import_dataset(self, dataset_file: Path) -> str:
        """
        Load a .tsv file into a staging table of TEXT columns, in one transaction.

        The header line gives the column names; title.basics.tsv becomes
        table title_basics. Missing values (\\N) are stored as NULL.

        Returns:
            The staging table name
        """
        start_time = time.time()
        table_name = dataset_file.name.removesuffix(".tsv").replace(".", "_")
        logger.info(f"Importing {dataset_file.name} into {table_name}...")

        try:
            with open(dataset_file, encoding="utf-8") as f:
                column_names = f.readline().rstrip("\r\n").split("\t")

            reader = pd.read_csv(
                dataset_file,
                sep="\t",
                dtype=str,
                quoting=csv.QUOTE_NONE,
                na_values=[MISSING_VALUE],
                keep_default_na=False,
                chunksize=self.chunk_size,
                encoding="utf-8",
                on_bad_lines="warn",
            )

            row_count = 0
            with self.store.begin() as conn:
                quote = conn.dialect.identifier_preparer.quote_identifier
                columns_sql = ", ".join(f"{quote(column)} TEXT" for column in column_names)
                conn.execute(text(f"CREATE TABLE {quote(table_name)} ({columns_sql})"))

                keys = [f"c{i}" for i in range(len(column_names))]
                insert_sql = text(
                    f"INSERT INTO {quote(table_name)} VALUES ({', '.join(':' + key for key in keys)})"
                )
                with reader:
                    for chunk in reader:
                        chunk = chunk.astype(object).where(chunk.notna(), None)
                        rows = [dict(zip(keys, values)) for values in chunk.itertuples(index=False, name=None)]
                        if rows:
                            conn.execute(insert_sql, rows)
                        row_count += len(rows)
        except (OSError, ValueError, SQLAlchemyError) as e:
            raise DatasetImportError("import", f"{dataset_file.name}: {e}") from e

        logger.info(f"✓ Imported {row_count} rows into {table_name} in {time.time() - start_time:.1f} s")
        return table_name

    def optimize_tables(self) -> None:
        """
        1. Combines the staging tables into the shows and episodes tables.
        2. Creates the indices the search queries rely on.
        3. Deletes shows without episodes, then episodes without a show.
        4. Drops the staging tables.
        5. Splits the comma separated genres into the genres table.
        """
        start_time = time.time()
        logger.info("Optimizing tables...")

        try:
            with self.store.begin() as conn:
                Show.__table__.create(conn)
                Episode.__table__.create(conn)

            for message, statement in CATALOG_STEPS:
                self._run_step(message, statement)

            with self.store.begin() as conn:
                Genre.__table__.create(conn)

            for message, statement in GENRE_STEPS:
                self._run_step(message, statement)
        except SQLAlchemyError as e:
            raise DatasetImportError("optimize", str(e)) from e

        logger.info(f"✓ Optimized tables in {time.time() - start_time:.1f} s")

    def _run_step(self, message: str, statement: str) -> None:
        logger.info(f"{message}..")
        row_count = self.store.execute(statement)
        if row_count:
            logger.info(f"  {row_count} rows")
