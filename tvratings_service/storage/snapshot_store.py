"""Handle on a file-backed SQLite store with parameterized execute/query."""

import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from tvratings_service.exceptions import AlreadyConnectedError, FatalError, NotConnectedError
from tvratings_service.models.database import create_sqlite_engine

logger = logging.getLogger(__name__)

# ATTACH aliases are chosen by our own code, never by request input
_ALIAS_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

Params = Optional[Mapping[str, Any]]


class SnapshotStore:
    """
    Manages the connection to one database file and converts query results
    to plain dicts.

    `open()` has to be called first. Every value is bound through a
    placeholder; SQL strings passed here must never contain request input.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.engine: Optional[Engine] = None

    def __repr__(self):
        state = "open" if self.is_open else "closed"
        return f"<{type(self).__name__}(path='{self.path}', {state})>"

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "SnapshotStore":
        """
        Establish the connection pool.

        Raises:
            AlreadyConnectedError: If already open
            FatalError: If the file cannot be opened
        """
        if self.engine is not None:
            raise AlreadyConnectedError(f"{self.path} is already connected")

        logger.info(f"Connecting to database {self.path}")
        engine = create_sqlite_engine(self.path)
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            engine.dispose()
            raise FatalError(f"Could not open database {self.path}: {e}") from e

        self.engine = engine
        logger.info(f"Connected to database {self.path}")
        return self

    def close(self) -> None:
        """
        Dispose the connection pool. Connections still checked out by
        in-flight requests are closed when they are returned.

        Raises:
            NotConnectedError: If not open
        """
        if self.engine is None:
            raise NotConnectedError(f"{self.path} is not connected")

        logger.info(f"Disconnecting from database {self.path}")
        self.engine.dispose()
        self.engine = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise NotConnectedError(f"{self.path} is not connected")
        return self.engine

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Check out one connection, for statements that must share it (ATTACH)."""
        with self._require_engine().connect() as conn:
            yield conn

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """Check out one connection inside a transaction committed on exit."""
        with self._require_engine().begin() as conn:
            yield conn

    def execute(self, sql: str, params: Params = None) -> int:
        """
        Execute a DDL or DML statement and commit.

        Returns:
            The row count, or 0 for statements without one
        """
        with self.begin() as conn:
            return self.execute_on(conn, sql, params)

    def query(self, sql: str, params: Params = None) -> List[Dict[str, Any]]:
        """Run a query and return every row as a column -> value dict."""
        with self.connect() as conn:
            return self.fetch_all(conn, sql, params)

    def iter_query(self, sql: str, params: Params = None) -> Iterator[Dict[str, Any]]:
        """Lazy variant of `query`; the connection is held until exhausted."""
        with self.connect() as conn:
            for row in conn.execute(text(sql), dict(params or {})).mappings():
                yield dict(row)

    @staticmethod
    def execute_on(conn: Connection, sql: str, params: Params = None) -> int:
        result = conn.execute(text(sql), dict(params or {}))
        return max(result.rowcount, 0)

    @staticmethod
    def fetch_all(conn: Connection, sql: str, params: Params = None) -> List[Dict[str, Any]]:
        result = conn.execute(text(sql), dict(params or {}))
        return [dict(row) for row in result.mappings()]

    @staticmethod
    @contextmanager
    def attach(conn: Connection, path: Path | str, alias: str) -> Iterator[Connection]:
        """
        ATTACH another database file to `conn` under `alias`, DETACH on exit.

        Args:
            conn: Connection the attached file is visible to
            path: Database file to attach (bound as a parameter)
            alias: Schema name used in the query, e.g. 'old'
        """
        if not _ALIAS_PATTERN.fullmatch(alias):
            raise ValueError(f"Invalid database alias: {alias!r}")

        conn.execute(text(f"ATTACH DATABASE :path AS {alias}"), {"path": str(path)})
        try:
            yield conn
        finally:
            conn.execute(text(f"DETACH DATABASE {alias}"))
