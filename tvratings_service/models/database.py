"""Engine factory for SQLite database files."""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine


def create_sqlite_engine(path: Path | str, echo: bool = False) -> Engine:
    """
    Create an engine for a file-backed SQLite database.

    Connections are pooled and may be used from any thread, so one engine
    serves all concurrent readers of a snapshot.

    Args:
        path: Database file path (created on first connect if missing)
        echo: Log every statement (SQL debugging)

    Returns:
        SQLAlchemy engine
    """
    return create_engine(
        f"sqlite:///{Path(path)}",
        connect_args={"check_same_thread": False, "timeout": 30},
        pool_pre_ping=True,
        echo=echo,
    )
