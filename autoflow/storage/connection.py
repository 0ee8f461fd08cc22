"""Database connection management."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from .schema import SCHEMA_SQL


def init_db(path: str, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """
    Initialize or open an autoflow database.

    Creates all required tables if they don't exist.
    Configures connection for optimal performance.

    Args:
        path: Path to the SQLite file (":memory:" for a throwaway database)
        check_same_thread: Passed through to sqlite3; disable for worker threads

    Returns:
        Configured sqlite3.Connection ready for use
    """
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row

    # Performance and safety settings
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA synchronous=NORMAL")

    # Create tables
    conn.executescript(SCHEMA_SQL)
    conn.commit()

    return conn
