"""
SQLite database operations for pmu
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from .config import get_data_dir


def get_database_path() -> Path:
    """Get the path to the SQLite database file."""
    return get_data_dir() / "data.db"


@contextmanager
def get_db_connection():
    """Get a database connection with proper cleanup."""
    db_path = get_database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row  # Enable dict-like access

    try:
        yield conn
    finally:
        conn.close()


def init_database() -> None:
    """Create tables and indexes if they do not exist yet."""
    with get_db_connection() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS history (
                timestamp INTEGER,
                input TEXT,
                path TEXT
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_history_timestamp_input
            ON history (timestamp, input)
        """)

        conn.commit()

    logger.debug(f"Database ready: {get_database_path()}")
