"""
Play history lookups.

Remembers which resolved audio file a user input was last mapped to, so that
`pmu play <name>` keeps working after the original path stops existing
relative to the current directory.
"""

import time
from pathlib import Path
from typing import Optional

from pmu.core.database import get_db_connection, init_database


def insert(input_path: str, resolved_path: Path) -> None:
    """Record that ``input_path`` resolved to ``resolved_path``."""
    init_database()
    with get_db_connection() as conn:
        conn.execute(
            "INSERT INTO history (timestamp, input, path) VALUES (?, ?, ?)",
            (int(time.time()), str(input_path), str(resolved_path)),
        )
        conn.commit()


def find(input_path: str) -> Optional[Path]:
    """Return the most recent resolved path for ``input_path``, if any."""
    init_database()
    with get_db_connection() as conn:
        row = conn.execute(
            """
            SELECT path FROM history
            WHERE input = ?
            ORDER BY timestamp DESC, rowid DESC
            LIMIT 1
            """,
            (str(input_path),),
        ).fetchone()

    return Path(row["path"]) if row else None
