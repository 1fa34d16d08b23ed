"""SQLite helpers for the key-value backend.

The store keeps everything in one small table, so all that is needed here is
a connection with the right pragmas and a schema probe for the backend.
"""

import sqlite3
from pathlib import Path


def connect(db_path: Path) -> sqlite3.Connection:
    """Open *db_path* for reading and writing, creating its directory.

    Rows come back as ``sqlite3.Row`` so callers can index by column name.
    """
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    init_pragmas(conn)
    return conn


def init_pragmas(conn: sqlite3.Connection) -> None:
    """WAL journal, NORMAL sync and a busy timeout for a second process."""
    for pragma in ("journal_mode=WAL", "synchronous=NORMAL", "busy_timeout=5000"):
        conn.execute(f"PRAGMA {pragma}")


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return row is not None

