"""
Key-value persistence backends for the entity store.

The entity store only ever reads and writes whole collections under a small
set of well-known keys, so a backend needs nothing beyond get/set of text
values.  ``set_many`` writes several keys as one unit; the SQLite backend
commits them in a single transaction.

Backends:
  - MemoryKeyValueStore: dict-backed, for tests and throwaway sessions.
  - SqliteKeyValueStore: one ``kv_store`` table in a local SQLite file.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from utils.database import connect, table_exists

logger = logging.getLogger(__name__)

KV_TABLE = "kv_store"


class KeyValueStore(ABC):
    """Abstract text store addressed by string keys."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under *key*, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""

    def set_many(self, items: Iterable[tuple[str, str]]) -> None:
        """Store several values in order.

        Subclasses with transactions override this so the writes land
        together.
        """
        for key, value in items:
            self.set(key, value)

    def close(self) -> None:
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store; every write is recorded in ``history`` for tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self.history: list[str] = []

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self.history.append(key)

    def set_many(self, items: Iterable[tuple[str, str]]) -> None:
        staged = list(items)
        self._data.update(staged)
        self.history.extend(key for key, _ in staged)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the raw stored values."""
        return dict(self._data)


class SqliteKeyValueStore(KeyValueStore):
    """Key-value store kept in a single SQLite table.

    Usage::

        kv = SqliteKeyValueStore(Path("compliance_tracker.sqlite"))
        kv.set("some_key", "[]")
        kv.get("some_key")   # '[]'
        kv.close()
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn = connect(self.db_path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        if table_exists(self._conn, KV_TABLE):
            return
        logger.info("Creating %s table in %s", KV_TABLE, self.db_path)
        self._conn.execute(f"""
            CREATE TABLE {KV_TABLE} (
                key        TEXT PRIMARY KEY,
                value      TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        self._conn.commit()

    def get(self, key: str) -> str | None:
        row = self._conn.execute(
            f"SELECT value FROM {KV_TABLE} WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self.set_many([(key, value)])

    def set_many(self, items: Iterable[tuple[str, str]]) -> None:
        now = time.time()
        rows = [(key, value, now) for key, value in items]
        # The connection context manager commits on success and rolls back
        # on any exception, so either every key is written or none is.
        with self._conn:
            self._conn.executemany(
                f"INSERT INTO {KV_TABLE} (key, value, updated_at) VALUES (?, ?, ?) "
                f"ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                f"updated_at = excluded.updated_at",
                rows,
            )

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SqliteKeyValueStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
