"""SQLite-backed key/value persistence for the history log."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Union


IN_MEMORY = ":memory:"


def open_database(
    path: Union[Path, str], *, check_same_thread: bool = True
) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
    )


class KeyValueStore:
    """Stores JSON documents under string keys.

    Each ``set`` replaces the whole value in a single statement, so readers
    never observe a partially written document.
    """

    def __init__(self, conn: sqlite3.Connection, path: Union[Path, str] = IN_MEMORY) -> None:
        self._conn = conn
        self.path = path

    @classmethod
    def open(cls, path: Union[Path, str]) -> "KeyValueStore":
        conn = open_database(path, check_same_thread=False)
        return cls(conn, path)

    @classmethod
    def open_in_memory(cls) -> "KeyValueStore":
        return cls.open(IN_MEMORY)

    def get(self, key: str, default: Any = None) -> Any:
        row = self._conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return default
        return json.loads(row["value"])

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        self._conn.execute(
            """
            INSERT INTO kv_store (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
            """,
            (key, encoded),
        )

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@contextmanager
def store_connection(path: Union[Path, str]) -> Iterator[KeyValueStore]:
    store = KeyValueStore.open(path)
    try:
        yield store
    finally:
        store.close()
