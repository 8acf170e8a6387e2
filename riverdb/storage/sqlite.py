"""
SQLite storage adapter for RiverDB.

Stores every collection blob as one row of a key/value table in a single
SQLite file, so collections survive process restarts.

Invariants:
    - One row per key
    - Every write runs in its own transaction
    - Values are stored verbatim; the adapter never parses them

How to change safely:
    - Schema migrations must be backward compatible
    - Keep get_item/set_item semantics identical to InMemoryStorage

Table schema:
    kv:
        - key TEXT PRIMARY KEY
        - value TEXT NOT NULL
        - updated_at INTEGER (Unix ms)
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from ..errors import StorageError, StorageWriteError

logger = logging.getLogger(__name__)


class SqliteStorage:
    """Key/value StorageAdapter backed by a SQLite file.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> storage = SqliteStorage("/var/lib/app/riverdb.sqlite")
        >>> storage.set_item("owners", "{}")
        >>> storage.get_item("owners")
        '{}'
    """

    def __init__(
        self,
        path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store and create its table.

        Args:
            path: SQLite database file path
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._create_schema()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the database file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _create_schema(self) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)
        logger.debug(f"SQLite storage ready at {self.path}")

    def get_item(self, key: str) -> Optional[str]:
        try:
            with self._get_connection() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read '{key}' from {self.path}: {e}", key=key) from e
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        now = int(time.time() * 1000)
        try:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    conn.execute(
                        """
                        INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                        """,
                        (key, value, now),
                    )
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error as e:
            raise StorageWriteError(f"Failed to write '{key}' to {self.path}: {e}", key=key) from e

    def remove_item(self, key: str) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageWriteError(f"Failed to remove '{key}' from {self.path}: {e}", key=key) from e

    def keys(self) -> Iterator[str]:
        try:
            with self._get_connection() as conn:
                rows = conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list keys in {self.path}: {e}") from e
        for row in rows:
            yield row[0]
