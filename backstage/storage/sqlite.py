"""
SQLite key-value backend.

Stores every prefixed collection as one row of a single table, so a
deployment keeps all state in one file.

Invariants:
    - One SQLite file per installation
    - Each set() is a single autocommitted statement
    - sqlite3 errors surface as StorageError subclasses

How to change safely:
    - The table layout is part of the on-disk format; add columns, never rename
    - Test with a copy of production data before changing pragmas

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
from typing import Iterable, Optional

from .base import StorageClosedError, StorageError, StorageFullError

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """File-backed implementation of KeyValueStore.

    Thread safety:
        A connection is created per operation. Callers run one operation
        at a time.

    Example:
        >>> kv = SqliteKeyValueStore("/var/lib/nexanotes/backstage.db")
        >>> kv.set("nexanotes_session", '"a@b.com"')
    """

    def __init__(
        self,
        path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store and create its schema.

        Args:
            path: Database file path (":memory:" is not supported since
                connections are per operation)
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._closed = False
        self._create_schema()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection, mapping sqlite3 errors.

        Yields:
            SQLite connection
        """
        if self._closed:
            raise StorageClosedError(f"Store is closed: {self.path}")

        self.path.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.path}: {e}") from e

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        except sqlite3.OperationalError as e:
            if "full" in str(e).lower():
                raise StorageFullError(str(e)) from e
            raise StorageError(str(e)) from e
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def _create_schema(self) -> None:
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                );
            """)
        logger.info(f"Opened key-value store: {self.path}")

    def get(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                (key, value, int(time.time() * 1000)),
            )

    def delete(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> Iterable[str]:
        with self._get_connection() as conn:
            return [row[0] for row in conn.execute("SELECT key FROM kv ORDER BY key")]

    def close(self) -> None:
        self._closed = True
        logger.debug(f"SqliteKeyValueStore closed: {self.path}")
