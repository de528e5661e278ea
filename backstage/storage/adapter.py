"""
Persistent store adapter: prefixed JSON collections over a KeyValueStore.

Every service reads and writes whole collections through this adapter.
Failures are logged and absorbed so persistence never blocks the user;
they are counted in StorageHealth so they stay observable.

Invariants:
    - Every key is stored under the fixed prefix
    - read() returns None on a missing key or any failure, never raises
    - write() and remove() never raise; callers must not assume durability
    - initialize() only fills collections that are absent

How to change safely:
    - Collection names are part of the on-disk format
    - Shape changes need a migration (see migrations.py)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


# Collection keys (stored as <prefix><name>)
USERS = "users"
NOTES = "notes"
NOTES_ALL = "notes_all"
THREADS = "threads"
COMMUNITIES = "communities"
PUBLICATIONS = "publications"
WEB_CONFIG = "web_config"
SESSION = "session"
ROLES = "roles"

COLLECTIONS = (
    USERS,
    NOTES,
    NOTES_ALL,
    THREADS,
    COMMUNITIES,
    PUBLICATIONS,
    WEB_CONFIG,
    SESSION,
    ROLES,
)

DEFAULT_PREFIX = "nexanotes_"


@dataclass
class StorageHealth:
    """Counters for absorbed storage failures.

    Attributes:
        read_failures: Reads that failed to fetch or parse
        write_failures: Writes dropped (serialization or backend error)
        remove_failures: Removes dropped
        last_error: Message of the most recent failure
    """

    read_failures: int = 0
    write_failures: int = 0
    remove_failures: int = 0
    last_error: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return not (self.read_failures or self.write_failures or self.remove_failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "read_failures": self.read_failures,
            "write_failures": self.write_failures,
            "remove_failures": self.remove_failures,
            "last_error": self.last_error,
        }


class PersistentStore:
    """Key-prefixed JSON read/write/remove over a KeyValueStore.

    Example:
        >>> store = PersistentStore(InMemoryKeyValueStore())
        >>> store.write("session", "a@b.com")
        >>> store.read("session")
        'a@b.com'
    """

    def __init__(self, kv: KeyValueStore, prefix: str = DEFAULT_PREFIX) -> None:
        self.kv = kv
        self.prefix = prefix
        self._health = StorageHealth()

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _record_failure(self, kind: str, key: str, error: Exception) -> None:
        if kind == "read":
            self._health.read_failures += 1
        elif kind == "write":
            self._health.write_failures += 1
        else:
            self._health.remove_failures += 1
        self._health.last_error = f"{kind} {key}: {error}"
        logger.error(f'Failed to {kind} DB key "{key}": {error}')

    def read(self, key: str) -> Any:
        """Read and parse a collection.

        Returns:
            Parsed value, or None if missing or unreadable
        """
        try:
            raw = self.kv.get(self._key(key))
            if raw is None:
                return None
            return json.loads(raw)
        except (StorageError, ValueError) as e:
            self._record_failure("read", key, e)
            return None

    def write(self, key: str, value: Any) -> None:
        """Serialize and store a collection. Failures are logged and dropped."""
        try:
            self.kv.set(self._key(key), json.dumps(value))
        except (StorageError, TypeError, ValueError) as e:
            self._record_failure("write", key, e)

    def remove(self, key: str) -> None:
        """Delete a collection. Failures are logged and dropped."""
        try:
            self.kv.delete(self._key(key))
        except StorageError as e:
            self._record_failure("remove", key, e)

    def read_or(self, key: str, default_factory: Callable[[], Any]) -> Any:
        """Read a collection, falling back to a fresh default value."""
        value = self.read(key)
        return default_factory() if value is None else value

    def initialize(self, defaults: Dict[str, Callable[[], Any]]) -> None:
        """Write default values for collections that are absent.

        Args:
            defaults: Collection name to factory of its default value
        """
        for key, factory in defaults.items():
            if self.read(key) is None:
                self.write(key, factory())
                logger.debug(f"Initialized collection {key}")

    def health(self) -> StorageHealth:
        """Current failure counters (a copy)."""
        return StorageHealth(**vars(self._health))

    def close(self) -> None:
        self.kv.close()
