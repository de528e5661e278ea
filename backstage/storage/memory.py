"""
In-memory key-value backend.

Used for:
- Unit tests
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Optional quota emulates the browser's storage quota

How to change safely:
    - Keep interface compatible with the KeyValueStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .base import StorageClosedError, StorageFullError

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore:
    """Dict-backed implementation of KeyValueStore.

    Attributes:
        quota_bytes: Optional total size limit over keys and values;
            writes past it raise StorageFullError like a full browser store

    Example:
        >>> kv = InMemoryKeyValueStore()
        >>> kv.set("k", "v")
        >>> kv.get("k")
        'v'
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise StorageClosedError("Store is closed")

    def _size_with(self, key: str, value: str) -> int:
        size = len(key) + len(value)
        for k, v in self._data.items():
            if k != key:
                size += len(k) + len(v)
        return size

    def get(self, key: str) -> Optional[str]:
        self._check_open()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_open()
        if self.quota_bytes is not None and self._size_with(key, value) > self.quota_bytes:
            raise StorageFullError(f"Quota of {self.quota_bytes} bytes exceeded writing {key}")
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._check_open()
        self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        self._check_open()
        return list(self._data)

    def close(self) -> None:
        self._closed = True
        logger.debug("InMemoryKeyValueStore closed")

    # --- Testing helpers ---

    def raw_items(self) -> List[tuple]:
        """Snapshot of every stored (key, value) pair."""
        return sorted(self._data.items())

    def clear(self) -> None:
        """Drop all data."""
        self._data.clear()
