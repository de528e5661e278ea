"""
Base protocol and types for the key-value storage abstraction.

This module defines the KeyValueStore protocol that every backend must
implement. Values are opaque strings; JSON handling lives one layer up in
PersistentStore.

Invariants:
    - get() returns None for a missing key, never raises KeyError
    - set() replaces the whole value for a key
    - Backends are synchronous; one call completes before the next starts

How to change safely:
    - Protocol changes require updating all implementations
    - Backends raise StorageError subclasses; PersistentStore absorbs them
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Iterable, Optional, Protocol, runtime_checkable
import logging

if TYPE_CHECKING:
    from ..config import StorageConfig

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage backend operations."""
    pass


class StorageFullError(StorageError):
    """Backend refused a write because it ran out of space."""
    pass


class StorageClosedError(StorageError):
    """Operation on a backend that has been closed."""
    pass


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for synchronous key-value storage backends.

    Mirrors the contract of browser local storage: string keys, string
    values, immediate reads of the last write.

    Example:
        >>> kv = InMemoryKeyValueStore()
        >>> kv.set("nexanotes_session", '"a@b.com"')
        >>> kv.get("nexanotes_session")
        '"a@b.com"'
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent.

        Raises:
            StorageError: If the backend cannot be read
        """
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Raises:
            StorageFullError: If the backend has no room for the value
            StorageError: For other write failures
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is a no-op."""
        ...

    @abstractmethod
    def keys(self) -> Iterable[str]:
        """All stored keys."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release backend resources."""
        ...


def create_kv_store(config: "StorageConfig") -> KeyValueStore:
    """Factory function to create a key-value backend from configuration.

    Args:
        config: Storage configuration

    Returns:
        Appropriate KeyValueStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import InMemoryKeyValueStore
    from .sqlite import SqliteKeyValueStore

    if config.backend == StorageBackend.MEMORY:
        return InMemoryKeyValueStore()
    elif config.backend == StorageBackend.SQLITE:
        return SqliteKeyValueStore(
            config.sqlite_path,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )
    else:
        raise ValueError(f"Unsupported storage backend: {config.backend}")
