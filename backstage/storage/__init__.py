"""
Storage for NexaNotes Backstage.

This module provides:
- The KeyValueStore protocol and its backends (in-memory, SQLite)
- PersistentStore: prefixed JSON collections with absorbed failures
- Layout migrations for data written by older versions

Invariants:
    - PersistentStore is the sole owner of the on-disk representation
    - Storage failures are logged and counted, never raised to services

How to change safely:
    - New backends must implement the KeyValueStore protocol
    - Shape changes ship with a migration
"""

from .adapter import COLLECTIONS, DEFAULT_PREFIX, PersistentStore, StorageHealth
from .base import (
    KeyValueStore,
    StorageClosedError,
    StorageError,
    StorageFullError,
    create_kv_store,
)
from .memory import InMemoryKeyValueStore
from .migrations import migrate_legacy_notes
from .sqlite import SqliteKeyValueStore

__all__ = [
    # Protocol and errors
    "KeyValueStore",
    "StorageError",
    "StorageFullError",
    "StorageClosedError",
    # Factory
    "create_kv_store",
    # Implementations
    "InMemoryKeyValueStore",
    "SqliteKeyValueStore",
    # Adapter
    "PersistentStore",
    "StorageHealth",
    "COLLECTIONS",
    "DEFAULT_PREFIX",
    "migrate_legacy_notes",
]
