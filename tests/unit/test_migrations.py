"""
Unit tests for persisted layout migrations.

Tests cover:
- Folding the legacy per-owner note map into the single collection
- Conflict resolution between the two legacy copies
- Idempotency
"""

import pytest

from backstage.storage import InMemoryKeyValueStore, PersistentStore, migrate_legacy_notes


def legacy_note(note_id, title="t", updated="2024-01-01T00:00:00.000Z"):
    return {
        "id": note_id,
        "title": title,
        "content": "c",
        "createdAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": updated,
    }


class TestMigrateLegacyNotes:
    """Tests for migrate_legacy_notes."""

    @pytest.fixture
    def store(self):
        return PersistentStore(InMemoryKeyValueStore())

    def test_nothing_to_migrate(self, store):
        store.write("notes_all", [legacy_note("n1")])
        assert migrate_legacy_notes(store) == 0
        assert store.read("notes_all") == [legacy_note("n1")]

    def test_owner_is_recorded_on_each_note(self, store):
        store.write("notes", {"a@x.com": [legacy_note("n1")], "b@x.com": [legacy_note("n2")]})
        store.write("notes_all", [legacy_note("n2"), legacy_note("n1")])

        assert migrate_legacy_notes(store) == 2

        notes = store.read("notes_all")
        assert [n["id"] for n in notes] == ["n2", "n1"]
        assert notes[0]["ownerEmail"] == "b@x.com"
        assert notes[1]["ownerEmail"] == "a@x.com"
        assert store.read("notes") is None

    def test_per_owner_copy_wins(self, store):
        store.write("notes", {"a@x.com": [legacy_note("n1", title="fresh")]})
        store.write("notes_all", [legacy_note("n1", title="stale")])

        migrate_legacy_notes(store)

        assert store.read("notes_all")[0]["title"] == "fresh"

    def test_notes_missing_from_global_index_are_kept(self, store):
        store.write("notes", {"a@x.com": [legacy_note("n1"), legacy_note("n2")]})
        store.write("notes_all", [legacy_note("n1")])

        assert migrate_legacy_notes(store) == 2
        assert {n["id"] for n in store.read("notes_all")} == {"n1", "n2"}

    def test_duplicate_global_entries_collapse(self, store):
        store.write("notes", {"a@x.com": [legacy_note("n1")]})
        store.write("notes_all", [legacy_note("n1"), legacy_note("n1")])

        assert migrate_legacy_notes(store) == 1

    def test_unexpected_layout_is_removed(self, store):
        store.write("notes", ["not", "a", "map"])
        assert migrate_legacy_notes(store) == 0
        assert store.read("notes") is None

    def test_idempotent(self, store):
        store.write("notes", {"a@x.com": [legacy_note("n1")]})
        migrate_legacy_notes(store)
        first = store.read("notes_all")

        assert migrate_legacy_notes(store) == 0
        assert store.read("notes_all") == first

    def test_failed_write_keeps_legacy_layout(self):
        notes = [legacy_note(f"n{i}", title="x" * 100) for i in range(5)]
        kv = InMemoryKeyValueStore()
        store = PersistentStore(kv)
        store.write("notes", {"a@x.com": notes})
        kv.quota_bytes = len("nexanotes_notes") + len(kv.get("nexanotes_notes")) + 64

        assert migrate_legacy_notes(store) == 0

        assert store.read("notes_all") is None
        assert store.read("notes") == {"a@x.com": notes}
        assert store.health().write_failures == 1

    def test_retry_after_failed_write(self):
        kv = InMemoryKeyValueStore()
        store = PersistentStore(kv)
        store.write("notes", {"a@x.com": [legacy_note("n1"), legacy_note("n2")]})
        kv.quota_bytes = 1
        migrate_legacy_notes(store)

        kv.quota_bytes = None
        assert migrate_legacy_notes(store) == 2
        assert store.read("notes") is None
