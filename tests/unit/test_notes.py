"""
Unit tests for the note repository.

Tests cover:
- Create / list / get / update / delete
- Ordering and timestamp monotonicity
- Owner checks and moderation
- AI summaries stored on notes
"""

import pytest

from backstage.errors import AccessDeniedError, NotFoundError, ValidationError
from backstage.models import parse_timestamp
from backstage.services import NoteIndex
from backstage.storage.adapter import NOTES_ALL


class FakeAssistant:
    """Stands in for GenAiClient."""

    def __init__(self, summary="A crisp summary."):
        self.summary = summary
        self.seen = []

    async def summarize_note(self, content):
        self.seen.append(content)
        return self.summary


class TestNoteService:
    """Tests for NoteService."""

    @pytest.fixture
    def notes(self, backstage):
        return backstage.notes

    @pytest.mark.asyncio
    async def test_create_note(self, notes):
        note = await notes.create_note("a@x.com", "Title", "Body")

        assert note.id.startswith("id_")
        assert note.created_at == note.updated_at
        assert note.owner_email == "a@x.com"
        assert await notes.get_notes("a@x.com") == [note]

    @pytest.mark.asyncio
    async def test_notes_are_stored_once_with_owner(self, backstage, notes):
        await notes.create_note("a@x.com", "one", "")
        await notes.create_note("b@x.com", "two", "")

        records = backstage.store.read(NOTES_ALL)
        assert [r["title"] for r in records] == ["two", "one"]
        assert [r["ownerEmail"] for r in records] == ["b@x.com", "a@x.com"]
        assert backstage.store.read("notes") is None

    @pytest.mark.asyncio
    async def test_get_notes_is_per_owner(self, notes):
        await notes.create_note("a@x.com", "mine", "")
        await notes.create_note("b@x.com", "theirs", "")

        assert [n.title for n in await notes.get_notes("a@x.com")] == ["mine"]
        assert await notes.get_notes("nobody@x.com") == []

    @pytest.mark.asyncio
    async def test_get_notes_sorted_by_update(self, backstage, notes):
        def record(note_id, updated):
            return {
                "id": note_id,
                "title": note_id,
                "content": "",
                "createdAt": "2024-01-01T00:00:00.000Z",
                "updatedAt": updated,
                "ownerEmail": "a@x.com",
            }

        backstage.store.write(NOTES_ALL, [
            record("old", "2024-01-02T00:00:00.000Z"),
            record("new", "2024-03-01T00:00:00.000Z"),
            record("mid", "2024-02-01T00:00:00.000Z"),
        ])

        titles = [n.title for n in await notes.get_notes("a@x.com")]
        assert titles == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_get_note_unknown(self, notes):
        with pytest.raises(NotFoundError):
            await notes.get_note("id_missing")

    @pytest.mark.asyncio
    async def test_update_moves_updated_at_forward(self, notes):
        note = await notes.create_note("a@x.com", "t", "c")
        previous = note.updated_at
        for i in range(5):
            updated = await notes.update_note(note.id, {"content": f"v{i}"})
            assert parse_timestamp(updated.updated_at) > parse_timestamp(previous)
            previous = updated.updated_at

        stored = await notes.get_note(note.id)
        assert stored.content == "v4"
        assert stored.created_at == note.created_at

    @pytest.mark.asyncio
    async def test_update_unknown_returns_none(self, notes):
        assert await notes.update_note("id_missing", {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_update_rejects_immutable_fields(self, notes):
        note = await notes.create_note("a@x.com", "t", "c")
        with pytest.raises(ValidationError):
            await notes.update_note(note.id, {"ownerEmail": "b@x.com"})
        with pytest.raises(ValidationError):
            await notes.update_note(note.id, {"createdAt": "2020-01-01T00:00:00.000Z"})

    @pytest.mark.asyncio
    async def test_update_markdown_flag(self, notes):
        note = await notes.create_note("a@x.com", "t", "# c")
        updated = await notes.update_note(note.id, {"isMarkdown": True})
        assert updated.to_dict()["isMarkdown"] is True

    @pytest.mark.asyncio
    async def test_delete_note(self, notes):
        note = await notes.create_note("a@x.com", "t", "c")
        await notes.delete_note(note.id)
        assert await notes.get_all_notes() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_is_noop(self, notes):
        await notes.create_note("a@x.com", "t", "c")
        await notes.delete_note("id_missing")
        assert len(await notes.get_all_notes()) == 1

    @pytest.mark.asyncio
    async def test_get_all_notes_newest_insert_first(self, notes):
        for title in ("a", "b", "c"):
            await notes.create_note("a@x.com", title, "")
        assert [n.title for n in await notes.get_all_notes()] == ["c", "b", "a"]


class TestOwnedNotes:
    """Tests for owner-checked note operations."""

    @pytest.mark.asyncio
    async def test_owner_can_update(self, backstage, alice):
        note = await backstage.notes.create_note(alice.email, "t", "c")
        updated = await backstage.notes.update_own_note(alice, note.id, {"title": "new"})
        assert updated.title == "new"

    @pytest.mark.asyncio
    async def test_others_cannot_update(self, backstage, alice, dev):
        note = await backstage.notes.create_note(alice.email, "t", "c")
        with pytest.raises(AccessDeniedError):
            await backstage.notes.update_own_note(dev, note.id, {"title": "mine now"})

    @pytest.mark.asyncio
    async def test_user_cannot_delete_others_note(self, backstage, alice, bob):
        note = await backstage.notes.create_note(alice.email, "t", "c")
        with pytest.raises(AccessDeniedError):
            await backstage.notes.delete_own_note(bob, note.id)

    @pytest.mark.asyncio
    async def test_admin_can_moderate(self, backstage, alice, admin):
        note = await backstage.notes.create_note(alice.email, "t", "c")
        await backstage.notes.delete_own_note(admin, note.id)
        assert await backstage.notes.get_notes(alice.email) == []

    @pytest.mark.asyncio
    async def test_delete_own_missing_is_noop(self, backstage, alice):
        await backstage.notes.delete_own_note(alice, "id_missing")

    @pytest.mark.asyncio
    async def test_summarize_stores_summary(self, backstage, alice):
        note = await backstage.notes.create_note(alice.email, "t", "A long enough body.")
        assistant = FakeAssistant()

        updated = await backstage.notes.summarize(alice, note.id, assistant)

        assert updated.summary == "A crisp summary."
        assert assistant.seen == ["A long enough body."]
        assert (await backstage.notes.get_note(note.id)).summary == "A crisp summary."

    @pytest.mark.asyncio
    async def test_summarize_requires_owner(self, backstage, alice, bob):
        note = await backstage.notes.create_note(alice.email, "t", "A long enough body.")
        with pytest.raises(AccessDeniedError):
            await backstage.notes.summarize(bob, note.id, FakeAssistant())


class TestNoteIndex:
    """Tests for the in-memory owner index."""

    @pytest.mark.asyncio
    async def test_remove_updates_owner_view(self, backstage):
        a = await backstage.notes.create_note("A@x.com", "a", "")
        b = await backstage.notes.create_note("a@x.com", "b", "")
        index = NoteIndex(await backstage.notes.get_all_notes())

        assert [n.id for n in index.for_owner("a@X.com")] == [b.id, a.id]
        index.remove(a.id)
        assert [n.id for n in index.for_owner("a@x.com")] == [b.id]
        assert index.remove("id_missing") is None
