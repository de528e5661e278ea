"""
Unit tests for aggregate statistics.
"""

import pytest

from backstage.errors import AccessDeniedError
from backstage.models import Note
from backstage.services import note_stats


class TestNoteStats:
    """Tests for note_stats."""

    def test_empty(self):
        stats = note_stats([])
        assert stats.total_notes == 0
        assert stats.last_updated is None

    def test_totals(self):
        notes = [
            Note("n1", "a", "one two three", "2024-01-01T00:00:00.000Z",
                 "2024-01-03T00:00:00.000Z", summary="s"),
            Note("n2", "b", "four", "2024-01-01T00:00:00.000Z", "2024-01-02T00:00:00.000Z"),
        ]
        stats = note_stats(notes)
        assert stats.to_dict() == {
            "total_notes": 2,
            "total_words": 4,
            "notes_summarized": 1,
            "last_updated": "2024-01-03T00:00:00.000Z",
        }


class TestStatsService:
    """Tests for StatsService."""

    @pytest.mark.asyncio
    async def test_admin_overview(self, backstage, admin, alice):
        await backstage.notes.create_note(alice.email, "t", "c")
        await backstage.publications.submit_publication_proposal("P", "B", alice)
        await backstage.publications.create_direct_publication("D", "B", admin)

        overview = await backstage.stats.admin_overview(admin)

        assert overview.total_users == 3
        assert overview.total_notes == 1
        assert overview.users_by_role == {"user": 1, "admin": 1, "dev": 1}
        assert overview.pending_publications == 1
        assert overview.published_publications == 1

    @pytest.mark.asyncio
    async def test_admin_overview_needs_admin(self, backstage, alice):
        with pytest.raises(AccessDeniedError):
            await backstage.stats.admin_overview(alice)

    @pytest.mark.asyncio
    async def test_user_note_stats(self, backstage, alice, bob):
        await backstage.notes.create_note(alice.email, "t", "hello there world")
        await backstage.notes.create_note(bob.email, "t", "not counted")

        stats = await backstage.stats.user_note_stats(alice)

        assert stats.total_notes == 1
        assert stats.total_words == 3
