"""
Unit tests for the publication workflow.

Tests cover:
- Proposal submission
- Review (accept / reject)
- Direct publication
- Deletion and role gates
"""

import pytest

from backstage.errors import AccessDeniedError, InvalidStateError, ValidationError
from backstage.models import PublicationStatus, Role, parse_timestamp
from backstage.services import pending, published
from backstage.storage.adapter import PUBLICATIONS


class TestPublicationWorkflow:
    """Tests for PublicationService."""

    @pytest.fixture
    def publications(self, backstage):
        return backstage.publications

    @pytest.mark.asyncio
    async def test_submit_proposal(self, publications, alice):
        proposal = await publications.submit_publication_proposal("News", "Body", alice)

        assert proposal.status == PublicationStatus.PENDING
        assert proposal.submitted_by.email == "alice@x.com"
        assert proposal.submitted_by.display_name == "Alice"
        assert proposal.published_by is None
        assert "publishedBy" not in proposal.to_dict()

    @pytest.mark.asyncio
    async def test_submit_blank_rejected(self, publications, alice):
        with pytest.raises(ValidationError):
            await publications.submit_publication_proposal("", "Body", alice)
        with pytest.raises(ValidationError):
            await publications.submit_publication_proposal("Title", " ", alice)

    @pytest.mark.asyncio
    async def test_accept_publishes(self, backstage, publications, alice, admin):
        backstage.store.write(PUBLICATIONS, [
            {
                "id": "older_live",
                "title": "Older",
                "content": "Body",
                "createdAt": "2024-01-01T00:00:00.000Z",
                "status": "published",
                "publishedBy": {"email": "admin@x.com", "displayName": "Admin", "role": "admin"},
            },
            {
                "id": "proposal",
                "title": "News",
                "content": "Body",
                "createdAt": "2023-12-01T00:00:00.000Z",
                "status": "pending",
                "submittedBy": {"email": "alice@x.com", "displayName": "Alice"},
            },
        ])

        result = await publications.review_publication("proposal", True, admin)

        board = published(result)
        assert [p.id for p in board] == ["proposal", "older_live"]
        item = board[0]
        assert item.status == PublicationStatus.PUBLISHED
        assert item.published_by.email == "admin@x.com"
        assert item.published_by.role == Role.ADMIN
        assert item.submitted_by.email == "alice@x.com"
        assert parse_timestamp(item.created_at) > parse_timestamp("2024-01-01T00:00:00.000Z")

    @pytest.mark.asyncio
    async def test_reject_deletes(self, publications, alice, admin):
        proposal = await publications.submit_publication_proposal("News", "Body", alice)

        result = await publications.review_publication(proposal.id, False, admin)

        assert result == []
        assert await publications.get_publications() == []

    @pytest.mark.asyncio
    async def test_review_unknown_returns_none(self, publications, admin):
        assert await publications.review_publication("id_nope", True, admin) is None

    @pytest.mark.asyncio
    async def test_review_published_is_invalid(self, publications, admin):
        direct = await publications.create_direct_publication("News", "Body", admin)
        with pytest.raises(InvalidStateError):
            await publications.review_publication(direct.id, True, admin)

    @pytest.mark.asyncio
    async def test_user_cannot_review(self, backstage, publications, alice):
        proposal = await publications.submit_publication_proposal("News", "Body", alice)
        before = backstage.store.read(PUBLICATIONS)

        with pytest.raises(AccessDeniedError):
            await publications.review_publication(proposal.id, True, alice)

        assert backstage.store.read(PUBLICATIONS) == before

    @pytest.mark.asyncio
    async def test_direct_publication(self, publications, dev):
        publication = await publications.create_direct_publication("News", "Body", dev)

        assert publication.status == PublicationStatus.PUBLISHED
        assert publication.submitted_by is None
        assert publication.to_dict()["publishedBy"] == {
            "email": "hello@hello.com",
            "displayName": "Dev User",
            "role": "dev",
        }

    @pytest.mark.asyncio
    async def test_user_cannot_publish_directly(self, backstage, publications, alice):
        await publications.submit_publication_proposal("Existing", "Body", alice)
        before = backstage.store.read(PUBLICATIONS)

        with pytest.raises(AccessDeniedError):
            await publications.create_direct_publication("News", "Body", alice)

        assert backstage.store.read(PUBLICATIONS) == before
        assert len(await publications.get_publications()) == 1

    @pytest.mark.asyncio
    async def test_delete_publication(self, publications, alice, admin):
        proposal = await publications.submit_publication_proposal("News", "Body", alice)
        direct = await publications.create_direct_publication("Other", "Body", admin)

        remaining = await publications.delete_publication(proposal.id, admin)

        assert [p.id for p in remaining] == [direct.id]

    @pytest.mark.asyncio
    async def test_user_cannot_delete(self, backstage, publications, admin, alice):
        direct = await publications.create_direct_publication("News", "Body", admin)
        before = backstage.store.read(PUBLICATIONS)

        with pytest.raises(AccessDeniedError):
            await publications.delete_publication(direct.id, alice)

        assert backstage.store.read(PUBLICATIONS) == before

    @pytest.mark.asyncio
    async def test_views_split_by_status(self, publications, alice, admin):
        await publications.submit_publication_proposal("Pending", "Body", alice)
        await publications.create_direct_publication("Live", "Body", admin)

        everything = await publications.get_publications()
        assert [p.title for p in pending(everything)] == ["Pending"]
        assert [p.title for p in published(everything)] == ["Live"]

    @pytest.mark.asyncio
    async def test_malformed_record_is_skipped(self, backstage, publications, admin):
        backstage.store.write(PUBLICATIONS, [{"id": "p1", "title": "no timestamp"}])

        publication = await publications.create_direct_publication("News", "Body", admin)

        assert [p.id for p in await publications.get_publications()] == [publication.id]
