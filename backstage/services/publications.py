"""
Publication workflow for the announcement board.

State machine per publication:

    submit ──▶ pending ──review(accept)──▶ published
                  │
                  └──review(reject)──▶ (deleted)

    create_direct ──────────────────────▶ published

Invariants:
    - pending has submittedBy and no publishedBy
    - published has publishedBy
    - Accepting a proposal resets createdAt to the publish time, so the
      board orders by publish date
    - Rejection deletes; no rejected state is kept
    - Only admin and dev act on the board (PUBLISH capability)
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..access import AccessPolicy, Capability
from ..errors import InvalidStateError, ValidationError
from ..models import (
    Byline,
    Publication,
    PublicationStatus,
    User,
    generate_id,
    now_iso,
    parse_timestamp,
)
from ..storage.adapter import PUBLICATIONS, PersistentStore

logger = logging.getLogger(__name__)


def _newest_first(publications: List[Publication]) -> List[Publication]:
    return sorted(publications, key=lambda p: parse_timestamp(p.created_at), reverse=True)


def published(publications: List[Publication]) -> List[Publication]:
    """Published items, newest publish date first."""
    return _newest_first([p for p in publications if p.status == PublicationStatus.PUBLISHED])


def pending(publications: List[Publication]) -> List[Publication]:
    """Proposals awaiting review, newest first."""
    return _newest_first([p for p in publications if p.status == PublicationStatus.PENDING])


class PublicationService:
    """Submission, review, direct publication and deletion."""

    def __init__(self, store: PersistentStore, policy: AccessPolicy) -> None:
        self.store = store
        self.policy = policy

    def _load(self) -> List[Publication]:
        publications = []
        for record in self.store.read(PUBLICATIONS) or []:
            try:
                publications.append(Publication.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed publication record: {e}")
        return publications

    def _save(self, publications: List[Publication]) -> None:
        self.store.write(PUBLICATIONS, [p.to_dict() for p in publications])

    @staticmethod
    def _validate(title: str, content: str) -> None:
        if not (title or "").strip():
            raise ValidationError("title must not be empty", field_name="title")
        if not (content or "").strip():
            raise ValidationError("content must not be empty", field_name="content")

    async def get_publications(self) -> List[Publication]:
        return self._load()

    async def submit_publication_proposal(
        self,
        title: str,
        content: str,
        user: User,
    ) -> Publication:
        """Any signed-in user may propose an announcement."""
        self.policy.require(user, Capability.AUTHOR_CONTENT)
        self._validate(title, content)
        proposal = Publication(
            id=generate_id(),
            title=title,
            content=content,
            created_at=now_iso(),
            status=PublicationStatus.PENDING,
            submitted_by=Byline.of(user),
        )
        publications = self._load()
        publications.insert(0, proposal)
        self._save(publications)
        logger.info(f"Publication proposal {proposal.id} submitted by {user.email}")
        return proposal

    async def create_direct_publication(
        self,
        title: str,
        content: str,
        author: User,
    ) -> Publication:
        """Publish immediately, skipping review.

        Raises:
            AccessDeniedError: If the author is not admin or dev
        """
        self.policy.require(author, Capability.PUBLISH)
        self._validate(title, content)
        publication = Publication(
            id=generate_id(),
            title=title,
            content=content,
            created_at=now_iso(),
            status=PublicationStatus.PUBLISHED,
            published_by=Byline.of(author, with_role=True),
        )
        publications = self._load()
        publications.insert(0, publication)
        self._save(publications)
        logger.info(f"Publication {publication.id} published directly by {author.email}")
        return publication

    async def review_publication(
        self,
        publication_id: str,
        publish: bool,
        reviewer: User,
    ) -> Optional[List[Publication]]:
        """Accept (publish) or reject (delete) a pending proposal.

        Returns:
            The full collection after the change, or None if the id
            doesn't resolve

        Raises:
            AccessDeniedError: If the reviewer is not admin or dev
            InvalidStateError: If the item is already published
        """
        self.policy.require(reviewer, Capability.PUBLISH)
        publications = self._load()
        index = next(
            (i for i, p in enumerate(publications) if p.id == publication_id), None
        )
        if index is None:
            return None

        item = publications[index]
        if item.status != PublicationStatus.PENDING:
            raise InvalidStateError(publication_id, item.status.value)

        if publish:
            item.status = PublicationStatus.PUBLISHED
            item.published_by = Byline.of(reviewer, with_role=True)
            item.created_at = now_iso()
            logger.info(f"Publication {publication_id} published by {reviewer.email}")
        else:
            del publications[index]
            logger.info(f"Publication {publication_id} rejected by {reviewer.email}")

        self._save(publications)
        return publications

    async def delete_publication(self, publication_id: str, user: User) -> List[Publication]:
        """Remove a publication in any state.

        Raises:
            AccessDeniedError: If the user is not admin or dev
        """
        self.policy.require(user, Capability.PUBLISH)
        publications = [p for p in self._load() if p.id != publication_id]
        self._save(publications)
        logger.info(f"Publication {publication_id} deleted by {user.email}")
        return publications
