"""
Discussion repository: communities, threads, posts and likes.

Invariants:
    - Posts within a thread are append-only, oldest first
    - A post's like set holds each email at most once
    - toggle_post_like applied twice restores the original like set
    - communityId None files a thread under the general community

How to change safely:
    - Threads and communities are whole-collection writes; keep them single writes
    - Ordering for display is done by the read-side helpers, not storage
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..access import AccessPolicy, Capability
from ..errors import NotFoundError, ValidationError
from ..models import (
    Community,
    DiscussionPost,
    DiscussionThread,
    User,
    generate_id,
    now_iso,
    parse_timestamp,
)
from ..storage.adapter import COMMUNITIES, THREADS, PersistentStore

logger = logging.getLogger(__name__)


def threads_in_community(
    threads: List[DiscussionThread],
    community_id: Optional[str],
) -> List[DiscussionThread]:
    """Threads filed under a community (None selects the general community)."""
    return [t for t in threads if t.community_id == community_id]


def sort_by_last_activity(threads: List[DiscussionThread]) -> List[DiscussionThread]:
    """Threads with the most recent post first."""
    return sorted(threads, key=lambda t: parse_timestamp(t.last_activity), reverse=True)


class DiscussionService:
    """Communities, threads and posts."""

    def __init__(self, store: PersistentStore, policy: AccessPolicy) -> None:
        self.store = store
        self.policy = policy

    def _load_threads(self) -> List[DiscussionThread]:
        threads = []
        for record in self.store.read(THREADS) or []:
            try:
                threads.append(DiscussionThread.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed thread record: {e}")
        return threads

    def _save_threads(self, threads: List[DiscussionThread]) -> None:
        self.store.write(THREADS, [t.to_dict() for t in threads])

    def _load_communities(self) -> List[Community]:
        communities = []
        for record in self.store.read(COMMUNITIES) or []:
            try:
                communities.append(Community.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed community record: {e}")
        return communities

    @staticmethod
    def _find_thread(threads: List[DiscussionThread], thread_id: str) -> DiscussionThread:
        for thread in threads:
            if thread.id == thread_id:
                return thread
        raise NotFoundError("thread", thread_id, "Thread not found")

    @staticmethod
    def _new_post(content: str, author: User) -> DiscussionPost:
        return DiscussionPost(
            id=generate_id(),
            author_email=author.email,
            author_display_name=author.display_name,
            author_profile_picture_url=author.profile_picture_url,
            content=content,
            created_at=now_iso(),
        )

    @staticmethod
    def _require_text(value: str, field_name: str) -> None:
        if not (value or "").strip():
            raise ValidationError(f"{field_name} must not be empty", field_name=field_name)

    async def get_threads(self) -> List[DiscussionThread]:
        return self._load_threads()

    async def get_communities(self) -> List[Community]:
        return self._load_communities()

    async def create_community(self, name: str, description: str, author_email: str) -> Community:
        self._require_text(name, "name")
        community = Community(
            id=generate_id(),
            name=name,
            description=description,
            created_at=now_iso(),
            author_email=author_email,
        )
        communities = self._load_communities()
        communities.insert(0, community)
        self.store.write(COMMUNITIES, [c.to_dict() for c in communities])
        logger.info(f"Community {community.id} '{name}' created by {author_email}")
        return community

    async def create_thread(
        self,
        community_id: Optional[str],
        title: str,
        content: str,
        author: User,
    ) -> DiscussionThread:
        """Open a thread with one seed post by the author.

        Raises:
            AccessDeniedError: If the author can't post
            NotFoundError: If community_id is set but doesn't resolve
            ValidationError: If title or content is blank
        """
        self.policy.require(author, Capability.AUTHOR_CONTENT)
        self._require_text(title, "title")
        self._require_text(content, "content")
        if community_id is not None and not any(
            c.id == community_id for c in self._load_communities()
        ):
            raise NotFoundError("community", community_id)

        thread = DiscussionThread(
            id=generate_id(),
            community_id=community_id,
            title=title,
            author_email=author.email,
            author_display_name=author.display_name,
            author_profile_picture_url=author.profile_picture_url,
            created_at=now_iso(),
            posts=[self._new_post(content, author)],
        )
        threads = self._load_threads()
        threads.insert(0, thread)
        self._save_threads(threads)
        return thread

    async def add_post_to_thread(
        self,
        thread_id: str,
        content: str,
        author: User,
    ) -> DiscussionThread:
        """Append a post to a thread.

        Raises:
            NotFoundError: If the thread doesn't exist
        """
        self.policy.require(author, Capability.AUTHOR_CONTENT)
        self._require_text(content, "content")
        threads = self._load_threads()
        thread = self._find_thread(threads, thread_id)
        thread.posts.append(self._new_post(content, author))
        self._save_threads(threads)
        return thread

    async def toggle_post_like(
        self,
        thread_id: str,
        post_id: str,
        user_email: str,
    ) -> DiscussionThread:
        """Add the email to a post's likes, or remove it if already there.

        Raises:
            NotFoundError: If the thread or post doesn't exist
        """
        threads = self._load_threads()
        thread = self._find_thread(threads, thread_id)
        post = thread.find_post(post_id)
        if post is None:
            raise NotFoundError("post", post_id, "Post not found")

        if user_email in post.likes:
            post.likes.remove(user_email)
        else:
            post.likes.append(user_email)
        self._save_threads(threads)
        return thread
