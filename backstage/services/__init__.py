"""
Services for NexaNotes Backstage - every state change goes through here.

This module handles:
- Identity, sessions and pending role grants
- Notes (single indexed collection)
- Discussions (communities, threads, posts, likes)
- Publications and their review workflow
- The web configuration singleton
- Aggregate statistics

Invariants:
    - Role-gated operations take the acting user and check it via AccessPolicy
    - Each mutation reads a collection, changes it and writes it back once

How to change safely:
    - New operations that change state must live in a service, not in callers
    - Add a test for each role that may and may not call a new operation
"""

from .discussions import DiscussionService, sort_by_last_activity, threads_in_community
from .identity import IdentityService, Session, default_users
from .notes import NoteIndex, NoteService
from .publications import PublicationService, pending, published
from .stats import AdminOverview, NoteStats, StatsService, note_stats
from .web_config import WebConfigService

__all__ = [
    "DiscussionService",
    "sort_by_last_activity",
    "threads_in_community",
    "IdentityService",
    "Session",
    "default_users",
    "NoteIndex",
    "NoteService",
    "PublicationService",
    "pending",
    "published",
    "AdminOverview",
    "NoteStats",
    "StatsService",
    "note_stats",
    "WebConfigService",
]
