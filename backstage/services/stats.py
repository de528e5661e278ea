"""
Aggregate statistics for the admin console and the home page.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..access import AccessPolicy, Capability
from ..models import Note, PublicationStatus, Role, User, parse_timestamp
from .identity import IdentityService
from .notes import NoteService
from .publications import PublicationService


@dataclass
class NoteStats:
    """Totals over one user's notes."""

    total_notes: int = 0
    total_words: int = 0
    notes_summarized: int = 0
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AdminOverview:
    """Totals over the whole installation."""

    total_users: int = 0
    total_notes: int = 0
    users_by_role: Dict[str, int] = field(default_factory=dict)
    pending_publications: int = 0
    published_publications: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def note_stats(notes: List[Note]) -> NoteStats:
    """Word and summary counts over a list of notes."""
    if not notes:
        return NoteStats()
    latest = max(notes, key=lambda n: parse_timestamp(n.updated_at))
    return NoteStats(
        total_notes=len(notes),
        total_words=sum(len(n.content.split()) for n in notes),
        notes_summarized=sum(1 for n in notes if n.summary),
        last_updated=latest.updated_at,
    )


class StatsService:
    """Read-only aggregates; admin figures need VIEW_ADMIN_CONSOLE."""

    def __init__(
        self,
        policy: AccessPolicy,
        identity: IdentityService,
        notes: NoteService,
        publications: PublicationService,
    ) -> None:
        self.policy = policy
        self.identity = identity
        self.notes = notes
        self.publications = publications

    async def admin_overview(self, actor: User) -> AdminOverview:
        self.policy.require(actor, Capability.VIEW_ADMIN_CONSOLE)
        users = await self.identity.get_all_users(actor)
        all_notes = await self.notes.get_all_notes()
        publications = await self.publications.get_publications()

        by_role = {role.value: 0 for role in Role}
        for user in users:
            by_role[user.role.value] += 1

        return AdminOverview(
            total_users=len(users),
            total_notes=len(all_notes),
            users_by_role=by_role,
            pending_publications=sum(
                1 for p in publications if p.status == PublicationStatus.PENDING
            ),
            published_publications=sum(
                1 for p in publications if p.status == PublicationStatus.PUBLISHED
            ),
        )

    async def user_note_stats(self, actor: User) -> NoteStats:
        return note_stats(await self.notes.get_notes(actor.email))
