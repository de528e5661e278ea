"""
Note repository.

Notes live in one collection (newest insert first) keyed by id, with a
secondary index by owner built on load. A mutation is a single write of
that collection, so per-owner and global views can't diverge.

Invariants:
    - Note ids are unique across all owners
    - createdAt == updatedAt at creation
    - Every update moves updatedAt strictly forward
    - Deleting an unknown id is a no-op

How to change safely:
    - Keep insertion order: get_all_notes() is head-first
    - Changing the record shape needs a migration (storage.migrations)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..access import AccessPolicy, Capability
from ..errors import NotFoundError, ValidationError
from ..models import Note, User, generate_id, next_timestamp, now_iso, parse_timestamp
from ..storage.adapter import NOTES_ALL, PersistentStore

if TYPE_CHECKING:
    from ..assist import GenAiClient

logger = logging.getLogger(__name__)


class NoteIndex:
    """In-memory view of the note collection with an owner index."""

    def __init__(self, notes: List[Note]) -> None:
        self.notes = notes
        self._by_id: Dict[str, Note] = {}
        self._by_owner: Dict[str, List[Note]] = defaultdict(list)
        for note in notes:
            self._add(note)

    def _add(self, note: Note) -> None:
        self._by_id[note.id] = note
        if note.owner_email:
            self._by_owner[note.owner_email.lower()].append(note)

    def get(self, note_id: str) -> Optional[Note]:
        return self._by_id.get(note_id)

    def for_owner(self, owner_email: str) -> List[Note]:
        return list(self._by_owner.get(owner_email.lower(), []))

    def insert_head(self, note: Note) -> None:
        self.notes.insert(0, note)
        self._by_id[note.id] = note
        if note.owner_email:
            self._by_owner[note.owner_email.lower()].insert(0, note)

    def remove(self, note_id: str) -> Optional[Note]:
        note = self._by_id.pop(note_id, None)
        if note is None:
            return None
        self.notes = [n for n in self.notes if n.id != note_id]
        if note.owner_email:
            owner = note.owner_email.lower()
            self._by_owner[owner] = [n for n in self._by_owner[owner] if n.id != note_id]
        return note


class NoteService:
    """Create, list, update and delete notes."""

    def __init__(self, store: PersistentStore, policy: AccessPolicy) -> None:
        self.store = store
        self.policy = policy

    def _load(self) -> NoteIndex:
        notes = []
        for record in self.store.read(NOTES_ALL) or []:
            try:
                notes.append(Note.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed note record: {e}")
        return NoteIndex(notes)

    def _save(self, index: NoteIndex) -> None:
        self.store.write(NOTES_ALL, [n.to_dict() for n in index.notes])

    async def create_note(self, owner_email: str, title: str, content: str) -> Note:
        now = now_iso()
        note = Note(
            id=generate_id(),
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
            owner_email=owner_email,
        )
        index = self._load()
        index.insert_head(note)
        self._save(index)
        logger.debug(f"Note {note.id} created for {owner_email}")
        return note

    async def get_notes(self, owner_email: str) -> List[Note]:
        """The owner's notes, most recently updated first."""
        notes = self._load().for_owner(owner_email)
        return sorted(notes, key=lambda n: parse_timestamp(n.updated_at), reverse=True)

    async def get_note(self, note_id: str) -> Note:
        note = self._load().get(note_id)
        if note is None:
            raise NotFoundError("note", note_id)
        return note

    async def get_all_notes(self) -> List[Note]:
        return self._load().notes

    async def update_note(self, note_id: str, changes: Dict[str, Any]) -> Optional[Note]:
        """Merge changes and re-stamp updatedAt.

        Returns:
            The updated note, or None if no note has this id

        Raises:
            ValidationError: If changes name a field that can't be edited
        """
        unknown = sorted(set(changes) - set(Note.EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Note fields cannot be changed: {unknown}", errors=unknown)

        index = self._load()
        note = index.get(note_id)
        if note is None:
            return None

        for key, value in changes.items():
            setattr(note, Note.EDITABLE_FIELDS[key], value)
        note.updated_at = next_timestamp(note.updated_at)
        self._save(index)
        return note

    async def delete_note(self, note_id: str) -> None:
        index = self._load()
        if index.remove(note_id) is not None:
            self._save(index)
            logger.debug(f"Note {note_id} deleted")

    async def delete_notes_for_owner(self, owner_email: str) -> int:
        index = self._load()
        owned = index.for_owner(owner_email)
        for note in owned:
            index.remove(note.id)
        if owned:
            self._save(index)
        return len(owned)

    # --- Owner-checked variants ---

    async def update_own_note(
        self,
        actor: User,
        note_id: str,
        changes: Dict[str, Any],
    ) -> Note:
        """Update a note the actor owns.

        Raises:
            NotFoundError: If the note doesn't exist
            AccessDeniedError: If the actor doesn't own it
        """
        note = await self.get_note(note_id)
        self.policy.require_owner(actor, note.owner_email, note_id)
        updated = await self.update_note(note_id, changes)
        if updated is None:
            raise NotFoundError("note", note_id)
        return updated

    async def delete_own_note(self, actor: User, note_id: str) -> None:
        """Delete a note the actor owns; admins and devs may delete any."""
        index = self._load()
        note = index.get(note_id)
        if note is None:
            return
        self.policy.require_owner_or(actor, note.owner_email, Capability.MODERATE_NOTES)
        await self.delete_note(note_id)

    async def summarize(self, actor: User, note_id: str, assistant: "GenAiClient") -> Note:
        """Ask the AI collaborator for a summary and store it on the note."""
        note = await self.get_note(note_id)
        self.policy.require_owner(actor, note.owner_email, note_id)
        summary = await assistant.summarize_note(note.content)
        updated = await self.update_note(note_id, {"summary": summary})
        if updated is None:
            raise NotFoundError("note", note_id)
        return updated
