"""
Migrations between persisted layouts.

Legacy installations kept every note twice: a per-owner map under `notes`
(owner email -> list of notes) and a global list under `notes_all`. The
current layout keeps one list under `notes_all` where each record carries
its `ownerEmail`.

Invariants:
    - Migrations are idempotent; running one on migrated data is a no-op
    - No note present in either legacy index is dropped
    - The per-owner copy wins when both copies of a note exist
    - The legacy map is removed only after the merged collection is written

How to change safely:
    - Never edit a shipped migration; add a new one
    - Test against snapshots of real legacy data
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .adapter import NOTES, NOTES_ALL, PersistentStore

logger = logging.getLogger(__name__)


def migrate_legacy_notes(store: PersistentStore) -> int:
    """Fold the legacy per-owner note map into the single note collection.

    Args:
        store: Persistent store to migrate in place

    Returns:
        Number of note records in the migrated collection (0 if nothing
        needed migrating or the merged write failed)
    """
    legacy = store.read(NOTES)
    if legacy is None:
        return 0
    if not isinstance(legacy, dict):
        logger.warning(f"Unexpected legacy notes layout ({type(legacy).__name__}); removing")
        store.remove(NOTES)
        return 0

    owned: Dict[str, Dict[str, Any]] = {}
    for owner_email, notes in legacy.items():
        for note in notes or []:
            if isinstance(note, dict) and "id" in note:
                owned[note["id"]] = {**note, "ownerEmail": owner_email}

    global_notes = store.read(NOTES_ALL) or []
    merged: List[Dict[str, Any]] = []
    seen = set()
    for note in global_notes:
        if not isinstance(note, dict) or "id" not in note or note["id"] in seen:
            continue
        seen.add(note["id"])
        merged.append(owned.get(note["id"], note))

    # Per-owner notes missing from the global index
    for note_id, note in owned.items():
        if note_id not in seen:
            seen.add(note_id)
            merged.append(note)

    orphans = sum(1 for n in merged if "ownerEmail" not in n)
    if orphans:
        logger.warning(f"{orphans} notes in the global index have no owner")

    failures_before = store.health().write_failures
    store.write(NOTES_ALL, merged)
    if store.health().write_failures > failures_before:
        logger.error("Legacy note migration not persisted; keeping legacy layout for retry")
        return 0
    store.remove(NOTES)
    logger.info(f"Migrated legacy note layout: {len(merged)} notes")
    return len(merged)
