"""
Backstage facade: wires storage, policy and services together.

Callers (the UI or the HTTP gateway) hold one Backstage and reach every
operation through its service attributes.

Invariants:
    - Legacy layouts are migrated before defaults are written
    - Absent collections are initialized once, at construction
    - All services share one PersistentStore and one AccessPolicy

How to change safely:
    - New services get the shared store and policy, never their own
    - Keep construction free of awaits so tests can build it synchronously
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .access import AccessPolicy
from .assist import GenAiClient
from .config import BackstageConfig
from .models import Note, User, WebConfig
from .services import (
    DiscussionService,
    IdentityService,
    NoteService,
    PublicationService,
    StatsService,
    WebConfigService,
    default_users,
)
from .storage import KeyValueStore, PersistentStore, create_kv_store, migrate_legacy_notes
from .storage.adapter import (
    COMMUNITIES,
    NOTES_ALL,
    PUBLICATIONS,
    ROLES,
    THREADS,
    USERS,
    WEB_CONFIG,
)

logger = logging.getLogger(__name__)


def default_collections(bootstrap_email: str) -> Dict[str, Callable[[], Any]]:
    """Default values for every collection of a fresh installation."""
    return {
        USERS: lambda: default_users(bootstrap_email),
        NOTES_ALL: list,
        THREADS: list,
        COMMUNITIES: list,
        PUBLICATIONS: list,
        WEB_CONFIG: lambda: WebConfig().to_dict(),
        ROLES: dict,
    }


class Backstage:
    """All services over one store.

    Attributes:
        config: Complete configuration
        store: Shared persistent store
        policy: Shared access policy
        web_config: WebConfig singleton service
        notes: Note repository
        identity: Identity and session manager
        discussions: Discussion repository
        publications: Publication workflow
        stats: Aggregate statistics
        assistant: Generative-AI collaborator

    Example:
        >>> backstage = Backstage(BackstageConfig(storage=StorageConfig(
        ...     backend=StorageBackend.MEMORY)))
        >>> session = await backstage.identity.login("hello@hello.com")
    """

    def __init__(
        self,
        config: Optional[BackstageConfig] = None,
        kv: Optional[KeyValueStore] = None,
        assistant: Optional[GenAiClient] = None,
    ) -> None:
        self.config = config or BackstageConfig()
        kv = kv if kv is not None else create_kv_store(self.config.storage)
        self.store = PersistentStore(kv, prefix=self.config.storage.prefix)
        self.policy = AccessPolicy(self.config.auth.bootstrap_email)

        self.web_config = WebConfigService(self.store, self.policy)
        self.notes = NoteService(self.store, self.policy)
        self.identity = IdentityService(
            self.store,
            self.policy,
            self.web_config,
            login_delay_ms=self.config.auth.login_delay_ms,
            logout_delay_ms=self.config.auth.logout_delay_ms,
            notes=self.notes,
        )
        self.discussions = DiscussionService(self.store, self.policy)
        self.publications = PublicationService(self.store, self.policy)
        self.stats = StatsService(self.policy, self.identity, self.notes, self.publications)
        self.assistant = assistant or GenAiClient(self.config.assist)

        self._initialize()

    def _initialize(self) -> None:
        migrated = migrate_legacy_notes(self.store)
        if migrated:
            logger.info(f"Legacy note layout migrated ({migrated} notes)")
        self.store.initialize(default_collections(self.config.auth.bootstrap_email))

    async def summarize_note(self, actor: User, note_id: str) -> Note:
        """Summarize one of the actor's notes and store the summary."""
        return await self.notes.summarize(actor, note_id, self.assistant)

    async def search_gifs(self, query: str) -> List[Dict[str, str]]:
        return [gif.to_dict() for gif in await self.assistant.search_gifs(query)]

    def health(self) -> Dict[str, Any]:
        """Storage health signal for absorbed persistence failures."""
        return self.store.health().to_dict()

    async def close(self) -> None:
        await self.assistant.aclose()
        self.store.close()
