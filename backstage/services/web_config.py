"""
Web configuration store: the app-wide settings singleton.

Invariants:
    - Exactly one WebConfig exists; reads fall back to defaults when absent
    - Updates merge into the current record and persist the whole record
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..access import AccessPolicy, Capability
from ..errors import ValidationError
from ..models import User, WebConfig
from ..storage.adapter import WEB_CONFIG, PersistentStore

logger = logging.getLogger(__name__)


class WebConfigService:
    """Reads and updates the WebConfig singleton."""

    def __init__(self, store: PersistentStore, policy: AccessPolicy) -> None:
        self.store = store
        self.policy = policy

    def get_web_config(self) -> WebConfig:
        data = self.store.read(WEB_CONFIG)
        if not isinstance(data, dict):
            return WebConfig()
        return WebConfig.from_dict(data)

    async def update_web_config(
        self,
        changes: Dict[str, Any],
        actor: Optional[User] = None,
    ) -> WebConfig:
        """Merge changes into the singleton and persist it.

        Args:
            changes: Persisted field names (appName, registrationEnabled) to values
            actor: Acting user; when given, must hold CONFIGURE_APP

        Raises:
            AccessDeniedError: If the actor may not configure the app
            ValidationError: On unknown fields or wrong value types
        """
        if actor is not None:
            self.policy.require(actor, Capability.CONFIGURE_APP)

        unknown = sorted(set(changes) - set(WebConfig.FIELD_NAMES))
        if unknown:
            raise ValidationError(f"Unknown web config fields: {unknown}", errors=unknown)
        if "appName" in changes and not str(changes["appName"]).strip():
            raise ValidationError("App name must not be empty", field_name="appName")
        if "registrationEnabled" in changes and not isinstance(
            changes["registrationEnabled"], bool
        ):
            raise ValidationError(
                "registrationEnabled must be a boolean", field_name="registrationEnabled"
            )

        config = self.get_web_config()
        for key, value in changes.items():
            setattr(config, WebConfig.FIELD_NAMES[key], value)
        self.store.write(WEB_CONFIG, config.to_dict())
        logger.info(f"Web config updated: {sorted(changes)}")
        return config
