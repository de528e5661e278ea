"""
Capability checks for NexaNotes Backstage.

This module handles authorization for every role-gated operation:
- Capability grants per role
- Permission checking (check / require)
- Account protection rules for user deletion and role changes

Invariants:
    - Roles only ever gain capabilities going user -> admin -> dev
    - Services call require() before mutating state
    - The bootstrap account can never be deleted or re-roled
    - Nobody deletes their own account through the admin console

How to change safely:
    - New capabilities must be added to ROLE_CAPABILITIES for every role
    - Test every role against every capability when the table changes
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .errors import AccessDeniedError, ProtectedAccountError
from .models import Role, User

logger = logging.getLogger(__name__)


class Capability(Enum):
    """Operations that need more than being signed in."""

    AUTHOR_CONTENT = "author_content"
    VIEW_ADMIN_CONSOLE = "view_admin_console"
    MODERATE_NOTES = "moderate_notes"
    PUBLISH = "publish"
    MANAGE_USERS = "manage_users"
    CONFIGURE_APP = "configure_app"


_USER_CAPS = frozenset({Capability.AUTHOR_CONTENT})
_ADMIN_CAPS = _USER_CAPS | {
    Capability.VIEW_ADMIN_CONSOLE,
    Capability.MODERATE_NOTES,
    Capability.PUBLISH,
}
_DEV_CAPS = _ADMIN_CAPS | {Capability.MANAGE_USERS, Capability.CONFIGURE_APP}

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.USER: _USER_CAPS,
    Role.ADMIN: _ADMIN_CAPS,
    Role.DEV: _DEV_CAPS,
}


class AccessPolicy:
    """Decides what an acting user may do.

    Thread safety:
        Stateless apart from the configured bootstrap email.

    Example:
        >>> policy = AccessPolicy("hello@hello.com")
        >>> policy.check(admin_user, Capability.PUBLISH)
        True
    """

    def __init__(self, bootstrap_email: str = "hello@hello.com") -> None:
        self.bootstrap_email = bootstrap_email

    def is_bootstrap(self, email: str) -> bool:
        return email.lower() == self.bootstrap_email.lower()

    def check(self, actor: Optional[User], capability: Capability) -> bool:
        """Check if an actor holds a capability.

        Args:
            actor: Acting user (None for anonymous)
            capability: Required capability

        Returns:
            True if the actor's role grants it
        """
        if actor is None:
            return False
        return capability in ROLE_CAPABILITIES.get(actor.role, frozenset())

    def require(self, actor: Optional[User], capability: Capability) -> None:
        """Check a capability and raise if denied.

        Raises:
            AccessDeniedError: If the actor lacks the capability
        """
        if not self.check(actor, capability):
            who = actor.email if actor else "anonymous"
            logger.warning(f"Denied {capability.value} to {who}")
            raise AccessDeniedError(who, capability.value)

    def require_owner(
        self,
        actor: Optional[User],
        owner_email: Optional[str],
        resource_id: str,
    ) -> None:
        """Allow only the resource owner.

        Raises:
            AccessDeniedError: If the actor doesn't own the resource
        """
        if actor is not None and owner_email is not None:
            if actor.email.lower() == owner_email.lower():
                return
        who = actor.email if actor else "anonymous"
        raise AccessDeniedError(who, "owner", f"Access denied: {who} does not own {resource_id}")

    def require_owner_or(
        self,
        actor: Optional[User],
        owner_email: Optional[str],
        capability: Capability,
    ) -> None:
        """Allow the resource owner, or anyone holding a capability.

        Raises:
            AccessDeniedError: If the actor is neither
        """
        if actor is not None and owner_email is not None:
            if actor.email.lower() == owner_email.lower():
                return
        self.require(actor, capability)

    def check_can_delete_user(self, actor: User, target: User) -> None:
        """Enforce the account-deletion rules.

        Raises:
            AccessDeniedError: If the actor cannot manage users
            ProtectedAccountError: If the target account is protected
        """
        self.require(actor, Capability.MANAGE_USERS)
        if self.is_bootstrap(target.email):
            raise ProtectedAccountError(target.email, "bootstrap account")
        if actor.email.lower() == target.email.lower():
            raise ProtectedAccountError(target.email, "cannot delete your own account")
        if target.role == Role.DEV and not self.is_bootstrap(actor.email):
            raise ProtectedAccountError(
                target.email, "only the bootstrap account can delete dev accounts"
            )

    def check_can_set_role(self, actor: User, target_email: str) -> None:
        """Enforce the role-change rules.

        Raises:
            AccessDeniedError: If the actor cannot manage users
            ProtectedAccountError: If the target is the bootstrap account
        """
        self.require(actor, Capability.MANAGE_USERS)
        if self.is_bootstrap(target_email):
            raise ProtectedAccountError(target_email, "bootstrap account role is fixed")
