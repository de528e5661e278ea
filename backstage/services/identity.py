"""
Identity and session management.

This module handles:
- Resolving the signed-in user from the persisted session pointer
- Login with auto-registration and one-time pending role grants
- Profile edits, role changes and account deletion

The persisted pointer only serves get_current_user()/current_session() at
startup. Every role-gated operation takes the acting user explicitly.

Invariants:
    - Exactly one user record per email (case-insensitive)
    - A pending role grant is consumed exactly once, when its user is created
    - Login for an unknown email mutates nothing while registration is off
    - The bootstrap account can't be deleted or re-roled

How to change safely:
    - User records are persisted with camelCase keys; see models.User
    - Write the user before consuming a grant (a crash leaves a stale grant,
      never a lost one)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from ..access import AccessPolicy, Capability
from ..errors import NotFoundError, RegistrationDisabledError, ValidationError
from ..models import CURSOR_STYLES, LANGUAGES, Role, User, now_iso
from ..storage.adapter import ROLES, SESSION, USERS, PersistentStore
from .web_config import WebConfigService

if TYPE_CHECKING:
    from .notes import NoteService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """An authenticated session, passed explicitly to role-gated calls.

    Attributes:
        user: The signed-in user as of login
        started_at: When the session began
    """

    user: User
    started_at: str

    @property
    def email(self) -> str:
        return self.user.email


def default_users(bootstrap_email: str = "hello@hello.com") -> List[Dict[str, Any]]:
    """Seed records for a fresh installation."""
    return [
        User(
            email=bootstrap_email,
            username="dev_user",
            display_name="Dev User",
            bio="The main developer account.",
            role=Role.DEV,
            theme_name="CyberPunk",
            cursor_style="glitch",
            cursor_color="#f923e2",
        ).to_dict()
    ]


def parse_role(value: Union[Role, str]) -> Role:
    """Coerce a role name to Role.

    Raises:
        ValidationError: If the name is not a known role
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(
            f"Invalid role '{value}', must be one of {[r.value for r in Role]}",
            field_name="role",
        )


def validate_email(email: str) -> str:
    """Strip and sanity-check an email address.

    Raises:
        ValidationError: If blank or missing a local part or domain
    """
    email = (email or "").strip()
    local, _, domain = email.partition("@")
    if not local or not domain:
        raise ValidationError(f"Invalid email address: '{email}'", field_name="email")
    return email


class IdentityService:
    """Users, sessions and pending role grants.

    Example:
        >>> session = await identity.login("new@x.com")
        >>> session.user.role
        <Role.USER: 'user'>
    """

    def __init__(
        self,
        store: PersistentStore,
        policy: AccessPolicy,
        web_config: WebConfigService,
        login_delay_ms: int = 500,
        logout_delay_ms: int = 100,
        notes: Optional["NoteService"] = None,
    ) -> None:
        self.store = store
        self.policy = policy
        self.web_config = web_config
        self.login_delay_ms = login_delay_ms
        self.logout_delay_ms = logout_delay_ms
        self.notes = notes

    # --- Collection helpers ---

    def _load_users(self) -> List[User]:
        records = self.store.read(USERS) or []
        users = []
        for record in records:
            try:
                users.append(User.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed user record: {e}")
        return users

    def _save_users(self, users: List[User]) -> None:
        self.store.write(USERS, [u.to_dict() for u in users])

    def _load_grants(self) -> Dict[str, str]:
        grants = self.store.read(ROLES)
        return grants if isinstance(grants, dict) else {}

    @staticmethod
    def _index_of(users: List[User], email: str, case_insensitive: bool = True) -> int:
        wanted = email.lower() if case_insensitive else email
        for i, user in enumerate(users):
            candidate = user.email.lower() if case_insensitive else user.email
            if candidate == wanted:
                return i
        return -1

    @staticmethod
    async def _delay(ms: int) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000.0)

    # --- Session ---

    async def get_current_user(self) -> Optional[User]:
        """Resolve the user behind the persisted session pointer."""
        email = self.store.read(SESSION)
        if not isinstance(email, str) or not email:
            return None
        users = self._load_users()
        index = self._index_of(users, email)
        return users[index] if index >= 0 else None

    async def get_user(self, email: str) -> User:
        """Look up a user by email (case-insensitive).

        Raises:
            NotFoundError: If no user has this email
        """
        users = self._load_users()
        index = self._index_of(users, email)
        if index < 0:
            raise NotFoundError("user", email, "User not found.")
        return users[index]

    async def current_session(self) -> Optional[Session]:
        """Session for the persisted pointer, if it still resolves."""
        user = await self.get_current_user()
        return Session(user=user, started_at=now_iso()) if user else None

    async def login(self, email: str) -> Session:
        """Sign in, registering the email if it is new and sign-up is open.

        Raises:
            ValidationError: If the email is malformed
            RegistrationDisabledError: If the email is unknown and
                registration is disabled
        """
        await self._delay(self.login_delay_ms)
        email = validate_email(email)

        users = self._load_users()
        index = self._index_of(users, email)
        if index >= 0:
            user = users[index]
        elif self.web_config.get_web_config().registration_enabled:
            user = self._register(users, email)
        else:
            logger.info(f"Login refused for unknown {email}: registration disabled")
            raise RegistrationDisabledError(email)

        self.store.write(SESSION, user.email)
        logger.info(f"User logged in: {user.email}")
        return Session(user=user, started_at=now_iso())

    def _register(self, users: List[User], email: str) -> User:
        email = email.lower()
        local_part = email.split("@")[0]
        user = User(email=email, username=local_part, display_name=local_part)

        grants = self._load_grants()
        granted = grants.pop(email, None)
        if granted is not None:
            try:
                user.role = Role(granted)
            except ValueError:
                logger.warning(f"Ignoring invalid pending role '{granted}' for {email}")

        users.append(user)
        self._save_users(users)
        if granted is not None:
            self.store.write(ROLES, grants)
            logger.info(f"Applied pending role grant {granted} to {email}")
        logger.info(f"Registered new user: {email}")
        return user

    async def logout(self) -> None:
        """Clear the session pointer."""
        await self._delay(self.logout_delay_ms)
        self.store.remove(SESSION)
        logger.info("User logged out")

    # --- Profiles and administration ---

    async def update_user(
        self,
        email: str,
        changes: Dict[str, Any],
        actor: Optional[User] = None,
    ) -> User:
        """Merge changes into the user with exactly this email.

        Args:
            email: Target user's stored email
            changes: Persisted field names (displayName, bio, ...) to values
            actor: Acting user; editing someone else or changing a role
                requires MANAGE_USERS

        Raises:
            NotFoundError: If no user has this email
            ValidationError: On unknown/immutable fields or invalid values
            AccessDeniedError: If the actor may not make this change
        """
        if "email" in changes:
            raise ValidationError("Email cannot be changed", field_name="email")
        unknown = sorted(set(changes) - set(User.FIELD_NAMES))
        if unknown:
            raise ValidationError(f"Unknown user fields: {unknown}", errors=unknown)

        if "role" in changes:
            if actor is None:
                raise ValidationError("Role changes need an acting user", field_name="role")
            self.policy.check_can_set_role(actor, email)
        elif actor is not None and actor.email.lower() != email.lower():
            self.policy.require(actor, Capability.MANAGE_USERS)

        values = self._coerce_profile_values(changes)

        users = self._load_users()
        index = self._index_of(users, email, case_insensitive=False)
        if index < 0:
            raise NotFoundError("user", email, "User not found.")

        user = users[index]
        for key, value in values.items():
            setattr(user, User.FIELD_NAMES[key], value)
        self._save_users(users)
        return user

    async def update_profile(self, actor: User, changes: Dict[str, Any]) -> User:
        """Self-service profile edit; roles can't be changed this way."""
        if "role" in changes:
            raise ValidationError("Use set_user_role to change roles", field_name="role")
        return await self.update_user(actor.email, changes, actor=actor)

    @staticmethod
    def _coerce_profile_values(changes: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(changes)
        if "role" in values:
            values["role"] = parse_role(values["role"])
        if "displayName" in values and not str(values["displayName"] or "").strip():
            raise ValidationError("Display name must not be empty", field_name="displayName")
        if values.get("cursorStyle") is not None and values["cursorStyle"] not in CURSOR_STYLES:
            raise ValidationError(
                f"Invalid cursor style '{values['cursorStyle']}'", field_name="cursorStyle"
            )
        if values.get("language") is not None and values["language"] not in LANGUAGES:
            raise ValidationError(
                f"Invalid language '{values['language']}'", field_name="language"
            )
        return values

    async def get_all_users(self, actor: User) -> List[User]:
        """Every user, sorted by email (admin console)."""
        self.policy.require(actor, Capability.VIEW_ADMIN_CONSOLE)
        return sorted(self._load_users(), key=lambda u: u.email)

    async def delete_user(self, actor: User, email: str) -> None:
        """Remove an account and its notes.

        Raises:
            AccessDeniedError: If the actor can't manage users
            NotFoundError: If the email doesn't resolve
            ProtectedAccountError: If the account is protected
        """
        self.policy.require(actor, Capability.MANAGE_USERS)
        users = self._load_users()
        index = self._index_of(users, email)
        if index < 0:
            raise NotFoundError("user", email, "User not found.")

        target = users[index]
        self.policy.check_can_delete_user(actor, target)

        del users[index]
        self._save_users(users)
        if self.notes is not None:
            removed = await self.notes.delete_notes_for_owner(target.email)
            logger.info(f"Removed {removed} notes of deleted user {target.email}")

        pointer = self.store.read(SESSION)
        if isinstance(pointer, str) and pointer.lower() == target.email.lower():
            self.store.remove(SESSION)
        logger.info(f"User {target.email} deleted by {actor.email}")

    async def set_user_role(
        self,
        actor: User,
        email: str,
        role: Union[Role, str],
    ) -> Optional[User]:
        """Change a user's role, or grant it ahead of their first login.

        Returns:
            The updated user, or None when a pending grant was stored

        Raises:
            AccessDeniedError: If the actor can't manage users
            ProtectedAccountError: If the target is the bootstrap account
            ValidationError: If the role or email is invalid
        """
        self.policy.check_can_set_role(actor, email)
        role = parse_role(role)
        email = validate_email(email)

        users = self._load_users()
        index = self._index_of(users, email)
        if index >= 0:
            users[index].role = role
            self._save_users(users)
            logger.info(f"{actor.email} set role of {users[index].email} to {role.value}")
            return users[index]

        grants = self._load_grants()
        grants[email.lower()] = role.value
        self.store.write(ROLES, grants)
        logger.info(f"{actor.email} pre-assigned role {role.value} to {email.lower()}")
        return None

    async def pending_role_grants(self, actor: User) -> Dict[str, Role]:
        """Grants not yet consumed by a first login."""
        self.policy.require(actor, Capability.MANAGE_USERS)
        grants = {}
        for email, role in self._load_grants().items():
            try:
                grants[email] = Role(role)
            except ValueError:
                logger.warning(f"Invalid pending role '{role}' for {email}")
        return grants
