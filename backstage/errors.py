"""
Error types for NexaNotes Backstage.

This module defines every exception raised by the service layer:
- BackstageError: Base exception
- NotFoundError: Unknown user, note, thread, post or community
- AccessDeniedError: Actor lacks the capability for an operation
- ProtectedAccountError: Operation targets an account that must not change
- RegistrationDisabledError: Login for an unknown email while sign-up is off
- ValidationError: Malformed input
- InvalidStateError: Transition not allowed from the current state
- InvalidShareLinkError: Share fragment could not be decoded

Storage failures are not represented here: the persistent store logs and
absorbs them (see storage.adapter.StorageHealth).

Invariants:
    - All errors inherit from BackstageError
    - Every error carries a stable code and a details mapping
    - Error messages never include secrets
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class BackstageError(Exception):
    """Base exception for all Backstage errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "BACKSTAGE_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for API error bodies."""
        return {"error": self.code, "message": self.message, "details": self.details}


class NotFoundError(BackstageError):
    """Resource not found.

    Raised when:
    - User email doesn't resolve
    - Thread, post or community id doesn't resolve
    - Note id doesn't resolve (where a None return is not documented)
    """

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message or f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class AccessDeniedError(BackstageError):
    """Access denied.

    Raised when the acting user's role does not grant the capability an
    operation requires, or when a user acts on a resource they don't own.
    """

    def __init__(
        self,
        actor: str,
        capability: str,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message or f"Access denied: {actor} lacks {capability}",
            code="ACCESS_DENIED",
            details={"actor": actor, "capability": capability},
        )
        self.actor = actor
        self.capability = capability


class ProtectedAccountError(BackstageError):
    """Operation targets a protected account.

    Raised when:
    - Deleting or re-roling the bootstrap dev account
    - Deleting the acting user's own account
    - A non-bootstrap actor deletes a dev account
    """

    def __init__(self, email: str, reason: str) -> None:
        super().__init__(
            f"Account {email} is protected: {reason}",
            code="PROTECTED_ACCOUNT",
            details={"email": email, "reason": reason},
        )
        self.email = email
        self.reason = reason


class RegistrationDisabledError(BackstageError):
    """User does not exist and registration is disabled."""

    def __init__(self, email: str) -> None:
        super().__init__(
            "User does not exist and registration is disabled.",
            code="REGISTRATION_DISABLED",
            details={"email": email},
        )
        self.email = email


class ValidationError(BackstageError):
    """Input validation failed.

    Raised when:
    - Email is blank or has no '@'
    - A required text field is blank
    - An update names a field that cannot be changed
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class InvalidStateError(BackstageError):
    """Transition not allowed from the entity's current state."""

    def __init__(self, resource_id: str, state: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"{resource_id} is already {state}",
            code="INVALID_STATE",
            details={"resource_id": resource_id, "state": state},
        )
        self.resource_id = resource_id
        self.state = state


class InvalidShareLinkError(BackstageError):
    """Share link could not be decoded into a note."""

    def __init__(self, message: str = "Invalid or corrupted share link.") -> None:
        super().__init__(message, code="INVALID_SHARE_LINK")
