"""
Domain entities for NexaNotes Backstage.

Each entity is a dataclass with to_dict()/from_dict() converting to and
from the persisted camelCase record shape.

Invariants:
    - Identifiers are opaque strings (id_<epoch ms>_<7 base36 chars>)
    - Timestamps are ISO-8601 UTC strings with millisecond precision
    - Optional fields that are unset are omitted from persisted records
    - DiscussionPost.likes holds each email at most once

How to change safely:
    - Persisted keys are shared with existing installations; add, never rename
    - from_dict() must accept records written before a field existed
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_ID_ALPHABET = string.digits + string.ascii_lowercase

CURSOR_STYLES = ("default", "dot", "crosshair", "underline", "blade", "orbit", "glitch")
LANGUAGES = ("en", "fr", "zh")


class Role(Enum):
    """User roles, lowest to highest privilege."""

    USER = "user"
    ADMIN = "admin"
    DEV = "dev"


class PublicationStatus(Enum):
    """Publication lifecycle states."""

    PENDING = "pending"
    PUBLISHED = "published"


def generate_id() -> str:
    """Generate a unique opaque identifier."""
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(7))
    return f"id_{int(time.time() * 1000)}_{suffix}"


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with milliseconds and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp written by format_timestamp (or any ISO-8601 string)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def now_iso() -> str:
    """Current time as a persisted timestamp."""
    return format_timestamp(datetime.now(timezone.utc))


def next_timestamp(previous: Optional[str]) -> str:
    """Current time, bumped to be strictly later than previous.

    Timestamps have millisecond resolution, so two updates inside the same
    millisecond would otherwise tie.
    """
    now = datetime.now(timezone.utc)
    if previous:
        try:
            floor = parse_timestamp(previous) + timedelta(milliseconds=1)
        except ValueError:
            floor = None
        if floor is not None and now < floor:
            now = floor
    return format_timestamp(now)


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class User:
    """An account, keyed by email.

    Attributes:
        email: Natural key, matched case-insensitively at lookup
        username: Handle derived from the email's local part at sign-up
        display_name: Name shown next to posts and publications
        bio: Free-text profile blurb
        role: Privilege level
        profile_picture_url: Optional avatar URL
        theme_name: Optional UI theme
        cursor_style: Optional cursor style (one of CURSOR_STYLES)
        cursor_color: Optional cursor color
        language: Optional UI language (one of LANGUAGES)
    """

    email: str
    username: str
    display_name: str
    bio: str = ""
    role: Role = Role.USER
    profile_picture_url: Optional[str] = None
    theme_name: Optional[str] = None
    cursor_style: Optional[str] = None
    cursor_color: Optional[str] = None
    language: Optional[str] = None

    # Persisted key -> attribute name, for fields callers may change
    FIELD_NAMES = {
        "username": "username",
        "displayName": "display_name",
        "bio": "bio",
        "role": "role",
        "profilePictureUrl": "profile_picture_url",
        "themeName": "theme_name",
        "cursorStyle": "cursor_style",
        "cursorColor": "cursor_color",
        "language": "language",
    }

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "email": self.email,
            "username": self.username,
            "displayName": self.display_name,
            "bio": self.bio,
            "role": self.role.value,
            "profilePictureUrl": self.profile_picture_url,
            "themeName": self.theme_name,
            "cursorStyle": self.cursor_style,
            "cursorColor": self.cursor_color,
            "language": self.language,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> User:
        return cls(
            email=data["email"],
            username=data.get("username", ""),
            display_name=data.get("displayName", ""),
            bio=data.get("bio", ""),
            role=Role(data.get("role", Role.USER.value)),
            profile_picture_url=data.get("profilePictureUrl"),
            theme_name=data.get("themeName"),
            cursor_style=data.get("cursorStyle"),
            cursor_color=data.get("cursorColor"),
            language=data.get("language"),
        )

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.ADMIN, Role.DEV)


@dataclass
class Note:
    """A note owned by exactly one user."""

    id: str
    title: str
    content: str
    created_at: str
    updated_at: str
    owner_email: Optional[str] = None
    summary: Optional[str] = None
    is_markdown: Optional[bool] = None

    EDITABLE_FIELDS = {
        "title": "title",
        "content": "content",
        "summary": "summary",
        "isMarkdown": "is_markdown",
    }

    def public_dict(self) -> Dict[str, Any]:
        """Record without ownership, as shown to viewers of a share link."""
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "summary": self.summary,
            "isMarkdown": self.is_markdown,
        })

    def to_dict(self) -> Dict[str, Any]:
        data = self.public_dict()
        if self.owner_email is not None:
            data["ownerEmail"] = self.owner_email
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Note:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            created_at=data["createdAt"],
            updated_at=data.get("updatedAt", data["createdAt"]),
            owner_email=data.get("ownerEmail"),
            summary=data.get("summary"),
            is_markdown=data.get("isMarkdown"),
        )


@dataclass
class Community:
    """A discussion space. Immutable once created."""

    id: str
    name: str
    description: str
    created_at: str
    author_email: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdAt": self.created_at,
            "authorEmail": self.author_email,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Community:
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            created_at=data["createdAt"],
            author_email=data["authorEmail"],
        )


@dataclass
class DiscussionPost:
    """One message in a thread."""

    id: str
    author_email: str
    author_display_name: str
    content: str
    created_at: str
    likes: List[str] = field(default_factory=list)
    author_profile_picture_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "authorEmail": self.author_email,
            "authorDisplayName": self.author_display_name,
            "authorProfilePictureUrl": self.author_profile_picture_url,
            "content": self.content,
            "createdAt": self.created_at,
            "likes": list(self.likes),
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DiscussionPost:
        likes: List[str] = []
        for email in data.get("likes", []):
            if email not in likes:
                likes.append(email)
        return cls(
            id=data["id"],
            author_email=data["authorEmail"],
            author_display_name=data.get("authorDisplayName", ""),
            content=data.get("content", ""),
            created_at=data["createdAt"],
            likes=likes,
            author_profile_picture_url=data.get("authorProfilePictureUrl"),
        )


@dataclass
class DiscussionThread:
    """A titled sequence of posts, oldest first."""

    id: str
    community_id: Optional[str]
    title: str
    author_email: str
    author_display_name: str
    created_at: str
    posts: List[DiscussionPost] = field(default_factory=list)
    author_profile_picture_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_none({
            "id": self.id,
            "title": self.title,
            "authorEmail": self.author_email,
            "authorDisplayName": self.author_display_name,
            "authorProfilePictureUrl": self.author_profile_picture_url,
            "createdAt": self.created_at,
            "posts": [p.to_dict() for p in self.posts],
        })
        # communityId is persisted even when null (general community)
        data["communityId"] = self.community_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DiscussionThread:
        return cls(
            id=data["id"],
            community_id=data.get("communityId"),
            title=data.get("title", ""),
            author_email=data["authorEmail"],
            author_display_name=data.get("authorDisplayName", ""),
            created_at=data["createdAt"],
            posts=[DiscussionPost.from_dict(p) for p in data.get("posts", [])],
            author_profile_picture_url=data.get("authorProfilePictureUrl"),
        )

    def find_post(self, post_id: str) -> Optional[DiscussionPost]:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    @property
    def last_activity(self) -> str:
        """Timestamp of the newest post, or the thread's own creation time."""
        if self.posts:
            return self.posts[-1].created_at
        return self.created_at


@dataclass
class WebConfig:
    """App-wide settings singleton."""

    app_name: str = "NexaNotes"
    registration_enabled: bool = True

    FIELD_NAMES = {
        "appName": "app_name",
        "registrationEnabled": "registration_enabled",
    }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "appName": self.app_name,
            "registrationEnabled": self.registration_enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WebConfig:
        defaults = cls()
        return cls(
            app_name=data.get("appName", defaults.app_name),
            registration_enabled=bool(
                data.get("registrationEnabled", defaults.registration_enabled)
            ),
        )


@dataclass
class Byline:
    """Who submitted or published a publication."""

    email: str
    display_name: str
    role: Optional[Role] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"email": self.email, "displayName": self.display_name}
        if self.role is not None:
            data["role"] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Byline:
        role = data.get("role")
        return cls(
            email=data["email"],
            display_name=data.get("displayName", ""),
            role=Role(role) if role else None,
        )

    @classmethod
    def of(cls, user: User, with_role: bool = False) -> Byline:
        return cls(
            email=user.email,
            display_name=user.display_name,
            role=user.role if with_role else None,
        )


@dataclass
class Publication:
    """An announcement, either awaiting review or published."""

    id: str
    title: str
    content: str
    created_at: str
    status: PublicationStatus
    submitted_by: Optional[Byline] = None
    published_by: Optional[Byline] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_at,
            "status": self.status.value,
        }
        if self.submitted_by is not None:
            data["submittedBy"] = self.submitted_by.to_dict()
        if self.published_by is not None:
            data["publishedBy"] = self.published_by.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Publication:
        submitted = data.get("submittedBy")
        published = data.get("publishedBy")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            created_at=data["createdAt"],
            status=PublicationStatus(data.get("status", PublicationStatus.PENDING.value)),
            submitted_by=Byline.from_dict(submitted) if submitted else None,
            published_by=Byline.from_dict(published) if published else None,
        )


@dataclass(frozen=True)
class Gif:
    """A GIF search result."""

    url: str
    alt: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "alt": self.alt}
