"""
Shared fixtures for the Backstage test suite.
"""

import pytest

from backstage.config import AuthConfig, BackstageConfig, StorageBackend, StorageConfig
from backstage.core import Backstage
from backstage.models import Role, User
from backstage.storage import InMemoryKeyValueStore
from backstage.storage.adapter import USERS

BOOTSTRAP_EMAIL = "hello@hello.com"


@pytest.fixture
def config():
    """Memory-backed configuration with no artificial delays."""
    return BackstageConfig(
        storage=StorageConfig(backend=StorageBackend.MEMORY),
        auth=AuthConfig(login_delay_ms=0, logout_delay_ms=0, bootstrap_email=BOOTSTRAP_EMAIL),
    )


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def backstage(config, kv):
    """Fresh installation over an in-memory store."""
    return Backstage(config, kv=kv)


@pytest.fixture
def add_user(backstage):
    """Factory that stores a user record directly and returns it."""

    def _add(email, role=Role.USER, display_name=None):
        user = User(
            email=email,
            username=email.split("@")[0],
            display_name=display_name or email.split("@")[0],
            role=role,
        )
        users = backstage.store.read(USERS) or []
        users.append(user.to_dict())
        backstage.store.write(USERS, users)
        return user

    return _add


@pytest.fixture
def dev(backstage):
    """The seeded bootstrap dev account."""
    records = backstage.store.read(USERS)
    return next(User.from_dict(r) for r in records if r["email"] == BOOTSTRAP_EMAIL)


@pytest.fixture
def admin(add_user):
    return add_user("admin@x.com", Role.ADMIN, "Admin")


@pytest.fixture
def alice(add_user):
    return add_user("alice@x.com", Role.USER, "Alice")


@pytest.fixture
def bob(add_user):
    return add_user("bob@x.com", Role.USER, "Bob")
