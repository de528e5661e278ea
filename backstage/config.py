"""
Configuration management for NexaNotes Backstage.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets (the AI API key) are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the storage prefix stable; changing it orphans existing data
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StorageBackend(Enum):
    """Supported key-value storage backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


@dataclass(frozen=True)
class StorageConfig:
    """Key-value storage configuration.

    Attributes:
        backend: Which key-value backend to use
        prefix: Namespace prefix shared by every collection key
        sqlite_path: Database file for the sqlite backend
        wal_mode: SQLite WAL journal mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    backend: StorageBackend = StorageBackend.SQLITE
    prefix: str = "nexanotes_"
    sqlite_path: str = "./data/backstage.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("STORAGE_BACKEND", "sqlite").lower()
        try:
            backend = StorageBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STORAGE_BACKEND '{backend_str}'. Must be one of: memory, sqlite"
            )
        return cls(
            backend=backend,
            prefix=os.getenv("STORAGE_PREFIX", "nexanotes_"),
            sqlite_path=os.getenv("SQLITE_PATH", "./data/backstage.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class AuthConfig:
    """Identity and session configuration.

    Attributes:
        login_delay_ms: Artificial delay before login resolves
        logout_delay_ms: Artificial delay before logout resolves
        bootstrap_email: Seeded dev account that can never be removed
    """

    login_delay_ms: int = 500
    logout_delay_ms: int = 100
    bootstrap_email: str = "hello@hello.com"

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        return cls(
            login_delay_ms=int(os.getenv("LOGIN_DELAY_MS", "500")),
            logout_delay_ms=int(os.getenv("LOGOUT_DELAY_MS", "100")),
            bootstrap_email=os.getenv("BOOTSTRAP_EMAIL", "hello@hello.com"),
        )


@dataclass(frozen=True)
class AssistConfig:
    """Generative-AI collaborator configuration.

    Attributes:
        api_key: Gemini API key (empty disables every AI call)
        model: Model name used for generateContent
        base_url: API root
        timeout_seconds: HTTP timeout per request
        temperature: Sampling temperature for summaries
    """

    api_key: str = ""
    model: str = "gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: float = 30.0
    temperature: float = 0.7

    @classmethod
    def from_env(cls) -> AssistConfig:
        """Load configuration from environment variables."""
        return cls(
            api_key=os.getenv("API_KEY", os.getenv("GEMINI_API_KEY", "")),
            model=os.getenv("GENAI_MODEL", "gemini-2.5-flash"),
            base_url=os.getenv(
                "GENAI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
            ),
            timeout_seconds=float(os.getenv("GENAI_TIMEOUT_SECONDS", "30")),
            temperature=float(os.getenv("GENAI_TEMPERATURE", "0.7")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class BackstageConfig:
    """Complete configuration.

    Attributes:
        storage: Key-value storage configuration
        auth: Identity and session configuration
        assist: Generative-AI configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    assist: AssistConfig = field(default_factory=AssistConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> BackstageConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            auth=AuthConfig.from_env(),
            assist=AssistConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.prefix:
            raise ValueError("STORAGE_PREFIX must not be empty")
        if self.storage.backend == StorageBackend.SQLITE and not self.storage.sqlite_path:
            raise ValueError("SQLITE_PATH is required when STORAGE_BACKEND=sqlite")
        if self.auth.login_delay_ms < 0 or self.auth.logout_delay_ms < 0:
            raise ValueError("LOGIN_DELAY_MS and LOGOUT_DELAY_MS must be >= 0")
        if "@" not in self.auth.bootstrap_email:
            raise ValueError(f"BOOTSTRAP_EMAIL is not an email: {self.auth.bootstrap_email}")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be one of: json, text")

        if not self.assist.api_key:
            logger.warning("API_KEY environment variable not set. AI features are disabled.")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Backstage configuration loaded",
            extra={
                "storage_backend": self.storage.backend.value,
                "storage_prefix": self.storage.prefix,
                "sqlite_path": self.storage.sqlite_path
                if self.storage.backend == StorageBackend.SQLITE
                else None,
                "bootstrap_email": self.auth.bootstrap_email,
                "genai_model": self.assist.model,
                "genai_key_set": bool(self.assist.api_key),
                "log_level": self.observability.log_level,
            },
        )
