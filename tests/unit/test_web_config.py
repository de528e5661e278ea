"""
Unit tests for the web configuration singleton and env-driven config.
"""

import pytest

from backstage.config import BackstageConfig, StorageBackend
from backstage.errors import AccessDeniedError, ValidationError
from backstage.storage.adapter import WEB_CONFIG


class TestWebConfigService:
    """Tests for WebConfigService."""

    @pytest.mark.asyncio
    async def test_defaults(self, backstage):
        config = backstage.web_config.get_web_config()
        assert config.app_name == "NexaNotes"
        assert config.registration_enabled is True

    @pytest.mark.asyncio
    async def test_missing_record_falls_back_to_defaults(self, backstage):
        backstage.store.remove(WEB_CONFIG)
        assert backstage.web_config.get_web_config().app_name == "NexaNotes"

    @pytest.mark.asyncio
    async def test_partial_update_merges(self, backstage, dev):
        await backstage.web_config.update_web_config({"appName": "Notes Co"}, actor=dev)

        assert backstage.store.read(WEB_CONFIG) == {
            "appName": "Notes Co",
            "registrationEnabled": True,
        }

    @pytest.mark.asyncio
    async def test_admin_cannot_configure(self, backstage, admin):
        with pytest.raises(AccessDeniedError):
            await backstage.web_config.update_web_config(
                {"registrationEnabled": False}, actor=admin
            )

    @pytest.mark.asyncio
    async def test_invalid_changes(self, backstage):
        with pytest.raises(ValidationError):
            await backstage.web_config.update_web_config({"theme": "dark"})
        with pytest.raises(ValidationError):
            await backstage.web_config.update_web_config({"appName": "  "})
        with pytest.raises(ValidationError):
            await backstage.web_config.update_web_config({"registrationEnabled": "no"})


class TestBackstageConfig:
    """Tests for environment-driven configuration."""

    def test_from_env_defaults(self, monkeypatch):
        for name in ("STORAGE_BACKEND", "LOGIN_DELAY_MS", "API_KEY", "GEMINI_API_KEY"):
            monkeypatch.delenv(name, raising=False)

        config = BackstageConfig.from_env()

        assert config.storage.backend == StorageBackend.SQLITE
        assert config.auth.login_delay_ms == 500
        assert config.assist.api_key == ""

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LOGIN_DELAY_MS", "0")
        monkeypatch.setenv("GEMINI_API_KEY", "secret")
        monkeypatch.delenv("API_KEY", raising=False)

        config = BackstageConfig.from_env()

        assert config.storage.backend == StorageBackend.MEMORY
        assert config.auth.login_delay_ms == 0
        assert config.assist.api_key == "secret"

    def test_invalid_backend(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "redis")
        with pytest.raises(ValueError):
            BackstageConfig.from_env()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError):
            BackstageConfig.from_env()
