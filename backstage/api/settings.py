"""
Configuration for the Backstage HTTP gateway.

Uses pydantic-settings for environment variable loading. Storage, auth and
AI settings come from backstage.config.BackstageConfig.

The gateway trusts the X-User-Email header. Bind it to a private interface
(BACKSTAGE_HOST) reachable only from an authenticating proxy.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class GatewaySettings(BaseSettings):
    """Gateway configuration loaded from environment."""

    host: str = Field(default="127.0.0.1", description="Gateway bind host")
    port: int = Field(default=8080, description="Gateway bind port")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Base URL share links point at (the web client)
    share_base_url: str = Field(
        default="http://localhost:5173/",
        description="Web client URL used to build note share links",
    )

    model_config = {"env_prefix": "BACKSTAGE_"}
