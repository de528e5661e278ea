"""
NexaNotes Backstage - Main entry point.

Starts the HTTP gateway over a Backstage built from the environment.

Usage:
    python -m backstage.main

Configuration is entirely via environment variables.
See config.py (storage, auth, AI, logging) and api/settings.py (host,
port, CORS) for all available settings.

Invariants:
    - Configuration errors abort startup before anything is opened
    - Logging is configured once, before the first log line
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import GatewaySettings, create_app
from .config import BackstageConfig

logger = logging.getLogger(__name__)


def setup_logging(config: BackstageConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Backstage configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = BackstageConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)
    config.log_config()

    settings = GatewaySettings()
    logger.info(f"Starting Backstage gateway on {settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
