"""
FastAPI application factory for the Backstage HTTP gateway.

This module creates the FastAPI app with:
- CORS configuration for the web client
- Backstage lifecycle management
- Service error to HTTP status mapping
- API routes under /api/v1
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import BackstageConfig
from ..core import Backstage
from ..errors import (
    AccessDeniedError,
    BackstageError,
    InvalidShareLinkError,
    InvalidStateError,
    NotFoundError,
    ProtectedAccountError,
    RegistrationDisabledError,
    ValidationError,
)
from .routes import router
from .settings import GatewaySettings

logger = logging.getLogger(__name__)

# First match wins; subclasses before their bases
ERROR_STATUS = (
    (NotFoundError, 404),
    (AccessDeniedError, 403),
    (RegistrationDisabledError, 403),
    (InvalidShareLinkError, 400),
    (ValidationError, 400),
    (ProtectedAccountError, 409),
    (InvalidStateError, 409),
)


def status_for(error: BackstageError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def create_app(
    backstage: Optional[Backstage] = None,
    settings: Optional[GatewaySettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        backstage: Pre-built Backstage to serve (tests). When omitted, one is
            built from the environment at startup and closed at shutdown.
        settings: Gateway settings; loaded from the environment if omitted
    """
    settings = settings or GatewaySettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage Backstage lifecycle."""
        if backstage is not None:
            yield
            return

        config = BackstageConfig.from_env()
        owned = Backstage(config)
        app.state.backstage = owned

        yield

        await owned.close()

    app = FastAPI(
        title="NexaNotes Backstage",
        description="Notes, discussions and publications for the NexaNotes web client.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if backstage is not None:
        app.state.backstage = backstage

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BackstageError)
    async def backstage_error_handler(request: Request, exc: BackstageError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"Unhandled service error on {request.url.path}: {exc}")
        return JSONResponse(status_code=status, content=exc.to_dict())

    # API routes
    app.include_router(router, prefix="/api/v1")

    # Health endpoint at root
    @app.get("/health")
    async def health(request: Request):
        storage = request.app.state.backstage.health()
        return {
            "status": "healthy" if storage["healthy"] else "degraded",
            "service": "backstage",
            "storage": storage,
        }

    return app
