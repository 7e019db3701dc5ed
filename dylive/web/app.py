"""
dylive - FastAPI Backend
JSON API over the scraping pipeline.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.settings_manager import Settings
from ..core.douyin_client import DouyinClient
from ..core.errors import (
    CredentialRejectedError,
    DyliveError,
    InvalidPageDataError,
    NotFoundError,
    NoUrlError,
    TransportError,
)
from .api import rooms

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS = (
    (NoUrlError, 400),
    (CredentialRejectedError, 403),
    (NotFoundError, 404),
    (InvalidPageDataError, 502),
    (TransportError, 504),
)


def status_for(error: DyliveError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def create_app(settings: Optional[Settings] = None,
               client: Optional[DouyinClient] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Settings for the client created at startup
        client: Use this client instead of creating one (tests)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting dylive API...")
        app.state.client = client or DouyinClient(settings)
        yield
        logger.info("🛑 Shutting down...")
        await app.state.client.close()

    app = FastAPI(
        title="dylive",
        description="Douyin live room lookup",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(DyliveError)
    async def dylive_error_handler(request: Request, exc: DyliveError):
        status = status_for(exc)
        logger.warning(f"{request.url.path}: {exc} ({status})")
        return JSONResponse(status_code=status, content=exc.to_dict())

    app.include_router(rooms.router, prefix="/api", tags=["rooms"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app
