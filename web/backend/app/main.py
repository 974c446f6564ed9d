"""FastAPI application for the Hideout chat screening backend.

Provides:
- Security configuration, ledger and statistics endpoints
- An advisory pre-send scan endpoint
- Chat room WebSockets where every message is screened before fan-out
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hideout import __version__
from hideout.errors import StorageError
from hideout.services import SecurityServices, build_services
from web.backend.app.routers import chat, security
from web.backend.app.routers.chat import RoomHub, WebSocketTransport

logger = logging.getLogger(__name__)


def create_app(services: Optional[SecurityServices] = None) -> FastAPI:
    """Build the app. *services* defaults to the persisted state under ~/.hideout."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()
        transport = WebSocketTransport(RoomHub())
        app.state.transport = transport
        app.state.pipeline = app.state.services.pipeline(transport)
        async with app.state.pipeline:
            yield
        app.state.pipeline = None
        try:
            app.state.services.save()
        except StorageError as exc:
            logger.error("Could not persist security state: %s", exc)

    app = FastAPI(
        title="Hideout API",
        description=(
            "Content screening for anonymous chat rooms: threat scoring, "
            "URL reputation, security policy and the security ledger."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.pipeline = None

    # -----------------------------------------------------------------------
    # CORS middleware (allow all origins for development)
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(security.router)
    app.include_router(chat.router)

    @app.get("/", tags=["meta"])
    async def root():
        """Return basic API information."""
        return {
            "name": "Hideout API",
            "version": __version__,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    @app.get("/health", tags=["meta"])
    async def health_check():
        """Health check endpoint."""
        pipeline = app.state.pipeline
        return {
            "status": "healthy",
            "pipeline": "running" if pipeline is not None and pipeline.running else "stopped",
        }

    return app


app = create_app()
