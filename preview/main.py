"""
OJS Preview — FastAPI application entry point.

Hosts preview pages, the sandbox WebSocket and the preview API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from preview.config import settings
from preview.routes import page as page_routes
from preview.routes import preview as preview_routes
from preview.routes import ws as ws_routes
from preview.services.diagnostics import DiagnosticCollection
from preview.services.panel import Notifier
from preview.services.registry import PanelRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Panels start their own drains as they are created; shutdown disposes
    every live panel, which rejects their pending requests.
    """
    logger.info("preview host starting (%s)", settings.ENVIRONMENT)
    yield
    app.state.registry.dispose_all()
    logger.info("preview host stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.TITLE,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    # One diagnostics collection per app, shared by every panel
    app.state.diagnostics = DiagnosticCollection()
    app.state.registry = PanelRegistry(app.state.diagnostics, Notifier())

    # Register routes
    app.include_router(page_routes.router)
    app.include_router(preview_routes.router)
    app.include_router(ws_routes.router)

    @app.get("/health")
    async def health():
        """Health check endpoint for uptime monitoring."""
        return {"status": "ok"}

    return app


app = create_app()
