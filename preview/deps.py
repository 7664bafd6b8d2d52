"""FastAPI dependencies for the preview routes."""

from __future__ import annotations

from fastapi import HTTPException, status
from starlette.requests import HTTPConnection

from preview.services.diagnostics import DiagnosticCollection
from preview.services.panel import PreviewPanel
from preview.services.registry import PanelRegistry


def get_registry(conn: HTTPConnection) -> PanelRegistry:
    """The app's panel registry. Works for HTTP and WebSocket routes."""
    return conn.app.state.registry


def get_diagnostics(conn: HTTPConnection) -> DiagnosticCollection:
    return conn.app.state.diagnostics


def require_panel(registry: PanelRegistry, target_id: str) -> PreviewPanel:
    """
    Look up a live panel.

    Raises:
        HTTPException: 404 if the target has no live panel
    """
    panel = registry.get(target_id)
    if panel is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preview not found.")
    return panel
