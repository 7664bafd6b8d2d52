"""
WebSocket endpoint for sandbox pages.

The preview page's script connects to /ws/preview/{target_id}. The
connection becomes the target's rendering surface: frames from the page
go to the panel's bridge, bridge requests go out as JSON text frames.
Disconnecting disposes the panel.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket

from preview.config import settings
from preview.deps import get_registry
from preview.services.diagnostics import TextDocument, document_uri
from preview.services.registry import PanelRegistry
from preview.services.surface import WebSocketSurface

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws/preview/{target_id}")
async def preview_ws(
    websocket: WebSocket,
    target_id: str,
    registry: PanelRegistry = Depends(get_registry),
) -> None:
    surface = WebSocketSurface(websocket, view_type=settings.VIEW_TYPE, title=settings.TITLE)
    # Wired before accept so the page's first frame cannot be missed
    panel = registry.revive(target_id, surface, TextDocument(document_uri(target_id)))
    await websocket.accept()
    logger.info("ws: sandbox connected for %s", target_id)
    try:
        await surface.run()
    finally:
        panel.dispose()
        logger.info("ws: sandbox for %s gone", target_id)
