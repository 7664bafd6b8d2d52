"""Serves the preview page a sandbox is loaded into."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from preview.config import settings
from preview.services.webview_html import render_webview_html

router = APIRouter(tags=["pages"])


@router.get("/preview/{target_id}", response_class=HTMLResponse)
async def preview_page(target_id: str) -> HTMLResponse:
    html = render_webview_html(
        title=settings.TITLE,
        script_url=settings.SCRIPT_URL,
        socket_path=f"/ws/preview/{target_id}",
    )
    return HTMLResponse(content=html, headers={"Cache-Control": "no-store"})
