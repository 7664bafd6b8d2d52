"""Preview API routes: create, status, evaluate, pull, echo, diagnostics, dispose."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from preview.config import settings
from preview.deps import get_diagnostics, get_registry, require_panel
from preview.models.preview import (
    DiagnosticsResponse,
    EchoRequest,
    EvaluateRequest,
    EvaluateResponse,
    PanelStatus,
    PullRequest,
    PullResponse,
)
from preview.services.correlation import BridgeClosed, BridgeTimeout
from preview.services.diagnostics import DiagnosticCollection, TextDocument, document_uri
from preview.services.registry import PanelRegistry
from preview.services.surface import LocalSurface

router = APIRouter(prefix="/api/preview", tags=["preview"])


async def _answer(target_id: str, request: Awaitable[Any]) -> Any:
    """Await a bridge request, mapping bridge failures to HTTP errors."""
    try:
        return await request
    except BridgeClosed as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Preview {target_id} is closed.") from e
    except BridgeTimeout as e:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e)) from e


def _local_surface() -> LocalSurface:
    return LocalSurface(
        view_type=settings.VIEW_TYPE,
        title=settings.TITLE,
        pull_timeout=settings.PULL_TIMEOUT_SECONDS,
    )


@router.post("/{target_id}", status_code=200)
async def create_preview(
    target_id: str,
    registry: PanelRegistry = Depends(get_registry),
) -> PanelStatus:
    """Open an in-process preview for the target, or return the live one."""
    panel = await _answer(
        target_id,
        registry.create_or_show(target_id, TextDocument(document_uri(target_id)), _local_surface),
    )
    return PanelStatus(**panel.status())


@router.get("/{target_id}", status_code=200)
async def get_preview(
    target_id: str,
    registry: PanelRegistry = Depends(get_registry),
) -> PanelStatus:
    panel = require_panel(registry, target_id)
    return PanelStatus(**panel.status())


@router.post("/{target_id}/evaluate", status_code=200)
async def evaluate(
    target_id: str,
    req: EvaluateRequest,
    registry: PanelRegistry = Depends(get_registry),
) -> EvaluateResponse:
    """Send the cells to the sandbox and return its compile errors."""
    panel = require_panel(registry, target_id)
    cells = [cell.model_dump() for cell in req.cells]
    errors = await _answer(target_id, panel.evaluate(cells, req.text))
    return EvaluateResponse(errors=errors)


@router.post("/{target_id}/pull", status_code=200)
async def pull(
    target_id: str,
    req: PullRequest,
    registry: PanelRegistry = Depends(get_registry),
) -> PullResponse:
    panel = require_panel(registry, target_id)
    content = await _answer(target_id, panel.pull(req.url))
    return PullResponse(content=content)


@router.post("/{target_id}/echo", status_code=202)
async def echo(
    target_id: str,
    req: EchoRequest,
    registry: PanelRegistry = Depends(get_registry),
) -> dict[str, bool]:
    """Fire-and-forget; the sandbox's echo reply is ignored."""
    panel = require_panel(registry, target_id)
    delivered = await _answer(target_id, panel.echo(req.content))
    return {"delivered": delivered}


@router.get("/{target_id}/diagnostics", status_code=200)
async def get_diagnostics_for(
    target_id: str,
    diagnostics: DiagnosticCollection = Depends(get_diagnostics),
) -> DiagnosticsResponse:
    uri = document_uri(target_id)
    return DiagnosticsResponse(document_uri=uri, diagnostics=[d.to_dict() for d in diagnostics.get(uri)])


@router.delete("/{target_id}", status_code=204)
async def dispose_preview(
    target_id: str,
    registry: PanelRegistry = Depends(get_registry),
) -> None:
    if not registry.dispose(target_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preview not found.")
