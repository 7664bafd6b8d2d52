"""Request and response bodies for the preview HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CellSource(BaseModel):
    """One cell as the sandbox expects it: source plus its first document line."""

    model_config = {"extra": "forbid"}

    source: str
    line: int = Field(default=0, ge=0)


class EvaluateRequest(BaseModel):
    """What the client sends to POST /api/preview/{target_id}/evaluate."""

    model_config = {"extra": "forbid"}

    cells: list[CellSource]
    text: str | None = None  # Full document text, used to anchor diagnostics


class EvaluateResponse(BaseModel):
    """The sandbox's reply, passed through unchanged."""

    errors: Any


class PullRequest(BaseModel):
    model_config = {"extra": "forbid"}

    url: str = Field(min_length=1, max_length=4096)


class PullResponse(BaseModel):
    content: Any


class EchoRequest(BaseModel):
    model_config = {"extra": "forbid"}

    content: Any = None


class PanelStatus(BaseModel):
    """What GET /api/preview/{target_id} returns."""

    target_id: str
    state: str
    document_uri: str
    visible: bool
    pending_requests: int


class DiagnosticsResponse(BaseModel):
    document_uri: str
    diagnostics: list[dict[str, Any]]
