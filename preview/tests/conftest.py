"""
Pytest configuration and fixtures for preview tests.
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest
import pytest_asyncio

from preview.main import create_app
from preview.services.diagnostics import DiagnosticCollection, TextDocument
from preview.services.panel import Notifier
from preview.services.registry import PanelRegistry
from preview.services.surface import RenderingSurface


class RecordingSurface(RenderingSurface):
    """Surface that records every outbound frame instead of delivering it."""

    def __init__(self, title: str = ""):
        super().__init__("OJSPreview", title)
        self.sent: list[dict[str, Any]] = []

    async def _deliver(self, message: dict[str, Any]) -> None:
        self.sent.append(message)

    def last_request(self, command: str) -> dict[str, Any]:
        return next(m for m in reversed(self.sent) if m["command"] == command)


@pytest.fixture
def make_surface():
    return RecordingSurface


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def sink():
    return DiagnosticCollection()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def document():
    return TextDocument("preview://doc", "a = 1\nb = a + 1\nc = oops\n")


@pytest.fixture
def registry(sink, notifier):
    return PanelRegistry(sink, notifier, request_timeout=None, flush_interval=0.01)


@pytest.fixture
def app(registry, sink):
    app = create_app()
    app.state.registry = registry
    app.state.diagnostics = sink
    return app


@pytest_asyncio.fixture
async def client(app):
    """httpx client bound to the app; no lifespan."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
