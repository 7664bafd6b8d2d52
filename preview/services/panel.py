"""
Preview panel: one rendering surface, its bridge and its diagnostic drain.

Lifecycle:
    initializing ──"loaded"──▶ ready
         │                       │
         └───────dispose()───────┴──▶ disposed

Messages are wired in the constructor, so a revived panel (one whose
surface already exists) handles "loaded" the same way as a created one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Literal

from preview.config import settings
from preview.services.correlation import BridgeClosed, BridgeTimeout, CorrelationBridge, ignore
from preview.services.diagnostics import DiagnosticSink, TextDocument
from preview.services.drain import DiagnosticDrain
from preview.services.surface import Disposable, RenderingSurface
from preview.services.webview_html import render_webview_html

logger = logging.getLogger(__name__)

PanelState = Literal["initializing", "ready", "disposed"]


class Notifier:
    """Surfaces user-visible notices. The default just logs and remembers them."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def show_error_message(self, message: str) -> None:
        logger.error("preview alert: %s", message)
        self.messages.append(message)


class PreviewPanel:
    """
    Host side of one preview.

    Usage:
        panel = PreviewPanel("doc-1", surface, document, sink, notifier)
        await panel.init()
        errors = await panel.evaluate([{"source": "x = 1", "line": 0}])
    """

    def __init__(
        self,
        target_id: str,
        surface: RenderingSurface,
        document: TextDocument,
        sink: DiagnosticSink,
        notifier: Notifier | None = None,
        on_dispose: Callable[[PreviewPanel], None] | None = None,
        request_timeout: float | None = settings.REQUEST_TIMEOUT_SECONDS,
        flush_interval: float = settings.FLUSH_INTERVAL_SECONDS,
    ) -> None:
        self.target_id = target_id
        self.surface = surface
        self.document = document
        self.notifier = notifier or Notifier()
        self._on_dispose = on_dispose
        self._state: PanelState = "initializing"
        self._disposables: list[Disposable] = []
        self._loaded: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        self.bridge = CorrelationBridge(
            surface.post_message,
            {
                "loaded": self._on_loaded,
                "errors": self._on_errors,
                "alert": self._on_alert,
                "evaluate": ignore,
                "pull": ignore,
                "echo": ignore,
            },
            default_timeout=request_timeout,
        )
        self.drain = DiagnosticDrain(sink, lambda: self.document, flush_interval)

        surface.on_did_dispose(lambda _: self.dispose(), self._disposables)
        surface.on_did_receive_message(self.bridge.dispatch, self._disposables)
        surface.on_did_change_view_state(self._on_view_state, self._disposables)

        self.drain.clear_document()
        self.drain.start()
        surface.set_html(
            render_webview_html(
                title=surface.title or settings.TITLE,
                script_url=settings.SCRIPT_URL,
                socket_path=f"/ws/preview/{target_id}",
            )
        )

    @property
    def state(self) -> PanelState:
        return self._state

    @property
    def disposed(self) -> bool:
        return self._state == "disposed"

    async def init(self, timeout: float | None = None) -> None:
        """
        Wait for the sandbox's "loaded" notification.

        Raises BridgeTimeout when `timeout` elapses first and BridgeClosed
        when the panel is disposed before the sandbox is ready.
        """
        if self._state == "disposed":
            raise BridgeClosed(f"panel {self.target_id} is disposed")
        try:
            await asyncio.wait_for(asyncio.shield(self._loaded), timeout)
        except TimeoutError:
            raise BridgeTimeout(f"panel {self.target_id} not loaded within {timeout}s") from None

    async def evaluate(self, cells: list[Any], text: str | None = None) -> Any:
        """Recompile the sandbox notebook; returns the sandbox's error array."""
        if text is not None:
            self.document.update(text)
        return await self.bridge.send("evaluate", cells)

    async def pull(self, url: str) -> Any:
        return await self.bridge.send("pull", url)

    async def echo(self, content: Any) -> bool:
        return await self.bridge.post("echo", content)

    def status(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "state": self._state,
            "document_uri": self.document.uri,
            "visible": self.surface.visible,
            "pending_requests": self.bridge.pending_count,
        }

    def dispose(self) -> None:
        """Release everything the panel holds. Safe to call twice."""
        if self._state == "disposed":
            return
        self._state = "disposed"
        logger.info("panel %s: disposed", self.target_id)

        self.drain.stop()
        self.bridge.close(f"panel {self.target_id} disposed")
        if not self._loaded.done():
            self._loaded.set_exception(BridgeClosed(f"panel {self.target_id} disposed before loading"))
            # Nobody may be waiting on init()
            self._loaded.exception()

        self.surface.dispose()
        while self._disposables:
            self._disposables.pop().dispose()

        if self._on_dispose is not None:
            self._on_dispose(self)

    # -- inbound commands ---------------------------------------------------

    def _on_loaded(self, content: Any) -> None:
        if self._state != "initializing":
            return
        self._state = "ready"
        if not self._loaded.done():
            self._loaded.set_result(None)
        logger.info("panel %s: sandbox loaded", self.target_id)

    def _on_errors(self, content: Any) -> None:
        self.drain.push(content)

    def _on_alert(self, content: Any) -> None:
        self.notifier.show_error_message(str(content))

    def _on_view_state(self, visible: Any) -> None:
        logger.debug("panel %s: visible=%s", self.target_id, visible)
