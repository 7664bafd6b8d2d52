"""
Panel registry: at most one live panel per target.

Replaces a process-wide "current panel" slot with a dict keyed by target
id. The app keeps one registry on app.state and routes receive it through
a FastAPI dependency.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from preview.config import settings
from preview.services.correlation import BridgeError
from preview.services.diagnostics import DiagnosticSink, TextDocument
from preview.services.panel import Notifier, PreviewPanel
from preview.services.surface import RenderingSurface

logger = logging.getLogger(__name__)

SurfaceFactory = Callable[[], RenderingSurface]


class PanelRegistry:
    def __init__(
        self,
        sink: DiagnosticSink,
        notifier: Notifier | None = None,
        request_timeout: float | None = settings.REQUEST_TIMEOUT_SECONDS,
        flush_interval: float = settings.FLUSH_INTERVAL_SECONDS,
    ) -> None:
        self.sink = sink
        self.notifier = notifier or Notifier()
        self._request_timeout = request_timeout
        self._flush_interval = flush_interval
        self._panels: dict[str, PreviewPanel] = {}

    def get(self, target_id: str) -> PreviewPanel | None:
        panel = self._panels.get(target_id)
        if panel is None or panel.disposed:
            return None
        return panel

    async def create_or_show(
        self,
        target_id: str,
        document: TextDocument,
        surface_factory: SurfaceFactory,
        timeout: float | None = settings.INIT_TIMEOUT_SECONDS,
    ) -> PreviewPanel:
        """
        Return the target's live panel, or build one and wait until it is ready.

        The factory is called at most once per new panel. If the sandbox
        never loads, the half-built panel is disposed and the error re-raised.
        """
        existing = self.get(target_id)
        if existing is not None:
            return existing

        panel = self._attach(target_id, surface_factory(), document)
        try:
            await panel.init(timeout)
        except BridgeError:
            panel.dispose()
            raise
        return panel

    def revive(self, target_id: str, surface: RenderingSurface, document: TextDocument) -> PreviewPanel:
        """Attach a panel to a surface that already exists. Does not wait for "loaded"."""
        existing = self.get(target_id)
        if existing is not None:
            logger.info("registry: replacing panel for %s", target_id)
            existing.dispose()
        return self._attach(target_id, surface, document)

    def dispose(self, target_id: str) -> bool:
        panel = self._panels.get(target_id)
        if panel is None:
            return False
        panel.dispose()
        return True

    def dispose_all(self) -> None:
        for panel in list(self._panels.values()):
            panel.dispose()

    def __len__(self) -> int:
        return len(self._panels)

    def __contains__(self, target_id: str) -> bool:
        return self.get(target_id) is not None

    def _attach(self, target_id: str, surface: RenderingSurface, document: TextDocument) -> PreviewPanel:
        panel = PreviewPanel(
            target_id,
            surface,
            document,
            self.sink,
            self.notifier,
            on_dispose=self._forget,
            request_timeout=self._request_timeout,
            flush_interval=self._flush_interval,
        )
        self._panels[target_id] = panel
        return panel

    def _forget(self, panel: PreviewPanel) -> None:
        if self._panels.get(panel.target_id) is panel:
            del self._panels[panel.target_id]
