"""Diagnostic drain — batches runtime error payloads and flushes them to a sink."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from preview.config import settings
from preview.services.diagnostics import DiagnosticSink, TextDocument, to_diagnostics

logger = logging.getLogger(__name__)


class DiagnosticDrain:
    """
    Owns the diagnostic buffer for one panel.

    push() is O(1) and never touches the sink. A background task calls
    flush() once per interval; a flush with anything buffered makes exactly
    one set_diagnostics() call carrying the whole batch, replacing what the
    document had before.
    """

    def __init__(
        self,
        sink: DiagnosticSink,
        document: Callable[[], TextDocument],
        interval: float = settings.FLUSH_INTERVAL_SECONDS,
    ) -> None:
        self._sink = sink
        self._document = document
        self._interval = interval
        self._buffer: list[Any] = []
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return len(self._buffer)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def push(self, payload: Any) -> None:
        self._buffer.append(payload)

    def flush(self) -> int:
        """
        Convert and publish everything buffered.

        Returns:
            Number of diagnostics published (0 means the sink was not called)
        """
        if not self._buffer:
            return 0
        batch, self._buffer = self._buffer, []
        document = self._document()
        diagnostics = []
        for payload in batch:
            diagnostics.extend(to_diagnostics(document, payload))
        self._sink.set_diagnostics(document.uri, diagnostics)
        logger.debug("drain: flushed %d payloads as %d diagnostics", len(batch), len(diagnostics))
        return len(diagnostics)

    def clear_document(self) -> None:
        """Reset the document's runtime diagnostics to empty."""
        self._sink.set_diagnostics(self._document().uri, [])

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())

    async def run(self) -> None:
        """Background loop: flush once per interval until cancelled."""
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.flush()
            except Exception:
                logger.exception("drain: flush failed")

    def stop(self) -> None:
        """Cancel the loop and discard the buffer. Safe to call twice."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._buffer.clear()
