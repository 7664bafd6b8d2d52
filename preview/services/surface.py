"""
Rendering surfaces: where a preview panel's page lives.

A surface delivers frames to the sandbox (post_message) and reports
inbound frames, disposal and visibility changes to listeners. Listener
registrations return Disposables so the panel can drop them all at once.

  RenderingSurface  base class, subclasses implement _deliver()
  WebSocketSurface  a sandbox page connected over a FastAPI WebSocket
  LocalSurface      an in-process SandboxPeer
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from reactive.sandbox import SandboxPeer

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class Disposable:
    """Runs its callback once on dispose()."""

    def __init__(self, callback: Callable[[], None]):
        self._callback: Callable[[], None] | None = callback

    def dispose(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()


class EventEmitter:
    """A list of listeners with Disposable registrations."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def event(self, listener: Listener, disposables: list[Disposable] | None = None) -> Disposable:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        registration = Disposable(remove)
        if disposables is not None:
            disposables.append(registration)
        return registration

    def fire(self, value: Any = None) -> None:
        for listener in list(self._listeners):
            listener(value)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


# ---------------------------------------------------------------------------
# Surface protocol
# ---------------------------------------------------------------------------


class RenderingSurface:
    """
    Abstract surface.
    Subclasses implement _deliver(); transports call receive() for inbound frames.
    """

    def __init__(self, view_type: str = "", title: str = ""):
        self.view_type = view_type
        self.title = title
        self.html = ""
        self.visible = True
        self.disposed = False
        self._on_message = EventEmitter()
        self._on_dispose = EventEmitter()
        self._on_view_state = EventEmitter()

    def on_did_receive_message(self, listener: Listener, disposables: list[Disposable] | None = None) -> Disposable:
        return self._on_message.event(listener, disposables)

    def on_did_dispose(self, listener: Listener, disposables: list[Disposable] | None = None) -> Disposable:
        return self._on_dispose.event(listener, disposables)

    def on_did_change_view_state(self, listener: Listener, disposables: list[Disposable] | None = None) -> Disposable:
        return self._on_view_state.event(listener, disposables)

    def set_html(self, html: str) -> None:
        self.html = html

    async def post_message(self, message: dict[str, Any]) -> bool:
        """Deliver one frame to the sandbox. False once the surface is disposed."""
        if self.disposed:
            return False
        await self._deliver(message)
        return True

    async def _deliver(self, message: dict[str, Any]) -> None:
        raise NotImplementedError

    def receive(self, message: Any) -> None:
        """Hand an inbound frame to message listeners."""
        if not self.disposed:
            self._on_message.fire(message)

    def set_visible(self, visible: bool) -> None:
        if visible != self.visible:
            self.visible = visible
            self._on_view_state.fire(visible)

    def dispose(self) -> None:
        """Close the surface and notify dispose listeners once."""
        if self.disposed:
            return
        self.disposed = True
        self._on_dispose.fire(None)
        self._on_message.clear()
        self._on_dispose.clear()
        self._on_view_state.clear()


class WebSocketSurface(RenderingSurface):
    """A sandbox page connected over a WebSocket. Frames are JSON text."""

    def __init__(self, websocket: WebSocket, view_type: str = "", title: str = ""):
        super().__init__(view_type, title)
        self._websocket = websocket
        self._closing: asyncio.Task | None = None

    async def _deliver(self, message: dict[str, Any]) -> None:
        await self._websocket.send_text(json.dumps(message))

    async def run(self) -> None:
        """Pump inbound frames until the socket closes, then dispose."""
        try:
            while not self.disposed:
                text = await self._websocket.receive_text()
                try:
                    frame = json.loads(text)
                except json.JSONDecodeError:
                    logger.warning("surface: dropping non-JSON frame (%d bytes)", len(text))
                    continue
                self.receive(frame)
        except WebSocketDisconnect:
            logger.info("surface: websocket disconnected")
        finally:
            self.dispose()

    def dispose(self) -> None:
        if self.disposed:
            return
        super().dispose()
        if self._websocket.client_state == WebSocketState.CONNECTED:
            self._closing = asyncio.get_running_loop().create_task(self._close())

    async def _close(self) -> None:
        try:
            await self._websocket.close()
        except RuntimeError as e:
            logger.debug("surface: close after disconnect: %s", e)


class LocalSurface(RenderingSurface):
    """
    Runs a SandboxPeer in-process.

    Like a real page, the sandbox starts when HTML is assigned and says
    "loaded" on a later loop iteration. Each delivered frame is handled
    in its own task, so replies may come back in any order.
    """

    def __init__(
        self,
        peer_factory: Callable[..., SandboxPeer] = SandboxPeer,
        view_type: str = "",
        title: str = "",
        **peer_options: Any,
    ):
        super().__init__(view_type, title)
        self.peer = peer_factory(self._from_sandbox, **peer_options)
        self._tasks: set[asyncio.Task] = set()

    def set_html(self, html: str) -> None:
        super().set_html(html)
        self._spawn(self.peer.start())

    async def _deliver(self, message: dict[str, Any]) -> None:
        self._spawn(self.peer.handle(dict(message)))

    async def _from_sandbox(self, message: dict[str, Any]) -> None:
        self.receive(message)

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("local surface: sandbox task failed", exc_info=task.exception())

    def dispose(self) -> None:
        if self.disposed:
            return
        super().dispose()
        for task in self._tasks:
            task.cancel()
        self.peer.dispose()
