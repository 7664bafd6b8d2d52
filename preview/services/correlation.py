"""
Correlation bridge — request/response on top of a fire-and-forget channel.

Outbound requests carry a callbackID drawn from a sequence owned by the
bridge. The sandbox echoes the id on its reply; dispatch() routes the
reply to the waiting caller no matter how replies interleave. Frames
without a live id are handled by command: one handler per command, and
the handler table must cover every command.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from preview.models.message import COMMANDS, Command, MalformedMessage, Message

logger = logging.getLogger(__name__)

PostMessage = Callable[[dict[str, Any]], Awaitable[bool]]
Handler = Callable[[Any], None]

_DEFAULT = object()


class BridgeError(Exception):
    """Base error for bridge requests."""

    pass


class BridgeClosed(BridgeError):
    """The bridge (or its surface) is closed; the request will never be answered."""

    pass


class BridgeTimeout(BridgeError):
    """No reply arrived before the request's deadline."""

    pass


def ignore(content: Any) -> None:
    """Handler for commands the host does not act on when they arrive unsolicited."""
    return None


class CorrelationBridge:
    """
    Owns the pending request table for one surface.

    Usage:
        bridge = CorrelationBridge(surface.post_message, handlers)
        surface.on_did_receive_message(bridge.dispatch)
        errors = await bridge.send("evaluate", cells)
    """

    def __init__(
        self,
        post_message: PostMessage,
        handlers: dict[str, Handler],
        default_timeout: float | None = None,
    ) -> None:
        missing = COMMANDS - handlers.keys()
        unknown = handlers.keys() - COMMANDS
        if missing or unknown:
            raise ValueError(f"handler table mismatch: missing={sorted(missing)} unknown={sorted(unknown)}")

        self._post_message = post_message
        self._handlers = dict(handlers)
        self._default_timeout = default_timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def send(self, command: Command, content: Any = None, *, timeout: Any = _DEFAULT) -> Any:
        """
        Send a correlated request and wait for its reply's content.

        Raises BridgeTimeout after `timeout` seconds (default from the
        constructor, None waits forever) and BridgeClosed if the bridge is
        or becomes closed before the reply arrives.
        """
        if self._closed:
            raise BridgeClosed(f"cannot send {command}: bridge is closed")
        if timeout is _DEFAULT:
            timeout = self._default_timeout

        callback_id = next(self._ids)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[callback_id] = future

        try:
            delivered = await self._post_message(Message(command, content, callback_id).to_dict())
            if delivered is False:
                raise BridgeClosed(f"cannot send {command}: surface is closed")
            logger.debug("bridge: sent %s #%d", command, callback_id)
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout)
        except TimeoutError:
            raise BridgeTimeout(f"no reply to {command} #{callback_id} within {timeout}s") from None
        finally:
            self._pending.pop(callback_id, None)

    async def post(self, command: Command, content: Any = None) -> bool:
        """Fire-and-forget: one write, no callback id, no reply expected."""
        if self._closed:
            raise BridgeClosed(f"cannot post {command}: bridge is closed")
        return await self._post_message(Message(command, content).to_dict())

    def dispatch(self, raw: Any) -> None:
        """
        Route one inbound frame.

        A live callbackID wins over the command tag. Anything else goes to
        the command's handler. Never raises on bad input.
        """
        try:
            message = Message.from_dict(raw)
        except MalformedMessage as e:
            logger.warning("bridge: dropping frame: %s", e)
            return

        if message.callback_id is not None:
            future = self._pending.pop(message.callback_id, None)
            if future is not None:
                if not future.done():
                    future.set_result(message.content)
                return
            logger.warning(
                "bridge: reply #%d has no pending request, handling as %r",
                message.callback_id,
                message.command,
            )

        handler = self._handlers.get(message.command) if message.command else None
        if handler is None:
            logger.debug("bridge: ignoring unknown command %r", message.command)
            return
        handler(message.content)

    def close(self, reason: str = "bridge closed") -> None:
        """Reject every pending request with BridgeClosed. Idempotent."""
        if self._closed:
            return
        self._closed = True
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(BridgeClosed(reason))
        if pending:
            logger.info("bridge: closed with %d pending requests", len(pending))
