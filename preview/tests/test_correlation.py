"""Tests for CorrelationBridge — id allocation, reply routing, timeouts, close."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from preview.services.correlation import BridgeClosed, BridgeTimeout, CorrelationBridge, ignore


class Channel:
    """Records outbound frames; `open` controls what post_message reports."""

    def __init__(self) -> None:
        self.frames: list[dict] = []
        self.open = True

    async def post_message(self, message: dict) -> bool:
        if not self.open:
            return False
        self.frames.append(message)
        return True


def make_handlers(**overrides):
    handlers = {command: ignore for command in ("loaded", "errors", "alert", "evaluate", "pull", "echo")}
    handlers.update(overrides)
    return handlers


@pytest.fixture
def channel():
    return Channel()


@pytest.fixture
def handlers():
    return make_handlers(loaded=MagicMock(), errors=MagicMock(), alert=MagicMock())


@pytest.fixture
def bridge(channel, handlers):
    return CorrelationBridge(channel.post_message, handlers)


async def settle():
    for _ in range(3):
        await asyncio.sleep(0)


class TestHandlerTable:
    def test_missing_command_rejected(self, channel):
        handlers = make_handlers()
        del handlers["alert"]
        with pytest.raises(ValueError, match="alert"):
            CorrelationBridge(channel.post_message, handlers)

    def test_unknown_command_rejected(self, channel):
        with pytest.raises(ValueError, match="refresh"):
            CorrelationBridge(channel.post_message, make_handlers(refresh=ignore))


class TestSend:
    async def test_single_request_resolves_with_reply_content(self, bridge, channel):
        task = asyncio.create_task(bridge.send("evaluate", "1+1"))
        await settle()

        assert channel.frames == [{"command": "evaluate", "content": "1+1", "callbackID": 1}]
        bridge.dispatch({"command": "evaluate", "content": 2, "callbackID": 1})

        assert await task == 2
        assert bridge.pending_count == 0

    async def test_exactly_one_write_per_send(self, bridge, channel):
        task = asyncio.create_task(bridge.send("pull", "https://example.com/data.csv"))
        await settle()
        bridge.dispatch({"command": "pull", "content": "a,b", "callbackID": 1})
        await task

        assert len(channel.frames) == 1

    async def test_ids_are_unique_and_increasing(self, bridge, channel):
        tasks = [asyncio.create_task(bridge.send("evaluate", i)) for i in range(3)]
        await settle()

        ids = [frame["callbackID"] for frame in channel.frames]
        assert ids == [1, 2, 3]

        for callback_id in ids:
            bridge.dispatch({"command": "evaluate", "content": callback_id, "callbackID": callback_id})
        await asyncio.gather(*tasks)

    async def test_out_of_order_replies_route_by_id(self, bridge, channel):
        first = asyncio.create_task(bridge.send("evaluate", "first"))
        second = asyncio.create_task(bridge.send("pull", "second"))
        await settle()

        bridge.dispatch({"command": "pull", "content": "B", "callbackID": 2})
        bridge.dispatch({"command": "evaluate", "content": "A", "callbackID": 1})

        assert await first == "A"
        assert await second == "B"

    async def test_reply_with_callback_id_is_not_handled_as_command(self, channel):
        loaded = MagicMock()
        bridge = CorrelationBridge(channel.post_message, make_handlers(loaded=loaded))
        task = asyncio.create_task(bridge.send("evaluate", []))
        await settle()

        # Same tag as a notification, but the id wins
        bridge.dispatch({"command": "loaded", "content": [], "callbackID": 1})

        assert await task == []
        loaded.assert_not_called()

    async def test_timeout_raises_and_discards_entry(self, bridge, channel):
        with pytest.raises(BridgeTimeout):
            await bridge.send("evaluate", [], timeout=0.01)

        assert bridge.pending_count == 0

    async def test_default_timeout_from_constructor(self, channel):
        bridge = CorrelationBridge(channel.post_message, make_handlers(), default_timeout=0.01)
        with pytest.raises(BridgeTimeout):
            await bridge.send("pull", "x")

    async def test_late_reply_after_timeout_goes_to_handler(self, channel):
        evaluate = MagicMock()
        bridge = CorrelationBridge(channel.post_message, make_handlers(evaluate=evaluate))
        with pytest.raises(BridgeTimeout):
            await bridge.send("evaluate", [], timeout=0.01)

        bridge.dispatch({"command": "evaluate", "content": ["late"], "callbackID": 1})

        evaluate.assert_called_once_with(["late"])

    async def test_closed_surface_raises_bridge_closed(self, bridge, channel):
        channel.open = False
        with pytest.raises(BridgeClosed):
            await bridge.send("evaluate", [])
        assert bridge.pending_count == 0


class TestClose:
    async def test_close_rejects_every_pending_request(self, bridge):
        tasks = [asyncio.create_task(bridge.send("evaluate", i)) for i in range(3)]
        await settle()

        bridge.close()

        for task in tasks:
            with pytest.raises(BridgeClosed):
                await task
        assert bridge.pending_count == 0

    async def test_send_after_close_raises(self, bridge, channel):
        bridge.close()
        with pytest.raises(BridgeClosed):
            await bridge.send("evaluate", [])
        assert channel.frames == []

    def test_close_is_idempotent(self, bridge):
        bridge.close()
        bridge.close()
        assert bridge.closed is True


class TestDispatch:
    def test_loaded_notification_calls_handler(self, bridge, handlers):
        bridge.dispatch({"command": "loaded"})
        handlers["loaded"].assert_called_once_with(None)

    def test_errors_notification_appends_once(self, bridge, handlers):
        bridge.dispatch({"command": "errors", "content": [{"message": "boom"}]})
        handlers["errors"].assert_called_once_with([{"message": "boom"}])

    def test_alert_notification(self, bridge, handlers):
        bridge.dispatch({"command": "alert", "content": "careful"})
        handlers["alert"].assert_called_once_with("careful")

    def test_unmatched_callback_id_falls_through_to_command(self, bridge, handlers):
        bridge.dispatch({"command": "errors", "content": ["x"], "callbackID": 99})
        handlers["errors"].assert_called_once_with(["x"])

    @pytest.mark.parametrize("frame", [None, "loaded", 42, ["loaded"], {"content": 1}, {"command": "refresh"}])
    def test_malformed_or_unknown_frames_are_dropped(self, bridge, handlers, frame):
        bridge.dispatch(frame)
        for handler in ("loaded", "errors", "alert"):
            handlers[handler].assert_not_called()


class TestPost:
    async def test_post_has_no_callback_id(self, bridge, channel):
        delivered = await bridge.post("echo", {"ping": 1})

        assert delivered is True
        assert channel.frames == [{"command": "echo", "content": {"ping": 1}}]
        assert bridge.pending_count == 0
