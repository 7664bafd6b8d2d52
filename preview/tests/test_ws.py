"""
Integration tests for the sandbox WebSocket endpoint.

Tests /ws/preview/{target_id} — the test plays the sandbox page.
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(app):
    """TestClient sharing one event loop across HTTP and WS calls."""
    with TestClient(app) as client:
        yield client


def answer(ws, response_future, content):
    """Read the next request frame from the socket and reply to it."""
    frame = json.loads(ws.receive_text())
    ws.send_text(json.dumps({"command": frame["command"], "content": content, "callbackID": frame["callbackID"]}))
    return frame, response_future.result(timeout=5)


class TestSandboxSocket:
    def test_connect_registers_panel(self, client, registry):
        with client.websocket_connect("/ws/preview/nb"):
            assert registry.get("nb") is not None

    def test_evaluate_round_trip(self, client):
        with client.websocket_connect("/ws/preview/nb") as ws:
            ws.send_text(json.dumps({"command": "loaded"}))

            with ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(
                    client.post,
                    "/api/preview/nb/evaluate",
                    json={"cells": [{"source": "x = 1 +", "line": 4}]},
                )
                frame, res = answer(ws, future, [{"message": "invalid syntax", "line": 4}])

            assert frame["command"] == "evaluate"
            assert frame["content"] == [{"source": "x = 1 +", "line": 4}]
            assert isinstance(frame["callbackID"], int)
            assert res.status_code == 200
            assert res.json() == {"errors": [{"message": "invalid syntax", "line": 4}]}

            # "loaded" was read before the reply on the same socket
            assert client.get("/api/preview/nb").json()["state"] == "ready"

    def test_malformed_frames_are_dropped(self, client):
        with client.websocket_connect("/ws/preview/nb") as ws:
            ws.send_text("not json")
            ws.send_text(json.dumps(["loaded"]))
            ws.send_text(json.dumps({"command": "loaded"}))

            with ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(client.post, "/api/preview/nb/pull", json={"url": "https://example.com/a"})
                _, res = answer(ws, future, "body")

            assert res.json() == {"content": "body"}

    def test_echo_reaches_sandbox(self, client):
        with client.websocket_connect("/ws/preview/nb") as ws:
            res = client.post("/api/preview/nb/echo", json={"content": "ping"})

            assert res.status_code == 202
            assert json.loads(ws.receive_text()) == {"command": "echo", "content": "ping"}

    def test_reconnect_replaces_panel(self, client, registry):
        with client.websocket_connect("/ws/preview/nb"):
            first = registry.get("nb")
            with client.websocket_connect("/ws/preview/nb"):
                second = registry.get("nb")
                assert second is not first
                assert first.state == "disposed"
