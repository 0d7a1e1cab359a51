"""Tests for websocket streaming and connection lifecycle."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI, WebSocketDisconnect
from fastapi.testclient import TestClient

from server.broadcaster import _enqueue_message, subscriber_count
from server.main import _send_messages_until_disconnect
from tests.fakes import GGA, ControlledReader


def test_status_message_on_connect(app: FastAPI) -> None:
    with TestClient(app) as client, client.websocket_connect("/ws") as websocket:
        data = websocket.receive_json()
        assert data["type"] == "status"
        assert data["device_id"] == "rover-1"


def test_snapshot_streamed_after_screening(app: FastAPI, reader: ControlledReader) -> None:
    with TestClient(app) as client, client.websocket_connect("/ws") as websocket:
        assert websocket.receive_json()["type"] == "status"
        reader.lines.put(GGA)
        data = websocket.receive_json()
        assert data["type"] == "snapshot"
        assert data["latitude"] == pytest.approx(48.1173, abs=1e-4)
        assert data["satellites"] == 8
        assert data["device_id"] == "rover-1"


def test_multiple_clients(app: FastAPI, reader: ControlledReader) -> None:
    with (
        TestClient(app) as client,
        client.websocket_connect("/ws") as socket_one,
        client.websocket_connect("/ws") as socket_two,
    ):
        socket_one.receive_json()
        socket_two.receive_json()
        reader.lines.put(GGA)
        assert socket_one.receive_json()["type"] == "snapshot"
        assert socket_two.receive_json()["type"] == "snapshot"


def test_drop_oldest_overflow() -> None:
    message_queue: asyncio.Queue[str] = asyncio.Queue(maxsize=2)
    _enqueue_message(message_queue, "message_one")
    _enqueue_message(message_queue, "message_two")
    _enqueue_message(message_queue, "message_three")
    assert message_queue.qsize() == 2
    assert message_queue.get_nowait() == "message_two"
    assert message_queue.get_nowait() == "message_three"


def test_timeout_disconnect(app: FastAPI, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("server.main._TIMEOUT_SECONDS", 0.05)
    with (
        TestClient(app) as client,
        pytest.raises(WebSocketDisconnect) as exc_info,
        client.websocket_connect("/ws") as websocket,
    ):
        websocket.receive_json()
        websocket.receive_json()
    assert exc_info.value.code == 1001


def test_subscriber_removed_after_disconnect(app: FastAPI) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
        for _ in range(50):
            if subscriber_count() == 0:
                break
            time.sleep(0.01)
        assert subscriber_count() == 0


def test_client_disconnect_silent() -> None:
    class MockWebSocket:
        async def send_text(self, _text: str) -> None:
            raise WebSocketDisconnect(code=1000)

    async def _run() -> None:
        message_queue = MagicMock(spec=asyncio.Queue)
        message_queue.get = AsyncMock(return_value="message")
        websocket = MockWebSocket()
        await _send_messages_until_disconnect(message_queue, websocket)  # type: ignore[arg-type]

    asyncio.run(_run())
