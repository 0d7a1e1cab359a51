"""FastAPI status server for the GPS capture service.

Start with::

    python main.py                 # or
    uvicorn server.main:app --host 0.0.0.0 --port 8000

The application lifespan owns the :class:`CaptureService`: capture and
dispatch start with the server and are drained when it shuts down.

``GET /status`` returns capture, screening and per-sink counters.
WebSocket clients connect to ``ws://<host>:8000/ws``; they first receive one
``type="status"`` message and then one ``type="snapshot"`` message for every
snapshot that passes screening.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect

from gpscapture.config import Settings, get_settings
from gpscapture.position import Snapshot
from gpscapture.service import CaptureService
from server.broadcaster import add_subscriber, broadcast_message, remove_subscriber
from server.formatters import format_snapshot_message, format_status_message

__all__ = ["app", "create_app"]

logger = logging.getLogger(__name__)

_QUEUE_MAX_SIZE = 10
_TIMEOUT_SECONDS = 5.0


def _broadcast_snapshot(snapshot: Snapshot) -> None:
    broadcast_message(format_snapshot_message(snapshot))


async def _watch_service(service: CaptureService, on_fatal: Callable[[], None] | None) -> None:
    await service.wait_stopped()
    if service.fatal_error is not None and on_fatal is not None:
        on_fatal()


def create_app(
    settings: Settings | None = None,
    *,
    service_factory: Callable[[Settings], CaptureService] = CaptureService,
    on_fatal: Callable[[], None] | None = None,
) -> FastAPI:
    """Build the status application.

    Args:
        settings: Service settings; loaded from the environment at startup
            when omitted.
        service_factory: Builds the capture service from settings.
        on_fatal: Called once if capture ends with an unrecoverable error,
            typically to ask the ASGI server to exit.
    """

    @asynccontextmanager
    async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
        service = service_factory(settings or get_settings())
        service.add_listener(_broadcast_snapshot)
        await service.start()
        application.state.service = service
        watcher = asyncio.get_running_loop().create_task(_watch_service(service, on_fatal))
        try:
            yield
        finally:
            watcher.cancel()
            await service.stop()

    application = FastAPI(title="GPS capture", lifespan=_lifespan)

    @application.get("/status")
    async def status(request: Request) -> dict[str, Any]:
        """Capture state, screening counters and per-sink dispatch statistics."""
        return request.app.state.service.status()

    @application.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Stream status and snapshot JSON messages to a connected client.

        Each client gets its own bounded queue (max ``_QUEUE_MAX_SIZE``
        messages) and the oldest message is dropped when it is full. The
        connection closes with code 1001 if no snapshot arrives within
        ``_TIMEOUT_SECONDS``; the client should reconnect.

        Args:
            websocket: The incoming WebSocket connection.
        """
        await websocket.accept()
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=_QUEUE_MAX_SIZE)
        add_subscriber(queue)
        try:
            await websocket.send_text(format_status_message(websocket.app.state.service.status()))
            await _send_messages_until_disconnect(queue, websocket)
        except WebSocketDisconnect:
            pass
        finally:
            remove_subscriber(queue)

    return application


async def _send_messages_until_disconnect(
    queue: asyncio.Queue[str],
    websocket: WebSocket,
) -> None:
    try:
        while True:
            message = await asyncio.wait_for(queue.get(), timeout=_TIMEOUT_SECONDS)
            await websocket.send_text(message)
    except TimeoutError:
        await websocket.close(code=1001)
    except WebSocketDisconnect:
        pass


app = create_app()
