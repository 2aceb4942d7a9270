"""WebSocket endpoint streaming queue updates.

On connect the client receives a ``snapshot`` message with every item in
the queue, followed by one ``item`` message per store update::

    {"type": "snapshot", "items": [...], "is_processing": true}
    {"type": "item", "item": {...}}

Updates are pushed by a listener registered with the
:class:`ItemStateStore`; the receive loop only keeps the socket open.
"""

from __future__ import annotations

import contextlib

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from src.models.queue import QueueItem
from src.pipeline.orchestrator import RecipeIngestionPipeline
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


async def websocket_queue(websocket: WebSocket) -> None:
    """Stream queue state to one client until it disconnects."""
    pipeline: RecipeIngestionPipeline = websocket.app.state.pipeline
    store = pipeline.store

    await websocket.accept()
    _logger.info("websocket_connected")

    async def _on_item(item: QueueItem) -> None:
        # The socket may close between the update and the send; the
        # finally block below unregisters us.
        with contextlib.suppress(Exception):
            await websocket.send_json({"type": "item", "item": item.model_dump(mode="json")})

    store.register_listener(_on_item)

    try:
        await websocket.send_json(
            {
                "type": "snapshot",
                "items": [item.model_dump(mode="json") for item in store.list_items()],
                "is_processing": pipeline.is_processing,
            }
        )
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected")

    finally:
        store.unregister_listener(_on_item)
        _logger.debug("websocket_listener_cleaned_up")
