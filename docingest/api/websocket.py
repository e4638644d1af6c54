"""WebSocket push channel for ingestion progress.

:class:`WebSocketProgressHub` is a progress subscriber that fans every
notification out to all connected clients as JSON frames:

    {"type": "progress",  "file_path": "...", "completed": 1, "total": 2}
    {"type": "completed", "file_path": "",    "completed": 2, "total": 2}
    {"type": "message",   "message": "Connected to Ingestion Hub"}

A client whose send fails is dropped from the hub.

Clients may also send commands as JSON text frames:

    {"action": "ingest", "inputs": ["/docs/a.md", "gdrive://abc"], "max_chunk_size": 500}
    {"action": "cancel"}
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from docingest.interfaces.progress_subscriber import IProgressSubscriber
from docingest.models.ingestion import IngestionProgress
from docingest.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

WELCOME_MESSAGE = "Connected to Ingestion Hub"


class WebSocketProgressHub(IProgressSubscriber):
    """Broadcasts progress notifications to every connected websocket."""

    def __init__(self) -> None:
        self._clients: list[WebSocket] = []

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept *websocket*, greet it and start broadcasting to it."""
        await websocket.accept()
        self._clients.append(websocket)
        _logger.info("websocket_connected", clients=len(self._clients))
        await self._send(websocket, {"type": "message", "message": WELCOME_MESSAGE})

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._clients:
            self._clients.remove(websocket)
            _logger.info("websocket_disconnected", clients=len(self._clients))

    # ------------------------------------------------------------------
    # IProgressSubscriber implementation
    # ------------------------------------------------------------------

    async def receive_progress(self, progress: IngestionProgress) -> None:
        await self._broadcast({"type": "progress", **progress.model_dump()})

    async def receive_completed(self, progress: IngestionProgress) -> None:
        await self._broadcast({"type": "completed", **progress.model_dump()})

    async def receive_message(self, message: str) -> None:
        await self._broadcast({"type": "message", "message": message})

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def send_to(self, websocket: WebSocket, payload: dict[str, Any]) -> None:
        """Send *payload* to one client only."""
        await self._send(websocket, payload)

    async def _broadcast(self, payload: dict[str, Any]) -> None:
        for websocket in list(self._clients):
            await self._send(websocket, payload)

    async def _send(self, websocket: WebSocket, payload: dict[str, Any]) -> None:
        # The socket may have closed between the last receive and this send.
        try:
            await websocket.send_json(payload)
        except Exception as exc:
            _logger.debug("websocket_send_failed", error=str(exc))
            self.disconnect(websocket)


async def websocket_ingestion(websocket: WebSocket) -> None:
    """Stream ingestion progress to one client until it disconnects.

    The current cached progress is sent right after the greeting so a
    client that connects mid-batch is immediately up to date.
    """
    hub: WebSocketProgressHub = websocket.app.state.progress_hub
    tracker = websocket.app.state.progress_tracker

    await hub.connect(websocket)
    try:
        progress = await tracker.get_progress()
        await websocket.send_json({"type": "progress", **progress.model_dump()})

        # Blocks until the client goes away.
        while True:
            reply = handle_command(websocket.app.state, await websocket.receive_text())
            await hub.send_to(websocket, reply)
    except WebSocketDisconnect:
        _logger.debug("websocket_client_left")
    finally:
        hub.disconnect(websocket)


def handle_command(state: Any, raw: str) -> dict[str, Any]:
    """Execute one client command and return the reply frame."""
    try:
        command = json.loads(raw)
    except ValueError:
        return {"type": "error", "message": "Commands must be JSON objects"}
    if not isinstance(command, dict):
        return {"type": "error", "message": "Commands must be JSON objects"}

    runner = state.ingestion_runner
    action = command.get("action")
    if action == "ingest":
        inputs = command.get("inputs")
        if not isinstance(inputs, list) or not all(isinstance(i, str) for i in inputs):
            return {"type": "error", "message": "'inputs' must be a list of strings"}
        max_chunk_size = command.get("max_chunk_size", state.settings.max_chunk_size)
        if isinstance(max_chunk_size, bool) or not isinstance(max_chunk_size, int) or max_chunk_size <= 0:
            return {"type": "error", "message": "'max_chunk_size' must be a positive integer"}
        if not runner.start(inputs, max_chunk_size):
            return {"type": "error", "message": "An ingestion is already running"}
        return {"type": "message", "message": f"Ingestion queued: {len(inputs)} input(s)"}

    if action == "cancel":
        if runner.cancel():
            return {"type": "message", "message": "Cancellation requested"}
        return {"type": "error", "message": "No ingestion is running"}

    return {"type": "error", "message": f"Unknown action: {action!r}"}
