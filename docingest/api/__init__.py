"""WebSocket push channel for ingestion progress."""

from docingest.api.jobs import IngestionJobRunner
from docingest.api.websocket import WebSocketProgressHub, handle_command, websocket_ingestion

__all__ = ["IngestionJobRunner", "WebSocketProgressHub", "handle_command", "websocket_ingestion"]
