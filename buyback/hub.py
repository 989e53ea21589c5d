"""
Broadcast Hub - WebSocket subscriber registry and fan-out.

Delivery is best effort and at most once: nothing is queued for slow
clients and nothing is replayed to clients that connect later.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Set

from fastapi.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize(message: Dict[str, Any]) -> str:
    """Render a hub message as JSON text."""
    return json.dumps(message, default=_json_default)


class BroadcastHub:
    """Manages WebSocket connections and pushes messages to all of them."""

    def __init__(
        self,
        snapshot: Callable[[], Dict[str, Any]],
        config_message: Callable[[], Dict[str, Any]],
    ):
        self._connections: Set[WebSocket] = set()
        self._snapshot = snapshot
        self._config_message = config_message

    @property
    def client_count(self) -> int:
        return len(self._connections)

    def __contains__(self, websocket: object) -> bool:
        return websocket in self._connections

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new connection and send it current state."""
        await websocket.accept()
        self._connections.add(websocket)
        logger.info(f"Client connected. Total: {len(self._connections)}")

        # State first, metadata second
        await websocket.send_text(serialize(self._snapshot()))
        await websocket.send_text(serialize(self._config_message()))

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a connection. Safe to call more than once."""
        if websocket in self._connections:
            self._connections.discard(websocket)
            logger.info(f"Client disconnected. Total: {len(self._connections)}")

    async def publish(self, message: Dict[str, Any]) -> int:
        """
        Send a message to every open connection.

        Returns:
            Number of clients the message was handed to.
        """
        if not self._connections:
            return 0

        raw = serialize(message)
        sent = 0
        disconnected = []
        for websocket in list(self._connections):
            if websocket.client_state != WebSocketState.CONNECTED:
                continue
            try:
                await websocket.send_text(raw)
                sent += 1
            except Exception as e:
                logger.debug(f"Dropping client after send failure: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket)
        return sent
