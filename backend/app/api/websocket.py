"""WebSocket endpoint for real-time vault events."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect

from app.models import VaultEvent

logger = logging.getLogger(__name__)


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def _message(msg_type: str, data: dict) -> str:
    return _orjson_dumps({
        "type": msg_type,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


class ConnectionManager:
    """Manage WebSocket connections and per-connection vault subscriptions.

    A connection with no subscriptions receives events for every vault.
    """

    def __init__(self):
        self._connections: dict[WebSocket, set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections[websocket] = set()
        logger.info(f"WebSocket connected. Total connections: {len(self._connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a disconnected WebSocket."""
        async with self._lock:
            self._connections.pop(websocket, None)
        logger.info(f"WebSocket disconnected. Total connections: {len(self._connections)}")

    async def subscribe(self, websocket: WebSocket, vault_keys: list[str]) -> None:
        async with self._lock:
            if websocket in self._connections:
                self._connections[websocket] = set(vault_keys)

    async def send_event(self, event: VaultEvent) -> None:
        """Broadcast a vault event to every interested client."""
        if not self._connections:
            return

        message_text = _orjson_dumps({
            "type": event.type.value,
            "vault_key": event.vault_key,
            "data": event.data,
            "timestamp": event.timestamp.isoformat(),
        })
        disconnected = []

        async with self._lock:
            for websocket, vault_keys in self._connections.items():
                if vault_keys and event.vault_key not in vault_keys:
                    continue
                try:
                    await websocket.send_text(message_text)
                except Exception as e:
                    logger.warning(f"Failed to send message: {e}")
                    disconnected.append(websocket)

            # Remove disconnected websockets
            for ws in disconnected:
                self._connections.pop(ws, None)

    @property
    def connection_count(self) -> int:
        """Get number of active connections."""
        return len(self._connections)


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time vault events.

    Messages sent to clients use the VaultEventType values as "type"
    (initialized, deposited, price_recorded, rebalance_staged, rebalanced,
    fees_harvested, withdrawn):
    {
        "type": "rebalanced",
        "vault_key": "...",
        "data": {...},
        "timestamp": "2024-01-01T00:00:00+00:00"
    }

    Clients may send {"type": "subscribe", "data": {"vaults": [...]}} to
    restrict events to some vaults, and {"type": "ping"}.
    """
    await manager.connect(websocket)

    try:
        await websocket.send_text(_message("connected", {"message": "Connected to DLMM Vault"}))

        # Keep connection alive and handle incoming messages
        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=60.0,
                )

                try:
                    message = orjson.loads(data)
                    await handle_client_message(websocket, message)
                except orjson.JSONDecodeError:
                    await websocket.send_text(_message("error", {"message": "Invalid JSON"}))

            except asyncio.TimeoutError:
                # Send ping to keep connection alive
                await websocket.send_text(_message("ping", {}))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: dict) -> None:
    """Handle incoming message from client."""
    msg_type = message.get("type", "")

    if msg_type == "ping":
        await websocket.send_text(_message("pong", {}))
    elif msg_type == "subscribe":
        vaults = message.get("data", {}).get("vaults", [])
        await manager.subscribe(websocket, vaults)
        await websocket.send_text(_message("subscribed", {"vaults": vaults}))
    else:
        await websocket.send_text(
            _message("error", {"message": f"Unknown message type: {msg_type}"})
        )
