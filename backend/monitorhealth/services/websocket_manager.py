"""WebSocket connection manager for real-time check events, fanned out per owner."""
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks each owner's WebSocket connections and pushes check and stats events to them."""

    def __init__(self):
        self.connections: Dict[int, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, owner_id: int, websocket: WebSocket):
        """Accept a new WebSocket connection for an owner."""
        await websocket.accept()
        async with self._lock:
            self.connections.setdefault(owner_id, set()).add(websocket)
        logger.info(f"WebSocket connected for user {owner_id}. Total connections: {self.connection_count}")

    async def disconnect(self, owner_id: int, websocket: WebSocket):
        """Remove a disconnected WebSocket."""
        async with self._lock:
            sockets = self.connections.get(owner_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self.connections[owner_id]
        logger.info(f"WebSocket disconnected for user {owner_id}. Total connections: {self.connection_count}")

    async def send_to_owner(self, owner_id: int, message: Dict[str, Any]):
        """Send a message to every connection of one owner, dropping dead sockets."""
        async with self._lock:
            sockets = list(self.connections.get(owner_id, ()))
        if not sockets:
            return

        message_json = json.dumps(message, default=str)

        disconnected = []
        for websocket in sockets:
            try:
                await websocket.send_text(message_json)
            except Exception as e:
                logger.debug(f"Failed to send to WebSocket: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            await self.disconnect(owner_id, websocket)

    async def emit_check_event(self, owner_id: int, outcome, monitor: Optional[Any] = None):
        """Push a completed probe outcome to the monitor's owner."""
        payload = asdict(outcome)
        if monitor is not None:
            payload["monitor_name"] = monitor.name
            payload["monitor_url"] = monitor.url
        await self.send_to_owner(owner_id, {"type": "check", "data": payload})

    async def emit_stats(self, owner_id: int, stats: Dict[str, Any]):
        """Push refreshed aggregate stats to an owner."""
        await self.send_to_owner(owner_id, {"type": "stats", "data": stats})

    def has_connections(self, owner_id: int) -> bool:
        return bool(self.connections.get(owner_id))

    @property
    def connection_count(self) -> int:
        """Return the number of active connections."""
        return sum(len(sockets) for sockets in self.connections.values())
