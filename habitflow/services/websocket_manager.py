"""
websocket_manager.py — Live update fan-out
Keeps every open socket per user and pushes typed events to them.
Delivery is best-effort: a send that fails or stalls drops that connection.
"""

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

from habitflow.config import WS_SEND_TIMEOUT
from habitflow.timeutils import utcnow

logger = logging.getLogger(__name__)

EVENT_TYPES = ("connected", "habit_completed", "stats_update", "progress_update", "ai_nudge", "pong")


def make_event(type: str, data=None) -> dict:
    return {"type": type, "data": data, "timestamp": utcnow().isoformat()}


class ConnectionManager:
    def __init__(self, send_timeout: float = WS_SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self._connections: dict[int, set[WebSocket]] = defaultdict(set)

    def connect(self, user_id: int, websocket: WebSocket):
        """Register an already-accepted socket."""
        self._connections[user_id].add(websocket)
        logger.info("WebSocket connected for user %s (%d open)", user_id, len(self._connections[user_id]))

    def disconnect(self, user_id: int, websocket: WebSocket):
        conns = self._connections.get(user_id)
        if not conns:
            return
        conns.discard(websocket)
        if not conns:
            del self._connections[user_id]
        logger.info("WebSocket disconnected for user %s", user_id)

    def connection_count(self, user_id: int | None = None) -> int:
        if user_id is not None:
            return len(self._connections.get(user_id, ()))
        return sum(len(c) for c in self._connections.values())

    async def send(self, websocket: WebSocket, event: dict) -> bool:
        try:
            await asyncio.wait_for(websocket.send_json(event), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("WebSocket send timed out after %ss", self.send_timeout)
        except Exception as e:
            logger.warning("WebSocket send failed: %s", e)
        return False

    async def broadcast_to_user(self, user_id: int, type: str, data=None) -> int:
        """Send one event to every socket of a user. Returns the number of successful sends."""
        event = make_event(type, data)
        delivered = 0
        for ws in list(self._connections.get(user_id, ())):
            if await self.send(ws, event):
                delivered += 1
            else:
                self.disconnect(user_id, ws)
        return delivered


# Process-wide manager shared by routes and background jobs
ws_manager = ConnectionManager()
