"""
ws_routes.py — /ws live update channel
The client authenticates with the same session token as the REST API
(cookie, ?sessionId= / ?token= or Bearer header). Unauthenticated sockets
are closed with 1008 (policy violation).

Database work happens once, in a short session closed before the socket is
accepted, so idle sockets never hold a pooled connection.
"""

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from habitflow.auth import extract_session_token
from habitflow.database import get_session_factory
from habitflow.services.habit_service import HabitService
from habitflow.services.session_service import SessionStore
from habitflow.services.stats_service import StatsService
from habitflow.services.user_service import UserService
from habitflow.services.websocket_manager import make_event, ws_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


def load_welcome(session_factory, token: str) -> tuple[int, dict] | None:
    """Resolve the session token and build the welcome snapshot. None if the session is invalid."""
    db = session_factory()
    try:
        session = SessionStore.get(db, token)
        user = UserService.get(db, session.user_id) if session else None
        if user is None:
            return None
        return user.id, make_event("connected", {
            "user": user.to_dict(),
            "stats": StatsService.cached(db, user.id),
            "active_habits": len(HabitService.list_active(db, user.id)),
        })
    finally:
        db.close()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, session_factory=Depends(get_session_factory)):
    token = extract_session_token(websocket.headers, websocket.cookies, websocket.query_params)
    if not token:
        logger.warning("WebSocket rejected: no session token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication required")
        return

    loaded = load_welcome(session_factory, token)
    if loaded is None:
        logger.warning("WebSocket rejected: invalid or expired session")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid session")
        return

    user_id, welcome = loaded
    await websocket.accept()
    ws_manager.connect(user_id, websocket)
    try:
        await websocket.send_json(welcome)
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed WebSocket message from user %s", user_id)
                continue
            if not isinstance(message, dict):
                continue

            kind = message.get("type")
            if kind == "ping":
                await websocket.send_json(make_event("pong"))
            elif kind == "subscribe":
                logger.info("User %s subscribed to %s", user_id, message.get("channels"))
            else:
                logger.debug("Unhandled WebSocket message type %r from user %s", kind, user_id)
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(user_id, websocket)
