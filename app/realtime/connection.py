"""
Socket connection wrapper

One Connection per accepted WebSocket. Tracks the authenticated identity,
the lifecycle state and the rooms the socket has joined.
"""

import uuid
from typing import Any, Optional, Set

from fastapi import WebSocket

from app.core.logging import get_logger

logger = get_logger(__name__)

STATE_CONNECTING = "connecting"
STATE_CONNECTED = "connected"
STATE_DISCONNECTED = "disconnected"


class Connection:
    def __init__(self, websocket: WebSocket, user_id: str, username: str):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.username = username
        self.state = STATE_CONNECTING
        self.rooms: Set[str] = set()

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user_id} state={self.state}>"

    @property
    def is_connected(self) -> bool:
        return self.state == STATE_CONNECTED

    async def accept(self) -> None:
        await self.websocket.accept()
        self.state = STATE_CONNECTED

    def mark_disconnected(self) -> bool:
        """Flip to disconnected; False if it already was"""
        if self.state == STATE_DISCONNECTED:
            return False
        self.state = STATE_DISCONNECTED
        return True

    async def send_event(self, event: str, data: Optional[dict[str, Any]] = None) -> bool:
        """Send message with error handling"""
        if self.state == STATE_DISCONNECTED:
            return False
        try:
            await self.websocket.send_json({"event": event, "data": data or {}})
            return True
        except Exception as e:
            logger.error(f"Error sending {event} to connection {self.id}: {e}")
            return False
