"""
Presence registry

In-process map of user id -> live connections. A user is online while at
least one of their connections is registered.
"""

import asyncio
from typing import Dict, List

from app.core.logging import get_logger
from app.realtime.connection import Connection

logger = get_logger(__name__)


class PresenceRegistry:
    """
    Connection registry with race condition protection.
    Handles multiple concurrent connections per user.
    """

    def __init__(self):
        # user_id (str) -> List[Connection]
        self.active_connections: Dict[str, List[Connection]] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection: Connection) -> None:
        async with self._lock:
            self.active_connections.setdefault(connection.user_id, []).append(connection)
            total = len(self.active_connections[connection.user_id])
        logger.info(f"User {connection.user_id} connected. Total connections: {total}")

    async def deregister(self, connection: Connection) -> bool:
        """
        Remove one connection.
        Returns True when this was the user's last connection; a connection
        that was never registered leaves the registry untouched.
        """
        async with self._lock:
            connections = self.active_connections.get(connection.user_id)
            if not connections or connection not in connections:
                return False
            connections.remove(connection)
            # Clean up empty lists
            if not connections:
                del self.active_connections[connection.user_id]
                return True
            return False

    def get(self, user_id: str) -> List[Connection]:
        # Shallow copy to iterate safely
        return list(self.active_connections.get(user_id, []))

    def is_online(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    def online_user_ids(self) -> List[str]:
        return list(self.active_connections.keys())

    def all_connections(self) -> List[Connection]:
        return [c for conns in list(self.active_connections.values()) for c in conns]

    def count(self) -> int:
        return len(self.active_connections)

    async def clear(self) -> None:
        async with self._lock:
            self.active_connections.clear()
