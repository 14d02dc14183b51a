"""
Named broadcast rooms

Every connection joins its personal room on connect, used for delivery
to one user, and a conversation room per subscribed conversation.
"""

import asyncio
from typing import Any, Dict, Iterable, Optional, Set

from app.core.logging import get_logger
from app.realtime.connection import Connection

logger = get_logger(__name__)


def personal_room(user_id: str) -> str:
    return f"user:{user_id}"


def conversation_room(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


async def deliver(connections: Iterable[Connection], event: str, data: dict[str, Any]) -> int:
    """Send to all connections concurrently; returns how many sends succeeded"""
    send_tasks = [connection.send_event(event, data) for connection in connections]
    if not send_tasks:
        return 0
    results = await asyncio.gather(*send_tasks, return_exceptions=True)
    return sum(1 for result in results if result is True)


class RoomManager:
    def __init__(self):
        # room name -> connections
        self.rooms: Dict[str, Set[Connection]] = {}

    def join(self, connection: Connection, room: str) -> None:
        self.rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)

    def leave(self, connection: Connection, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self.rooms[room]
        connection.rooms.discard(room)

    def leave_all(self, connection: Connection) -> None:
        for room in list(connection.rooms):
            self.leave(connection, room)

    def members(self, room: str) -> Set[Connection]:
        return set(self.rooms.get(room, ()))

    async def broadcast(
        self,
        room: str,
        event: str,
        data: dict[str, Any],
        exclude: Optional[Connection] = None,
    ) -> int:
        targets = [c for c in self.members(room) if c is not exclude]
        return await deliver(targets, event, data)

    def clear(self) -> None:
        self.rooms.clear()
