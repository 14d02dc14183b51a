"""
Realtime Gateway - WebSocket event handling

Features:
- Bearer authentication before the socket is accepted
- Multiple concurrent connections per user
- Conversation rooms with membership re-checked on every join; removed
  members are evicted as soon as the removal commits
- Presence: online on first connection, offline when the last one closes
- Each client event runs in its own database session
"""

import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel
from pydantic import ValidationError as PayloadError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import AppError, AuthorizationError, NotFoundError
from app.core.logging import get_logger
from app.core.time import to_utc_iso
from app.models.account import User
from app.realtime import events
from app.realtime.connection import Connection
from app.realtime.registry import PresenceRegistry
from app.realtime.rooms import RoomManager, conversation_room, deliver, personal_room
from app.schemas.message import MessageResponse
from app.services.auth_service import AuthService
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService
from app.services.user_service import UserService

logger = get_logger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


class RealtimeGateway:
    def __init__(
        self,
        registry: PresenceRegistry,
        rooms: RoomManager,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.registry = registry
        self.rooms = rooms
        self.session_factory = session_factory
        # event name -> (payload model, handler, action used in generic errors)
        self._routes: Dict[str, Tuple[Type[BaseModel], Handler, str]] = {
            events.JOIN_CONVERSATION: (events.JoinConversation, self.join_conversation, "join conversation"),
            events.LEAVE_CONVERSATION: (events.LeaveConversation, self.leave_conversation, "leave conversation"),
            events.SEND_MESSAGE: (events.SendMessage, self.send_message, "send message"),
            events.TYPING_START: (events.Typing, self.typing_start, "send typing indicator"),
            events.TYPING_STOP: (events.Typing, self.typing_stop, "send typing indicator"),
            events.MARK_MESSAGES_READ: (events.MarkMessagesRead, self.mark_messages_read, "mark messages as read"),
            events.UPDATE_STATUS: (events.UpdateStatus, self.update_status, "update status"),
        }

    async def authenticate(self, token: Optional[str]) -> Optional[User]:
        """Resolve a bearer credential to an active user; admins cannot connect"""
        if not token:
            return None
        async with self.session_factory() as session:
            try:
                account = await AuthService(session).resolve_principal(token)
            except AppError as e:
                logger.warning(f"Socket authentication rejected: {e.message}")
                return None
        if not isinstance(account, User):
            logger.warning(f"Socket authentication rejected for {account.kind} {account.id}")
            return None
        return account

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def serve(self, websocket: WebSocket, user: User) -> None:
        """Run one authenticated socket until the transport closes"""
        connection = Connection(websocket, user.id, user.username)
        try:
            await self.connect(connection)
            while True:
                raw = await websocket.receive_text()
                await self.handle(connection, raw)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error(f"WebSocket error on connection {connection.id}: {e}")
        finally:
            await self.disconnect(connection)

    async def connect(self, connection: Connection) -> None:
        await connection.accept()
        await self.registry.register(connection)
        self.rooms.join(connection, personal_room(connection.user_id))

        try:
            async with self.session_factory() as session:
                await UserService(session).set_online(connection.user_id, connection.id)
        except Exception as e:
            logger.error(f"Failed to persist online state for {connection.user_id}: {e}")

        await connection.send_event(
            events.CONNECTED,
            {
                "userId": connection.user_id,
                "username": connection.username,
                "connectionId": connection.id,
            },
        )
        await self._broadcast_others(
            connection,
            events.USER_ONLINE,
            {"userId": connection.user_id, "username": connection.username},
        )

    async def disconnect(self, connection: Connection) -> None:
        """Cleanup for a closed transport; runs at most once per connection"""
        if not connection.mark_disconnected():
            return
        user_id = connection.user_id
        try:
            self.rooms.leave_all(connection)
            was_last = await self.registry.deregister(connection)
            logger.info(f"User {user_id} disconnected (connection {connection.id})")
            # A reconnect may have raced the deregistration
            if not was_last or self.registry.is_online(user_id):
                await self._persist_connection(user_id)
                return

            async with self.session_factory() as session:
                user = await UserService(session).set_offline(user_id)
                last_seen = to_utc_iso(user.last_seen if user is not None else None)
            if self.registry.is_online(user_id):
                # Reconnected while the offline write was in flight
                await self._persist_connection(user_id)
                return
            await self._broadcast_others(
                connection,
                events.USER_OFFLINE,
                {
                    "userId": connection.user_id,
                    "username": connection.username,
                    "lastSeen": last_seen,
                },
            )
        except Exception as e:
            logger.error(f"Error during disconnect cleanup for {user_id}: {e}")

    async def _persist_connection(self, user_id: str) -> None:
        """Point the stored connection id at the newest live connection"""
        remaining = self.registry.get(user_id)
        if not remaining:
            return
        async with self.session_factory() as session:
            await UserService(session).set_online(user_id, remaining[-1].id)

    async def shutdown(self) -> None:
        """Close every live socket and drop in-memory state"""
        for connection in self.registry.all_connections():
            connection.mark_disconnected()
            try:
                await connection.websocket.close(code=1001)
            except Exception as e:
                logger.debug(f"Close failed for connection {connection.id}: {e}")
        await self.registry.clear()
        self.rooms.clear()

    # ------------------------------------------------------------------
    # Membership changes made over REST
    # ------------------------------------------------------------------

    async def send_to_user(self, user_id: str, event: str, data: dict) -> int:
        """Deliver to every live connection of one user"""
        return await self.rooms.broadcast(personal_room(user_id), event, data)

    async def notify_added(self, user_ids: List[str], conversation_id: str) -> None:
        for user_id in user_ids:
            await self.send_to_user(
                user_id, events.ADDED_TO_CONVERSATION, {"conversationId": conversation_id}
            )

    async def evict(self, user_id: str, conversation_id: str) -> int:
        """
        Take a user who is no longer a participant out of the conversation room.
        Returns the number of connections removed.
        """
        room = conversation_room(conversation_id)
        evicted = [c for c in self.registry.get(user_id) if room in c.rooms]
        for connection in evicted:
            self.rooms.leave(connection, room)

        await self.send_to_user(
            user_id, events.REMOVED_FROM_CONVERSATION, {"conversationId": conversation_id}
        )
        if evicted:
            await self.rooms.broadcast(
                room,
                events.USER_LEFT_CONVERSATION,
                {
                    "userId": user_id,
                    "username": evicted[0].username,
                    "conversationId": conversation_id,
                },
            )
            logger.info(f"Evicted {len(evicted)} connection(s) of {user_id} from {room}")
        return len(evicted)

    def close_conversation(self, conversation_id: str) -> int:
        """Empty the room of a conversation that no longer exists"""
        room = conversation_room(conversation_id)
        members = self.rooms.members(room)
        for connection in members:
            self.rooms.leave(connection, room)
        return len(members)

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    async def handle(self, connection: Connection, raw: str) -> None:
        """Decode one envelope and route it; failures go back to this connection only"""
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError:
            await self._error(connection, "Invalid JSON", "invalid_json")
            return
        if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
            await self._error(connection, "Invalid event envelope", "invalid_request")
            return

        name = envelope["event"]
        route = self._routes.get(name)
        if route is None:
            await self._error(connection, f"Unknown event: {name}", "unknown_event", name)
            return

        model, handler, action = route
        try:
            payload = model.model_validate(envelope.get("data") or {})
        except PayloadError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            message = f"{field}: {first.get('msg')}" if field else first.get("msg")
            await self._error(connection, message, "invalid_payload", name)
            return

        try:
            await handler(connection, payload)
        except AppError as e:
            await self._error(connection, e.message, e.error_code, name)
        except Exception as e:
            logger.error(f"Error handling {name} for user {connection.user_id}: {e}", exc_info=True)
            await self._error(connection, f"Failed to {action}", "internal_error", name)

    async def _error(
        self, connection: Connection, message: str, code: str, event: Optional[str] = None
    ) -> None:
        data = {"message": message, "code": code}
        if event:
            data["event"] = event
        await connection.send_event(events.ERROR, data)

    async def _broadcast_others(self, connection: Connection, event: str, data: dict) -> int:
        targets = [c for c in self.registry.all_connections() if c is not connection]
        return await deliver(targets, event, data)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def join_conversation(self, connection: Connection, payload: events.JoinConversation) -> None:
        async with self.session_factory() as session:
            conversation = await ConversationService(session).get_for_participant(
                payload.conversation_id, connection.user_id, active_only=True
            )
        if conversation is None:
            logger.warning(
                f"User {connection.user_id} refused from conversation {payload.conversation_id}"
            )
            raise AuthorizationError("Not authorized to join this conversation")

        room = conversation_room(conversation.id)
        self.rooms.join(connection, room)
        await self.rooms.broadcast(
            room,
            events.USER_JOINED_CONVERSATION,
            {
                "userId": connection.user_id,
                "username": connection.username,
                "conversationId": conversation.id,
            },
            exclude=connection,
        )

    async def leave_conversation(self, connection: Connection, payload: events.LeaveConversation) -> None:
        room = conversation_room(payload.conversation_id)
        self.rooms.leave(connection, room)
        await self.rooms.broadcast(
            room,
            events.USER_LEFT_CONVERSATION,
            {
                "userId": connection.user_id,
                "username": connection.username,
                "conversationId": payload.conversation_id,
            },
        )

    async def send_message(self, connection: Connection, payload: events.SendMessage) -> None:
        async with self.session_factory() as session:
            conversation = await ConversationService(session).get_for_participant(
                payload.conversation_id, connection.user_id
            )
            if conversation is None:
                raise NotFoundError("Conversation not found")
            participant_ids = conversation.participant_ids

            message = await MessageService(session).send(
                conversation,
                sender_id=connection.user_id,
                content=payload.content,
                kind=payload.kind,
                reply_to_id=payload.reply_to,
            )
            body = MessageResponse.from_message(message).to_wire()

        delivered = await self.rooms.broadcast(
            conversation_room(payload.conversation_id), events.NEW_MESSAGE, {"message": body}
        )

        offline = [pid for pid in participant_ids if not self.registry.is_online(pid)]
        if offline:
            logger.info(
                f"Message {body['id']} stored for offline participants: {', '.join(offline)}"
            )
        logger.debug(f"Message {body['id']} delivered to {delivered} connection(s)")

    async def typing_start(self, connection: Connection, payload: events.Typing) -> None:
        await self._typing(connection, payload, events.USER_TYPING)

    async def typing_stop(self, connection: Connection, payload: events.Typing) -> None:
        await self._typing(connection, payload, events.USER_STOPPED_TYPING)

    async def _typing(self, connection: Connection, payload: events.Typing, event: str) -> None:
        await self.rooms.broadcast(
            conversation_room(payload.conversation_id),
            event,
            {
                "userId": connection.user_id,
                "username": connection.username,
                "conversationId": payload.conversation_id,
            },
            exclude=connection,
        )

    async def mark_messages_read(self, connection: Connection, payload: events.MarkMessagesRead) -> None:
        async with self.session_factory() as session:
            conversation = await ConversationService(session).get_for_participant(
                payload.conversation_id, connection.user_id
            )
            if conversation is None:
                raise NotFoundError("Conversation not found")
            acknowledged = await MessageService(session).mark_many_read(
                conversation.id, connection.user_id, payload.message_ids
            )

        await self.rooms.broadcast(
            conversation_room(payload.conversation_id),
            events.MESSAGES_READ,
            {
                "userId": connection.user_id,
                "conversationId": payload.conversation_id,
                "messageIds": acknowledged,
                "readAt": to_utc_iso(),
            },
            exclude=connection,
        )

    async def update_status(self, connection: Connection, payload: events.UpdateStatus) -> None:
        await self._broadcast_others(
            connection,
            events.USER_STATUS_CHANGED,
            {"userId": connection.user_id, "status": payload.status},
        )
