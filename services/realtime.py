"""
Real-time fanout over WebSocket connections.

Connections join named rooms: ``user:<id>`` for a member's own notifications
and ``booking:<id>`` for a booking's conversation. Frames are JSON objects of
the form ``{"event": ..., "data": ...}``. Nothing here is persisted except
chat messages, which go through the messaging service.
"""

import json
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple
import logging

from core.database import Database
from core.errors import AppError
from core.security import TokenPayload
from repositories.booking import BookingRepository
from services.messaging_service import Delivery, MessagingService, is_party

logger = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def booking_room(booking_id: int) -> str:
    return f"booking:{booking_id}"


class Client:
    """One authenticated socket."""

    def __init__(self, websocket, user: TokenPayload):
        self.websocket = websocket
        self.user = user
        self.rooms: Set[str] = set()

    async def send(self, event: str, data: Any = None) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self):
        return f"<Client(user_id={self.user.user_id})>"


class ConnectionHub:
    """Room membership for live connections of this process."""

    def __init__(self):
        self.rooms: Dict[str, Set[Client]] = defaultdict(set)

    def join(self, client: Client, room: str) -> None:
        self.rooms[room].add(client)
        client.rooms.add(room)

    def leave(self, client: Client, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(client)
            if not members:
                del self.rooms[room]
        client.rooms.discard(room)

    def disconnect(self, client: Client) -> None:
        for room in list(client.rooms):
            self.leave(client, room)

    def members(self, room: str) -> Set[Client]:
        return set(self.rooms.get(room, ()))

    async def emit(self, room: str, event: str, data: Any = None, exclude: Optional[Client] = None) -> int:
        """Send to every member of ``room``. A failing connection is logged and skipped."""
        delivered = 0
        for client in list(self.rooms.get(room, ())):
            if client is exclude:
                continue
            try:
                await client.send(event, data)
                delivered += 1
            except Exception:
                logger.exception(f"Failed to deliver {event} to {client!r} in {room}")
        return delivered

    async def publish_message(self, delivery: Delivery) -> None:
        message = delivery.message
        await self.emit(booking_room(message.booking_id), "message:new", message.model_dump(mode="json"))
        await self.emit(
            user_room(delivery.recipient_user_id),
            "notification:badge",
            {"bookingId": message.booking_id},
        )


def parse_frame(raw: str) -> Optional[Tuple[str, Any]]:
    """Decode a client frame into (event, data); None if malformed."""
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")


def booking_id_from(data: Any) -> Optional[int]:
    """Accept a bare id or ``{"bookingId": id}``."""
    if isinstance(data, dict):
        data = data.get("bookingId")
    if isinstance(data, bool):
        return None
    if isinstance(data, int):
        return data
    if isinstance(data, str) and data.strip().isdigit():
        return int(data.strip())
    return None


Handler = Callable[[Client, Any], Awaitable[None]]


class RealtimeGateway:
    """Dispatches client events. Unknown events and bad payloads are dropped."""

    def __init__(self, hub: ConnectionHub, database: Database):
        self.hub = hub
        self.database = database
        self._handlers: Dict[str, Handler] = {
            "booking:join": self.on_booking_join,
            "booking:leave": self.on_booking_leave,
            "message:send": self.on_message_send,
            "typing:start": self.on_typing_start,
            "typing:stop": self.on_typing_stop,
        }

    def connect(self, client: Client) -> None:
        self.hub.join(client, user_room(client.user.user_id))
        logger.info(f"Socket connected for user {client.user.user_id}")

    def disconnect(self, client: Client) -> None:
        self.hub.disconnect(client)
        logger.info(f"Socket disconnected for user {client.user.user_id}")

    async def handle(self, client: Client, event: str, data: Any = None) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Ignoring unknown event {event!r} from user {client.user.user_id}")
            return
        try:
            await handler(client, data)
        except AppError as e:
            logger.info(f"Dropped {event} from user {client.user.user_id}: {e.message}")
        except Exception:
            logger.exception(f"Error handling {event} from user {client.user.user_id}")

    async def on_booking_join(self, client: Client, data: Any) -> None:
        booking_id = booking_id_from(data)
        if booking_id is None:
            return
        async with self.database.session() as db:
            booking = await BookingRepository(db).get_by_id(booking_id)
        if booking is None or not is_party(booking, client.user.user_id):
            return
        self.hub.join(client, booking_room(booking_id))

    async def on_booking_leave(self, client: Client, data: Any) -> None:
        booking_id = booking_id_from(data)
        if booking_id is not None:
            self.hub.leave(client, booking_room(booking_id))

    async def on_message_send(self, client: Client, data: Any) -> None:
        if not isinstance(data, dict):
            return
        booking_id = booking_id_from(data)
        text = data.get("text")
        if booking_id is None or not isinstance(text, str):
            return

        # Party membership is re-checked against storage on every message
        async with self.database.session() as db:
            delivery = await MessagingService(db).send_message(booking_id, client.user.user_id, text)
        await self.hub.publish_message(delivery)

    async def on_typing_start(self, client: Client, data: Any) -> None:
        await self._relay_typing(client, data, "typing:start")

    async def on_typing_stop(self, client: Client, data: Any) -> None:
        await self._relay_typing(client, data, "typing:stop")

    async def _relay_typing(self, client: Client, data: Any, event: str) -> None:
        booking_id = booking_id_from(data)
        if booking_id is None:
            return
        room = booking_room(booking_id)
        # Only clients that joined the room may signal into it
        if client not in self.hub.members(room):
            return
        await self.hub.emit(room, event, {"userId": client.user.user_id}, exclude=client)
