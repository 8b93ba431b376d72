"""
Live connection and room bookkeeping.

Every authenticated connection sits in its owner's UserRoom, which is how
the server reaches a person (notifications, call signaling) without the
sender knowing where they are connected. Conversation rooms are joined on
request, after a participant check done by the caller.

Rooms are typed values rather than "user:1" / "conversation:1" strings so
the two namespaces can never collide.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Set, Union
from uuid import uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRoom:
    user_id: int


@dataclass(frozen=True)
class ConversationRoom:
    conversation_id: int


Room = Union[UserRoom, ConversationRoom]


class Connection:
    """One authenticated socket. Hashes by identity."""

    def __init__(self, websocket: WebSocket, user_id: int, role: str):
        self.id = uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.role = role

    async def emit(self, event: str, data: Any) -> None:
        await self.websocket.send_text(json.dumps({"event": event, "data": data}))

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]} user={self.user_id}>"


class ConnectionManager:
    """Tracks room membership for every live connection in this process."""

    def __init__(self):
        # room -> connections in it
        self._rooms: Dict[Room, Set[Connection]] = {}
        # connection -> rooms it is in
        self._memberships: Dict[Connection, Set[Room]] = {}
        self._lock = asyncio.Lock()

    # -------------------- membership --------------------

    async def connect(self, connection: Connection) -> None:
        """Register an accepted connection in its owner's user room."""
        async with self._lock:
            self._memberships[connection] = set()
            self._add(connection, UserRoom(connection.user_id))
        logger.info("User %s connected (%s)", connection.user_id, connection.id[:8])

    async def disconnect(self, connection: Connection) -> None:
        async with self._lock:
            rooms = self._memberships.pop(connection, set())
            for room in rooms:
                self._discard(connection, room)
        logger.info("User %s disconnected (%s)", connection.user_id, connection.id[:8])

    async def join(self, connection: Connection, room: Room) -> bool:
        """False when the connection has already been dropped."""
        async with self._lock:
            if connection not in self._memberships:
                return False
            self._add(connection, room)
        return True

    async def leave(self, connection: Connection, room: Room) -> None:
        async with self._lock:
            self._memberships.get(connection, set()).discard(room)
            self._discard(connection, room)

    def is_member(self, connection: Connection, room: Room) -> bool:
        return room in self._memberships.get(connection, ())

    def _add(self, connection: Connection, room: Room) -> None:
        self._rooms.setdefault(room, set()).add(connection)
        self._memberships[connection].add(room)

    def _discard(self, connection: Connection, room: Room) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._rooms[room]

    # -------------------- delivery --------------------

    async def emit_to_room(
        self,
        room: Room,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        """Returns how many connections the event was handed to."""
        async with self._lock:
            targets = [c for c in self._rooms.get(room, ()) if c is not exclude]
        return await self._deliver(targets, event, data)

    async def emit_to_all(
        self,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        async with self._lock:
            targets = [c for c in self._memberships if c is not exclude]
        return await self._deliver(targets, event, data)

    async def _deliver(self, targets: Iterable[Connection], event: str, data: Any) -> int:
        delivered = 0
        dead = []

        for connection in targets:
            try:
                await connection.emit(event, data)
                delivered += 1
            except Exception:
                # one broken socket must not cost the others their event
                logger.warning("Dropping connection %r after failed send of %s", connection, event)
                dead.append(connection)

        for connection in dead:
            await self.disconnect(connection)
            await self._close(connection)

        return delivered

    async def _close(self, connection: Connection) -> None:
        # ends the receive loop of a socket we can no longer write to
        try:
            await connection.websocket.close(code=1011)
        except Exception as exc:
            logger.debug("Close of %r after failed send raised %r", connection, exc)

    # -------------------- introspection --------------------

    def room_size(self, room: Room) -> int:
        return len(self._rooms.get(room, ()))

    def get_total_connections(self) -> int:
        return len(self._memberships)


# Process-wide instance used by the live channel
manager = ConnectionManager()
