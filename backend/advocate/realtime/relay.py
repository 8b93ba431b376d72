import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Dict

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from advocate.realtime.rooms import (
    Connection,
    ConnectionManager,
    ConversationRoom,
    UserRoom,
    manager,
)
from advocate.schemas.conversation import MessageOut, SendMessageRequest
from advocate.services import chat_service

logger = logging.getLogger(__name__)


def _persist_message(
    session_factory: Callable[[], Session],
    sender_id: int,
    payload: SendMessageRequest,
) -> tuple[dict, int, str]:
    """Runs in the threadpool. Returns (wire message, recipient id, sender first name)."""
    with session_factory() as db:
        message, conversation = chat_service.send_message(
            db,
            conversation_id=payload.conversation_id,
            sender_id=sender_id,
            content=payload.content,
            message_type=payload.message_type,
            file_url=payload.file_url,
        )
        return (
            MessageOut.model_validate(message).to_wire(),
            conversation.other_participant_id(sender_id),
            message.sender.first_name,
        )


class MessagingRelay:
    """
    Persist first, then fan out. Sends on one conversation are serialised
    so room members see messages in the order they were committed.
    """

    def __init__(self, connections: ConnectionManager):
        self.connections = connections
        self._conversation_locks: Dict[int, asyncio.Lock] = {}
        # senders holding or waiting on each lock; the lock goes when this hits zero
        self._lock_users: Dict[int, int] = {}

    @asynccontextmanager
    async def _serialised(self, conversation_id: int):
        lock = self._conversation_locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[conversation_id] -= 1
            if not self._lock_users[conversation_id]:
                del self._lock_users[conversation_id]
                del self._conversation_locks[conversation_id]

    def active_locks(self) -> int:
        return len(self._conversation_locks)

    async def send(
        self,
        session_factory: Callable[[], Session],
        connection: Connection,
        payload: SendMessageRequest,
    ) -> dict:
        async with self._serialised(payload.conversation_id):
            message, recipient_id, sender_name = await run_in_threadpool(
                _persist_message, session_factory, connection.user_id, payload
            )

            # the message is durable from here on; live delivery is best effort
            try:
                await self.connections.emit_to_room(
                    ConversationRoom(payload.conversation_id),
                    "newMessage",
                    {"message": message},
                )
                await self.connections.emit_to_room(
                    UserRoom(recipient_id),
                    "notification",
                    {"type": "MESSAGE", "message": f"New message from {sender_name}"},
                )
            except Exception:
                logger.exception(
                    "Live delivery of message %s failed; it remains in history",
                    message["id"],
                )

        return message


relay = MessagingRelay(manager)
