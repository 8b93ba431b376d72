"""
Client -> server events of the live channel.

Frames are JSON objects `{"event": <name>, "data": <payload>}`. Whatever
goes wrong while handling one is reported back to the connection that
sent it as an `error` event and to nobody else.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import Session

from advocate.core.exceptions import AppException
from advocate.realtime.call_router import CallSignalingRouter
from advocate.realtime.relay import MessagingRelay
from advocate.realtime.rooms import Connection, ConnectionManager, ConversationRoom
from advocate.schemas.conversation import SendMessageRequest
from advocate.schemas.realtime import CallSignal, ConversationRef, StartCallRequest, TypingRequest
from advocate.services import chat_service

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]
Handler = Callable[[Any], Awaitable[None]]


def _participant_ids(session_factory: SessionFactory, conversation_id: int, user_id: int) -> tuple[int, int]:
    with session_factory() as db:
        conversation = chat_service.get_participant_conversation(db, conversation_id, user_id)
        return conversation.participant_ids


def _conversation_ref(data: Any) -> ConversationRef:
    # joinConversation / leaveConversation also accept the bare id
    if isinstance(data, dict):
        return ConversationRef.model_validate(data)
    return ConversationRef(conversation_id=data)


class LiveEventDispatcher:
    """Handles the events of one connection, one at a time, in arrival order."""

    def __init__(
        self,
        connection: Connection,
        session_factory: SessionFactory,
        connections: ConnectionManager,
        messaging: MessagingRelay,
        calls: CallSignalingRouter,
    ):
        self.connection = connection
        self.session_factory = session_factory
        self.connections = connections
        self.messaging = messaging
        self.calls = calls

        self._handlers: Dict[str, Handler] = {
            "joinConversation": self.join_conversation,
            "leaveConversation": self.leave_conversation,
            "sendMessage": self.send_message,
            "typing": self.typing,
            "startCall": self.start_call,
            "acceptCall": self.accept_call,
            "rejectCall": self.reject_call,
            "endCall": self.end_call,
            "iceCandidate": self.ice_candidate,
            "offer": self.offer,
            "answer": self.answer,
            "upgradeToVideo": self.upgrade_to_video,
            "startRecording": self.start_recording,
            "stopRecording": self.stop_recording,
        }

    async def dispatch(self, raw: str) -> None:
        if raw == "ping":
            await self.connection.websocket.send_text("pong")
            return

        try:
            frame = json.loads(raw)
            event = frame["event"]
            data = frame.get("data")
            if not isinstance(event, str):
                raise TypeError("event name must be a string")
        except (ValueError, KeyError, TypeError, AttributeError):
            await self.connection.emit("error", {"message": "Malformed frame"})
            return

        handler = self._handlers.get(event)
        if handler is None:
            await self.connection.emit("error", {"message": f"Unknown event: {event}"})
            return

        try:
            await handler(data)

        except AppException as exc:
            await self.connection.emit("error", {"message": exc.message, "code": exc.error_code})

        except ValidationError:
            await self.connection.emit("error", {"message": f"Invalid payload for {event}"})

        except Exception:
            logger.exception("Unhandled error in %s for user %s", event, self.connection.user_id)
            await self.connection.emit("error", {"message": f"Error handling {event}"})

    # -------------------- rooms --------------------

    async def join_conversation(self, data: Any) -> None:
        ref = _conversation_ref(data)

        # checked on every join, not once per connection
        await run_in_threadpool(
            _participant_ids, self.session_factory, ref.conversation_id, self.connection.user_id
        )

        joined = await self.connections.join(self.connection, ConversationRoom(ref.conversation_id))
        if not joined:
            await self.connection.emit("error", {"message": "Connection is no longer registered"})
            return

        await self.connection.emit("joinedConversation", {"conversationId": ref.conversation_id})
        logger.info("User %s joined conversation %s", self.connection.user_id, ref.conversation_id)

    async def leave_conversation(self, data: Any) -> None:
        ref = _conversation_ref(data)
        await self.connections.leave(self.connection, ConversationRoom(ref.conversation_id))

    async def typing(self, data: Any) -> None:
        request = TypingRequest.model_validate(data)
        room = ConversationRoom(request.conversation_id)

        if not self.connections.is_member(self.connection, room):
            return

        await self.connections.emit_to_room(
            room,
            "userTyping",
            {"userId": self.connection.user_id, "isTyping": request.is_typing},
            exclude=self.connection,
        )

    # -------------------- chat --------------------

    async def send_message(self, data: Any) -> None:
        request = SendMessageRequest.model_validate(data)
        await self.messaging.send(self.session_factory, self.connection, request)

    # -------------------- calls --------------------

    async def start_call(self, data: Any) -> None:
        request = StartCallRequest.model_validate(data)

        participant_ids = await run_in_threadpool(
            _participant_ids, self.session_factory, request.conversation_id, self.connection.user_id
        )

        await self.calls.start_call(
            self.connection,
            call_id=request.call_id,
            conversation_id=request.conversation_id,
            participant_ids=participant_ids,
            callee_id=request.other_user_id,
            call_type=request.call_type,
            offer=request.offer,
        )

    async def accept_call(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.accept_call(self.connection, signal.call_id, signal.answer)

    async def reject_call(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.reject_call(self.connection, signal.call_id)

    async def end_call(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.end_call(self.connection, signal.call_id)

    async def ice_candidate(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.ice_candidate(self.connection, signal.call_id, signal.candidate)

    async def offer(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.offer(self.connection, signal.call_id, signal.offer)

    async def answer(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.answer(self.connection, signal.call_id, signal.answer)

    async def upgrade_to_video(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.upgrade_to_video(self.connection, signal.call_id, signal.offer)

    async def start_recording(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.start_recording(self.connection, signal.call_id, signal.conversation_id)

    async def stop_recording(self, data: Any) -> None:
        signal = CallSignal.model_validate(data)
        await self.calls.stop_recording(self.connection, signal.call_id, signal.conversation_id)
