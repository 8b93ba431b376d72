"""
WebRTC signaling relay.

Nothing is persisted: the router forwards SDP offers/answers and ICE
candidates between the two users registered against a call id.

When a call id is unknown (process restarted, call superseded) the signal
is broadcast to every other connection instead of being dropped; clients
ignore call ids that are not theirs. The degraded path is reported as
Delivery.BROADCAST_FALLBACK.
"""

import logging
from enum import Enum
from typing import Any, Callable, Iterable

from advocate.core.exceptions import ForbiddenException
from advocate.realtime.call_registry import CallRegistry, CallSession, InMemoryCallRegistry
from advocate.realtime.rooms import Connection, ConnectionManager, UserRoom, manager

logger = logging.getLogger(__name__)


class Delivery(str, Enum):
    DIRECT = "direct"
    BROADCAST_FALLBACK = "broadcast_fallback"


def _caller(session: CallSession, _sender_id: int) -> int:
    return session.caller_id


def _counterpart(session: CallSession, sender_id: int) -> int:
    return session.other_party(sender_id)


class CallSignalingRouter:

    def __init__(self, connections: ConnectionManager, registry: CallRegistry):
        self.connections = connections
        self.registry = registry

    # -------------------- lifecycle --------------------

    async def start_call(
        self,
        connection: Connection,
        *,
        call_id: str,
        conversation_id: int,
        participant_ids: Iterable[int],
        callee_id: int,
        call_type: str,
        offer: Any,
    ) -> None:
        """
        `participant_ids` are the conversation's two participants, looked up
        by the caller of this method. Both ends of the call must be among them.
        """
        participants = set(participant_ids)
        caller_id = connection.user_id

        if caller_id not in participants or callee_id not in participants or callee_id == caller_id:
            raise ForbiddenException("Invalid conversation or access denied")

        evicted = await self.registry.register(
            call_id,
            CallSession(caller_id=caller_id, callee_id=callee_id, conversation_id=conversation_id),
        )
        if evicted:
            logger.info(
                "Call(s) %s on conversation %s superseded by %s",
                ", ".join(evicted), conversation_id, call_id,
            )

        logger.info("Call %s started: caller=%s callee=%s", call_id, caller_id, callee_id)
        await self.connections.emit_to_room(
            UserRoom(callee_id),
            "incomingCall",
            {
                "callId": call_id,
                "conversationId": conversation_id,
                "callerId": caller_id,
                "callType": call_type,
                "offer": offer,
            },
        )

    async def accept_call(self, connection: Connection, call_id: str, answer: Any) -> Delivery:
        return await self._relay(
            connection, call_id, "callAccepted", {"callId": call_id, "answer": answer},
            target=_caller,
        )

    async def reject_call(self, connection: Connection, call_id: str) -> Delivery:
        return await self._relay(
            connection, call_id, "callRejected", {"callId": call_id}, terminal=True,
        )

    async def end_call(self, connection: Connection, call_id: str) -> Delivery:
        return await self._relay(
            connection, call_id, "callEnded", {"callId": call_id}, terminal=True,
        )

    # -------------------- mid-call signaling --------------------

    async def ice_candidate(self, connection: Connection, call_id: str, candidate: Any) -> Delivery:
        return await self._relay(
            connection, call_id, "iceCandidate", {"callId": call_id, "candidate": candidate},
        )

    async def offer(self, connection: Connection, call_id: str, offer: Any) -> Delivery:
        return await self._relay(
            connection, call_id, "offer", {"callId": call_id, "offer": offer},
        )

    async def answer(self, connection: Connection, call_id: str, answer: Any) -> Delivery:
        return await self._relay(
            connection, call_id, "answer", {"callId": call_id, "answer": answer},
        )

    async def upgrade_to_video(self, connection: Connection, call_id: str, offer: Any) -> Delivery:
        return await self._relay(
            connection, call_id, "upgradeToVideo", {"callId": call_id, "offer": offer},
        )

    # Recording happens client side; the peer is only told about it.
    async def start_recording(self, connection: Connection, call_id: str, conversation_id: Any) -> Delivery:
        return await self._relay(
            connection, call_id, "recordingStarted",
            {"callId": call_id, "conversationId": conversation_id},
        )

    async def stop_recording(self, connection: Connection, call_id: str, conversation_id: Any) -> Delivery:
        return await self._relay(
            connection, call_id, "recordingStopped",
            {"callId": call_id, "conversationId": conversation_id},
        )

    # -------------------- routing --------------------

    async def _relay(
        self,
        connection: Connection,
        call_id: str,
        event: str,
        payload: dict,
        target: Callable[[CallSession, int], int] = _counterpart,
        terminal: bool = False,
    ) -> Delivery:
        session = await self.registry.get(call_id)

        if session is None:
            logger.warning("Call %s unknown, broadcasting %s", call_id, event)
            await self.connections.emit_to_all(event, payload, exclude=connection)
            return Delivery.BROADCAST_FALLBACK

        if not session.involves(connection.user_id):
            raise ForbiddenException("You are not part of this call")

        recipient_id = target(session, connection.user_id)
        await self.connections.emit_to_room(UserRoom(recipient_id), event, payload)

        if terminal:
            await self.registry.pop(call_id)
            logger.info("Call %s closed with %s by user %s", call_id, event, connection.user_id)

        return Delivery.DIRECT


# Process-wide router used by the live channel
call_router = CallSignalingRouter(manager, InMemoryCallRegistry())
