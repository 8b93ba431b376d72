"""
Where the signaling router keeps track of calls in flight.

The router only talks to the CallRegistry interface; the in-memory store
is enough for a single socket-serving process. Running several instances
needs a shared implementation (e.g. backed by a cache) behind the same
interface.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class CallSession:
    caller_id: int
    callee_id: int
    conversation_id: int

    def involves(self, user_id: int) -> bool:
        return user_id in (self.caller_id, self.callee_id)

    def other_party(self, user_id: int) -> int:
        return self.callee_id if user_id == self.caller_id else self.caller_id


class CallRegistry(ABC):

    @abstractmethod
    async def register(self, call_id: str, session: CallSession) -> List[str]:
        """
        Store `session` under `call_id`, first evicting any call on the same
        conversation that already involves the caller. Returns the evicted
        call ids.
        """

    @abstractmethod
    async def get(self, call_id: str) -> Optional[CallSession]:
        ...

    @abstractmethod
    async def pop(self, call_id: str) -> Optional[CallSession]:
        ...

    @abstractmethod
    async def calls_for(self, user_id: int) -> Dict[str, CallSession]:
        ...


class InMemoryCallRegistry(CallRegistry):
    """Volatile, per-process. Lost on restart, which calls cannot survive anyway."""

    def __init__(self):
        self._calls: Dict[str, CallSession] = {}
        self._lock = asyncio.Lock()

    async def register(self, call_id: str, session: CallSession) -> List[str]:
        async with self._lock:
            stale = [
                existing_id
                for existing_id, existing in self._calls.items()
                if existing.conversation_id == session.conversation_id
                and existing.involves(session.caller_id)
            ]
            for existing_id in stale:
                del self._calls[existing_id]

            self._calls[call_id] = session
            return stale

    async def get(self, call_id: str) -> Optional[CallSession]:
        async with self._lock:
            return self._calls.get(call_id)

    async def pop(self, call_id: str) -> Optional[CallSession]:
        async with self._lock:
            return self._calls.pop(call_id, None)

    async def calls_for(self, user_id: int) -> Dict[str, CallSession]:
        async with self._lock:
            return {
                call_id: session
                for call_id, session in self._calls.items()
                if session.involves(user_id)
            }
