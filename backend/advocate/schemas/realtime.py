from typing import Any, Literal, Optional

from pydantic import Field

from advocate.schemas.base import CamelModel


class ConversationRef(CamelModel):
    conversation_id: int


class TypingRequest(CamelModel):
    conversation_id: int
    is_typing: bool


class StartCallRequest(CamelModel):
    call_id: str = Field(min_length=1, max_length=128)
    conversation_id: int
    other_user_id: int
    call_type: Literal["audio", "video"] = "audio"
    offer: Any = None


class CallSignal(CamelModel):
    """Any mid-call event; only the field relevant to the event is set."""

    call_id: str = Field(min_length=1, max_length=128)
    answer: Any = None
    candidate: Any = None
    offer: Any = None
    conversation_id: Optional[int] = None
