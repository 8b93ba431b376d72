from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, model_validator

from advocate.schemas.base import CamelModel
from advocate.schemas.appointment import AppointmentSummaryOut
from advocate.schemas.user import PublicUserOut


class MessageOut(CamelModel):
    id: int
    conversation_id: int
    sender_id: int
    sender: PublicUserOut
    content: str
    message_type: str
    file_url: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class ConversationOut(CamelModel):
    id: int
    participants: List[PublicUserOut]
    appointment: Optional[AppointmentSummaryOut] = None
    last_message: Optional[MessageOut] = None
    last_message_at: Optional[datetime] = None
    created_at: datetime


class SendMessageRequest(CamelModel):
    """Payload of the live `sendMessage` event."""

    conversation_id: int
    content: str = Field(min_length=1, max_length=2000)
    message_type: Literal["text", "file", "system"] = "text"
    file_url: Optional[str] = None

    @model_validator(mode="after")
    def file_messages_need_url(self):
        if self.message_type == "file" and not self.file_url:
            raise ValueError("fileUrl is required for file messages")
        return self
