import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from advocate.core.exceptions import ForbiddenException, NotFoundException
from advocate.models.conversation import Conversation
from advocate.models.message import Message, MessageType
from advocate.models.notification import NotificationType, RelatedType
from advocate.models.user import User
from advocate.services.appointment_service import ensure_chat_open
from advocate.services.document_service import resolve_file_url
from advocate.services.notification_service import create_notification

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Access
# ------------------------------------------------------------------

def get_participant_conversation(db: Session, conversation_id: int, user_id: int) -> Conversation:
    conversation = db.get(Conversation, conversation_id)
    if not conversation:
        raise NotFoundException("Conversation not found")

    if not conversation.has_participant(user_id):
        raise ForbiddenException("Access denied: You are not a participant")

    return conversation


def get_open_conversation(db: Session, conversation_id: int, user_id: int) -> Conversation:
    """Participant check followed by the appointment chat gate."""
    conversation = get_participant_conversation(db, conversation_id, user_id)
    ensure_chat_open(conversation)
    return conversation


# ------------------------------------------------------------------
# Message persistence
# ------------------------------------------------------------------

def send_message(
    db: Session,
    *,
    conversation_id: int,
    sender_id: int,
    content: str,
    message_type: str = MessageType.TEXT.value,
    file_url: Optional[str] = None,
) -> tuple[Message, Conversation]:
    """
    Persists a chat message and everything that hangs off it (conversation
    pointer, the recipient's notification) in one commit. Live delivery is
    the caller's business and happens only after this returns.
    """
    conversation = get_open_conversation(db, conversation_id, sender_id)

    if message_type == MessageType.FILE.value:
        file_url = resolve_file_url(db, sender_id, file_url).file_url

    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        message_type=message_type,
        file_url=file_url or None,
        is_read=False,
    )
    db.add(message)
    db.flush()

    conversation.last_message_id = message.id
    conversation.last_message_at = datetime.now(timezone.utc)

    sender = db.get(User, sender_id)
    recipient_id = conversation.other_participant_id(sender_id)

    create_notification(
        db,
        recipient_id,
        NotificationType.MESSAGE,
        "New Message",
        f"You have a new message from {sender.first_name}",
        conversation.id,
        RelatedType.MESSAGE,
    )

    db.commit()
    db.refresh(message)

    if message_type == MessageType.FILE.value:
        logger.info("File message %s stored in conversation %s", message.id, conversation.id)

    return message, conversation


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------

def get_messages(
    db: Session,
    user: User,
    conversation_id: int,
    *,
    page: int,
    limit: int,
) -> tuple[list[Message], int]:
    """
    Newest page first from the store, handed back oldest-first for display.
    """
    conversation = get_open_conversation(db, conversation_id, user.id)

    query = db.query(Message).filter(Message.conversation_id == conversation.id)
    total = query.count()

    messages = (
        query.order_by(Message.created_at.desc(), Message.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    messages.reverse()

    return messages, total


def mark_conversation_read(db: Session, user: User, conversation_id: int) -> int:
    """Marks everything the other participant sent as read."""
    conversation = get_participant_conversation(db, conversation_id, user.id)

    updated = (
        db.query(Message)
        .filter(
            Message.conversation_id == conversation.id,
            Message.sender_id != user.id,
            Message.is_read.is_(False),
        )
        .update(
            {"is_read": True, "read_at": datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated
