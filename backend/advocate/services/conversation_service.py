import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from advocate.core.exceptions import ValidationException
from advocate.models.conversation import Conversation

logger = logging.getLogger(__name__)


def pair_key(user_a: int, user_b: int) -> tuple[int, int]:
    """Order-insensitive key of a participant pair."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def find_conversation(db: Session, user_a: int, user_b: int) -> Optional[Conversation]:
    low, high = pair_key(user_a, user_b)
    return (
        db.query(Conversation)
        .filter(
            Conversation.participant_low_id == low,
            Conversation.participant_high_id == high,
        )
        .first()
    )


# ------------------------------------------------------------------
# Directory
# ------------------------------------------------------------------

def get_or_create_conversation(
    db: Session,
    user_a: int,
    user_b: int,
) -> Conversation:
    """
    Returns the single conversation for the pair, creating it on first
    contact. Commits on creation.

    Two first contacts racing each other both try the INSERT; the unique
    pair constraint lets exactly one win and the loser re-reads the winner's
    row, so both callers end up with the same conversation.
    """
    if user_a == user_b:
        raise ValidationException("Cannot create conversation with yourself")

    conversation = find_conversation(db, user_a, user_b)
    if conversation:
        return conversation

    low, high = pair_key(user_a, user_b)
    conversation = Conversation(
        participant_low_id=low,
        participant_high_id=high,
        last_message_at=datetime.now(timezone.utc),
    )

    try:
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
        logger.info("Conversation %s created for users %s/%s", conversation.id, low, high)
        return conversation

    except IntegrityError:
        # lost the race, the other side's row is canonical
        db.rollback()
        conversation = find_conversation(db, user_a, user_b)
        if conversation is None:
            raise
        return conversation


def attach_appointment(db: Session, conversation: Conversation, appointment_id: int) -> None:
    """Points the conversation at the pair's latest appointment. Caller commits."""
    conversation.appointment_id = appointment_id
    db.add(conversation)


def list_conversations(db: Session, user_id: int) -> list[Conversation]:
    return (
        db.query(Conversation)
        .filter(
            or_(
                Conversation.participant_low_id == user_id,
                Conversation.participant_high_id == user_id,
            )
        )
        .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
        .all()
    )
