from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from advocate.core.config import settings
from advocate.core.dependencies import get_current_user
from advocate.core.exceptions import NotFoundException
from advocate.db.session import get_db
from advocate.models.user import User
from advocate.schemas.base import build_pagination
from advocate.schemas.conversation import ConversationOut, MessageOut
from advocate.services import chat_service, conversation_service
from advocate.services.auth_service import get_active_user

router = APIRouter(prefix="/chat", tags=["Chat"])


# 1. Conversation list (most recent activity first)
@router.get("/conversations")
def list_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversations = conversation_service.list_conversations(db, current_user.id)

    return {
        "success": True,
        "data": {
            "conversations": [ConversationOut.model_validate(c).to_wire() for c in conversations],
        },
    }


# 2. Direct contact: the pair's conversation, created on first contact
@router.get("/conversation/find/{user_id}")
def find_or_create_conversation(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if user_id != current_user.id and not get_active_user(db, user_id):
        raise NotFoundException("User not found")

    conversation = conversation_service.get_or_create_conversation(db, current_user.id, user_id)

    return {
        "success": True,
        "data": {"conversation": ConversationOut.model_validate(conversation).to_wire()},
    }


# 3. Message history
@router.get("/conversations/{conversation_id}/messages")
def get_messages(
    conversation_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.MESSAGES_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    messages, total = chat_service.get_messages(
        db, current_user, conversation_id, page=page, limit=limit
    )

    return {
        "success": True,
        "data": {
            "messages": [MessageOut.model_validate(m).to_wire() for m in messages],
            "pagination": build_pagination(page, limit, total).to_wire(),
        },
    }


# 4. Read receipts
@router.patch("/conversations/{conversation_id}/read")
def mark_conversation_read(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    updated = chat_service.mark_conversation_read(db, current_user, conversation_id)

    return {
        "success": True,
        "data": {"updatedCount": updated},
    }
