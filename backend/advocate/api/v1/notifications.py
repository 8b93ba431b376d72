from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from advocate.core.config import settings
from advocate.core.dependencies import get_current_user
from advocate.db.session import get_db
from advocate.models.user import User
from advocate.schemas.base import build_pagination
from advocate.schemas.notification import NotificationOut
from advocate.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
def list_notifications(
    is_read: Optional[bool] = Query(default=None, alias="isRead"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.HISTORY_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Inbox of the current user, newest first. `unreadCount` ignores the
    `isRead` filter so the badge stays correct on every tab.
    """
    notifications, total, unread_count = notification_service.list_notifications(
        db, current_user, is_read=is_read, page=page, limit=limit
    )

    return {
        "success": True,
        "data": {
            "notifications": [NotificationOut.model_validate(n).to_wire() for n in notifications],
            "unreadCount": unread_count,
            "pagination": build_pagination(page, limit, total).to_wire(),
        },
    }


# declared before /{notification_id}/read so "read-all" is never taken for an id
@router.patch("/read-all")
def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    updated = notification_service.mark_all_as_read(db, current_user)

    return {
        "success": True,
        "message": "All notifications marked as read",
        "data": {"updatedCount": updated},
    }


@router.patch("/{notification_id}/read")
def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = notification_service.mark_as_read(db, current_user, notification_id)

    return {
        "success": True,
        "data": {"notification": NotificationOut.model_validate(notification).to_wire()},
    }


@router.delete("/clear-all")
def clear_all(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deleted = notification_service.clear_all(db, current_user)

    return {
        "success": True,
        "message": "All notifications cleared",
        "data": {"deletedCount": deleted},
    }
