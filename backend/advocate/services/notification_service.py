import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from advocate.core.exceptions import ForbiddenException, NotFoundException
from advocate.models.notification import Notification, NotificationType, RelatedType
from advocate.models.user import User

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Sink
# ------------------------------------------------------------------

def create_notification(
    db: Session,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[int] = None,
    related_type: Optional[RelatedType] = None,
) -> Optional[Notification]:
    """
    Fire-and-forget: the row is written inside a SAVEPOINT so a failure
    here never spoils the caller's transaction. The caller commits.
    """
    try:
        with db.begin_nested():
            notification = Notification(
                user_id=user_id,
                type=type.value,
                title=title,
                message=message,
                related_id=related_id,
                related_type=related_type.value if related_type else None,
            )
            db.add(notification)
        return notification
    except SQLAlchemyError:
        logger.warning(
            "Could not record %s notification for user %s",
            type.value,
            user_id,
            exc_info=True,
        )
        return None


# ------------------------------------------------------------------
# Inbox
# ------------------------------------------------------------------

def list_notifications(
    db: Session,
    user: User,
    *,
    is_read: Optional[bool],
    page: int,
    limit: int,
) -> tuple[list[Notification], int, int]:
    """Returns (page of notifications, total matching, unread count)."""
    query = db.query(Notification).filter(Notification.user_id == user.id)
    if is_read is not None:
        query = query.filter(Notification.is_read == is_read)

    total = query.count()
    notifications = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    unread_count = (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.is_read.is_(False))
        .count()
    )

    return notifications, total, unread_count


def mark_as_read(db: Session, user: User, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification:
        raise NotFoundException("Notification not found")

    if notification.user_id != user.id:
        raise ForbiddenException("Access denied")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)

    return notification


def mark_all_as_read(db: Session, user: User) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.is_read.is_(False))
        .update(
            {"is_read": True, "read_at": datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated


def clear_all(db: Session, user: User) -> int:
    deleted = (
        db.query(Notification)
        .filter(Notification.user_id == user.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
