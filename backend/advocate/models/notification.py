from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from advocate.db.base import Base


class NotificationType(str, Enum):
    APPOINTMENT_REQUEST = "APPOINTMENT_REQUEST"
    APPOINTMENT_PROPOSED = "APPOINTMENT_PROPOSED"
    APPOINTMENT_CONFIRMED = "APPOINTMENT_CONFIRMED"
    APPOINTMENT_UPDATE = "APPOINTMENT_UPDATE"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    APPOINTMENT_COMPLETED = "APPOINTMENT_COMPLETED"
    MESSAGE = "MESSAGE"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    SYSTEM = "SYSTEM"


class RelatedType(str, Enum):
    APPOINTMENT = "appointment"
    MESSAGE = "message"
    DOCUMENT = "document"
    USER = "user"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read_created", "user_id", "is_read", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    type = Column(String(32), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)

    related_id = Column(Integer, nullable=True)
    related_type = Column(String(16), nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
