from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from advocate.db.base import Base


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    PROPOSED = "PROPOSED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses in which the two parties may talk to each other.
CHAT_OPEN_STATUSES = {AppointmentStatus.CONFIRMED.value, AppointmentStatus.COMPLETED.value}


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_client_created", "client_id", "created_at"),
        Index("ix_appointments_lawyer_created", "lawyer_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)

    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    lawyer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(
        String(16),
        nullable=False,
        default=AppointmentStatus.PENDING.value,
        index=True,
    )

    # slot currently on the table
    proposed_date = Column(Date, nullable=False)
    proposed_time = Column(String(16), nullable=False)

    # set on the way into CONFIRMED, never cleared
    confirmed_date = Column(Date, nullable=True, index=True)
    confirmed_time = Column(String(16), nullable=True)

    reason = Column(String(500), nullable=False)
    notes = Column(Text, nullable=True)

    client_confirmation = Column(Boolean, default=False, nullable=False)
    lawyer_confirmation = Column(Boolean, default=False, nullable=False)

    meeting_link = Column(String, nullable=True)

    # use_alter: conversations also point back at appointments
    conversation_id = Column(
        Integer,
        ForeignKey("conversations.id", use_alter=True, name="fk_appointments_conversation_id"),
        nullable=True,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    client = relationship("User", foreign_keys=[client_id], lazy="joined")
    lawyer = relationship("User", foreign_keys=[lawyer_id], lazy="joined")

    def allows_chat(self) -> bool:
        return self.status in CHAT_OPEN_STATUSES

    def party_role(self, user_id: int) -> str | None:
        """Returns "client", "lawyer" or None for outsiders."""
        if user_id == self.client_id:
            return "client"
        if user_id == self.lawyer_id:
            return "lawyer"
        return None

    def other_party_id(self, user_id: int) -> int:
        return self.lawyer_id if user_id == self.client_id else self.client_id
