from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from advocate.db.base import Base


class Conversation(Base):
    """
    Channel between exactly two users. The pair is stored sorted so the
    unique constraint holds regardless of who made first contact.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("participant_low_id", "participant_high_id", name="uq_conversations_pair"),
        CheckConstraint("participant_low_id < participant_high_id", name="ck_conversations_pair_sorted"),
    )

    id = Column(Integer, primary_key=True, index=True)

    participant_low_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    participant_high_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True, index=True)

    # denormalised, only used to order conversation lists
    last_message_id = Column(
        Integer,
        ForeignKey("messages.id", use_alter=True, name="fk_conversations_last_message_id"),
        nullable=True,
    )
    last_message_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    participant_low = relationship("User", foreign_keys=[participant_low_id], lazy="joined")
    participant_high = relationship("User", foreign_keys=[participant_high_id], lazy="joined")

    appointment = relationship("Appointment", foreign_keys=[appointment_id])
    last_message = relationship("Message", foreign_keys=[last_message_id], post_update=True)

    @property
    def participant_ids(self) -> tuple[int, int]:
        return (self.participant_low_id, self.participant_high_id)

    @property
    def participants(self) -> list:
        return [self.participant_low, self.participant_high]

    def has_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids

    def other_participant_id(self, user_id: int) -> int:
        if user_id == self.participant_low_id:
            return self.participant_high_id
        return self.participant_low_id
