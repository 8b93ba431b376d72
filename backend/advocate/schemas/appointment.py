from datetime import date, datetime
from typing import Optional

from pydantic import Field, field_validator

from advocate.schemas.base import CamelModel
from advocate.schemas.user import PartyOut


class AppointmentCreate(CamelModel):
    lawyer_id: int
    proposed_date: date
    proposed_time: str = Field(min_length=1, max_length=16)
    reason: str = Field(max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("reason")
    @classmethod
    def reason_min_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 10:
            raise ValueError("reason must be at least 10 characters")
        return v


class ProposeTimeRequest(CamelModel):
    proposed_date: date
    proposed_time: str = Field(min_length=1, max_length=16)


class RejectRequest(CamelModel):
    rejection_reason: Optional[str] = Field(default=None, max_length=500)


class AppointmentOut(CamelModel):
    id: int
    status: str

    client: PartyOut
    lawyer: PartyOut

    proposed_date: date
    proposed_time: str
    confirmed_date: Optional[date] = None
    confirmed_time: Optional[str] = None

    reason: str
    notes: Optional[str] = None

    client_confirmation: bool
    lawyer_confirmation: bool

    meeting_link: Optional[str] = None
    conversation_id: Optional[int] = None

    created_at: datetime
    updated_at: datetime


class AppointmentSummaryOut(CamelModel):
    """Embedded in conversation listings."""

    id: int
    status: str
    proposed_date: date
    proposed_time: str
    confirmed_date: Optional[date] = None
    confirmed_time: Optional[str] = None
