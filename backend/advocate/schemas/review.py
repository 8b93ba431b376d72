from datetime import datetime
from typing import Optional

from pydantic import Field

from advocate.schemas.base import CamelModel
from advocate.schemas.user import PublicUserOut


class ReviewCreate(CamelModel):
    appointment_id: int
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)


class ReviewOut(CamelModel):
    id: int
    appointment_id: int
    lawyer_id: int
    client: PublicUserOut
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class LawyerOut(PublicUserOut):
    """Directory entry: public profile plus review aggregates."""

    rating: float = 0.0
    total_reviews: int = 0
