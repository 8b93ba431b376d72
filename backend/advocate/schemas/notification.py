from datetime import datetime
from typing import Optional

from advocate.schemas.base import CamelModel


class NotificationOut(CamelModel):
    id: int
    type: str
    title: str
    message: str
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
