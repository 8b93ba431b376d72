from datetime import datetime
from typing import Optional

from advocate.schemas.base import CamelModel


class DocumentOut(CamelModel):
    id: int
    owner_id: int
    appointment_id: Optional[int] = None
    original_name: str
    file_url: str
    file_size: int
    mime_type: str
    description: Optional[str] = None
    category: str
    created_at: datetime
