from advocate.models.user import User, UserRole
from advocate.models.appointment import Appointment, AppointmentStatus
from advocate.models.conversation import Conversation
from advocate.models.message import Message, MessageType
from advocate.models.notification import Notification, NotificationType, RelatedType
from advocate.models.document import Document, DocumentCategory
from advocate.models.review import Review

__all__ = [
    "User",
    "UserRole",
    "Appointment",
    "AppointmentStatus",
    "Conversation",
    "Message",
    "MessageType",
    "Notification",
    "NotificationType",
    "RelatedType",
    "Document",
    "DocumentCategory",
    "Review",
]
