"""
Document uploads.

An upload whose bytes the owner has already stored is not written again:
candidates are the owner's documents of the same size, and one of them is
a duplicate when its MD5 matches and its file is still on disk. The new
row then points at the existing file.
"""

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from advocate.core.config import settings
from advocate.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from advocate.models.appointment import Appointment
from advocate.models.conversation import Conversation
from advocate.models.document import Document, DocumentCategory
from advocate.models.message import Message, MessageType
from advocate.models.notification import NotificationType, RelatedType
from advocate.models.user import User
from advocate.services.notification_service import create_notification

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".pdf", ".doc", ".docx", ".txt"}


@dataclass
class StoredDocument:
    document: Document
    deduplicated: bool


def file_md5(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()


def find_duplicate(db: Session, owner_id: int, file_size: int, file_hash: str) -> Optional[Document]:
    """Same size is the cheap filter; the hash decides."""
    candidates = (
        db.query(Document)
        .filter(Document.owner_id == owner_id, Document.file_size == file_size)
        .order_by(Document.id.asc())
        .all()
    )

    for candidate in candidates:
        if candidate.file_hash != file_hash:
            continue
        if os.path.exists(candidate.file_path):
            return candidate

    return None


def _validate_upload(original_name: str, content: bytes) -> str:
    if not content:
        raise ValidationException("No file uploaded")

    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise ValidationException(
            f"File exceeds the {settings.MAX_UPLOAD_SIZE // (1024 * 1024)} MB limit"
        )

    extension = Path(original_name).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationException("Invalid file type. Only images, PDFs, and documents are allowed.")

    return extension


def _write_file(content: bytes, extension: str) -> Path:
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    path = upload_dir / f"{uuid4().hex}{extension}"
    path.write_bytes(content)
    return path


def store_document(
    db: Session,
    owner: User,
    *,
    original_name: str,
    content: bytes,
    mime_type: str,
    appointment_id: Optional[int] = None,
    description: Optional[str] = None,
    category: str = DocumentCategory.OTHER.value,
) -> StoredDocument:
    extension = _validate_upload(original_name, content)

    if category not in {c.value for c in DocumentCategory}:
        raise ValidationException(f"Unknown document category: {category}")

    appointment = None
    if appointment_id is not None:
        appointment = db.get(Appointment, appointment_id)
        if not appointment:
            raise NotFoundException("Appointment not found")
        if appointment.party_role(owner.id) is None:
            raise ForbiddenException("You can only attach documents to your own appointments")

    file_size = len(content)
    file_hash = file_md5(content)

    existing = find_duplicate(db, owner.id, file_size, file_hash)
    written: Optional[Path] = None

    if existing is not None:
        file_name, file_path, file_url = existing.file_name, existing.file_path, existing.file_url
        logger.info(
            "Upload by user %s matches document %s; reusing %s",
            owner.id, existing.id, existing.file_name,
        )
    else:
        written = _write_file(content, extension)
        file_name, file_path = written.name, str(written)
        file_url = f"/uploads/{written.name}"

    document = Document(
        owner_id=owner.id,
        appointment_id=appointment_id,
        file_name=file_name,
        original_name=original_name,
        file_path=file_path,
        file_url=file_url,
        file_size=file_size,
        file_hash=file_hash,
        mime_type=mime_type,
        description=description,
        category=category,
    )

    try:
        db.add(document)
        db.flush()

        if appointment is not None:
            create_notification(
                db,
                appointment.other_party_id(owner.id),
                NotificationType.DOCUMENT_UPLOADED,
                "New Document Uploaded",
                f"{owner.full_name} uploaded a document",
                document.id,
                RelatedType.DOCUMENT,
            )

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        if written is not None:
            written.unlink(missing_ok=True)
        raise

    db.refresh(document)
    return StoredDocument(document, deduplicated=existing is not None)


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------

def list_documents(db: Session, owner: User) -> list[Document]:
    return (
        db.query(Document)
        .filter(Document.owner_id == owner.id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )


def _shared_in_conversation(db: Session, document: Document, user_id: int) -> bool:
    return (
        db.query(Message.id)
        .join(Conversation, Conversation.id == Message.conversation_id)
        .filter(
            Message.message_type == MessageType.FILE.value,
            Message.file_url == document.file_url,
            or_(
                Conversation.participant_low_id == user_id,
                Conversation.participant_high_id == user_id,
            ),
        )
        .first()
        is not None
    )


def get_document(db: Session, user: User, document_id: int) -> Document:
    """
    Readable by its owner, the other party of its appointment, and anyone
    it was sent to as a file message.
    """
    document = db.get(Document, document_id)
    if not document:
        raise NotFoundException("Document not found")

    if document.owner_id == user.id:
        return document

    if document.appointment_id is not None:
        appointment = db.get(Appointment, document.appointment_id)
        if appointment is not None and appointment.party_role(user.id) is not None:
            return document

    if _shared_in_conversation(db, document, user.id):
        return document

    raise ForbiddenException("You do not have access to this document")


def resolve_file_url(db: Session, sender_id: int, file_url: str) -> Document:
    """A file message may only carry the URL of a document its sender uploaded."""
    document = (
        db.query(Document)
        .filter(Document.owner_id == sender_id, Document.file_url == file_url)
        .order_by(Document.id.desc())
        .first()
    )
    if document is None:
        raise ValidationException("fileUrl does not refer to one of your uploaded documents")
    return document
