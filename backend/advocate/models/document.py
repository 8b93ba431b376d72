from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from advocate.db.base import Base


class DocumentCategory(str, Enum):
    CONTRACT = "contract"
    LEGAL_DOCUMENT = "legal_document"
    EVIDENCE = "evidence"
    OTHER = "other"


class Document(Base):
    """
    One upload by one user. Several rows may point at the same stored file
    when the bytes were identical (see document_service).
    """

    __tablename__ = "documents"
    __table_args__ = (
        # dedup candidates are looked up by owner and size first
        Index("ix_documents_owner_size", "owner_id", "file_size"),
    )

    id = Column(Integer, primary_key=True, index=True)

    owner_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    appointment_id = Column(
        Integer,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # name on disk, shared by deduplicated rows
    file_name = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    file_url = Column(String, nullable=False, index=True)

    file_size = Column(Integer, nullable=False)
    file_hash = Column(String(32), nullable=False)
    mime_type = Column(String, nullable=False)

    description = Column(String(500), nullable=True)
    category = Column(String(32), nullable=False, default=DocumentCategory.OTHER.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
