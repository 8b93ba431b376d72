import os
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from advocate.core.dependencies import get_current_user
from advocate.core.exceptions import NotFoundException
from advocate.db.session import get_db
from advocate.models.document import DocumentCategory
from advocate.models.user import User
from advocate.schemas.document import DocumentOut
from advocate.services import document_service

router = APIRouter(prefix="/documents", tags=["Documents"])


@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_document(
    file: UploadFile = File(...),
    appointment_id: Optional[int] = Form(default=None, alias="appointmentId"),
    description: Optional[str] = Form(default=None, max_length=500),
    category: str = Form(default=DocumentCategory.OTHER.value),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    stored = document_service.store_document(
        db,
        current_user,
        original_name=file.filename or "upload",
        content=file.file.read(),
        mime_type=file.content_type or "application/octet-stream",
        appointment_id=appointment_id,
        description=description,
        category=category,
    )

    return {
        "success": True,
        "message": "Document uploaded successfully",
        "data": {
            "document": DocumentOut.model_validate(stored.document).to_wire(),
            "deduplicated": stored.deduplicated,
        },
    }


@router.get("/mine")
def my_documents(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    documents = document_service.list_documents(db, current_user)

    return {
        "success": True,
        "data": {"documents": [DocumentOut.model_validate(d).to_wire() for d in documents]},
    }


@router.get("/{document_id}/download")
def download_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    document = document_service.get_document(db, current_user, document_id)
    if not os.path.exists(document.file_path):
        raise NotFoundException("File not found")

    return FileResponse(
        document.file_path,
        media_type=document.mime_type,
        filename=document.original_name,
    )
