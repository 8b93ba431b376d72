from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from advocate.core.config import settings
from advocate.db.session import get_db
from advocate.models.user import User
from advocate.schemas.base import build_pagination
from advocate.schemas.review import LawyerOut
from advocate.services import lawyer_service, review_service

router = APIRouter(prefix="/lawyers", tags=["Lawyers"])


def _directory_entries(db: Session, lawyers: list[User]) -> list[dict]:
    summary = review_service.rating_summary(db, [lawyer.id for lawyer in lawyers])

    entries = []
    for lawyer in lawyers:
        rating, total_reviews = summary.get(lawyer.id, (0.0, 0))
        entry = LawyerOut.model_validate(lawyer).model_copy(
            update={"rating": rating, "total_reviews": total_reviews}
        )
        entries.append(entry.to_wire())
    return entries


# Public directory, so a client can find the lawyerId to book
@router.get("")
def list_lawyers(
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    lawyers, total = lawyer_service.list_lawyers(db, search=search, page=page, limit=limit)

    return {
        "success": True,
        "data": {
            "lawyers": _directory_entries(db, lawyers),
            "pagination": build_pagination(page, limit, total).to_wire(),
        },
    }


@router.get("/{lawyer_id}")
def get_lawyer(lawyer_id: int, db: Session = Depends(get_db)):
    lawyer = lawyer_service.get_lawyer(db, lawyer_id)

    return {
        "success": True,
        "data": {"lawyer": _directory_entries(db, [lawyer])[0]},
    }
