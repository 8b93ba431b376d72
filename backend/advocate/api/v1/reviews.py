from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from advocate.core.config import settings
from advocate.core.dependencies import get_current_user
from advocate.db.session import get_db
from advocate.models.user import User
from advocate.schemas.base import build_pagination
from advocate.schemas.review import ReviewCreate, ReviewOut
from advocate.services import lawyer_service, review_service

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review = review_service.create_review(
        db,
        current_user,
        appointment_id=payload.appointment_id,
        rating=payload.rating,
        comment=payload.comment,
    )

    return {
        "success": True,
        "message": "Review created successfully",
        "data": {"review": ReviewOut.model_validate(review).to_wire()},
    }


@router.get("/mine")
def my_reviews(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reviews = review_service.list_my_reviews(db, current_user)

    return {
        "success": True,
        "data": {"reviews": [ReviewOut.model_validate(r).to_wire() for r in reviews]},
    }


@router.get("/lawyer/{lawyer_id}")
def lawyer_reviews(
    lawyer_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    lawyer_service.get_lawyer(db, lawyer_id)
    reviews, total = review_service.list_lawyer_reviews(db, lawyer_id, page=page, limit=limit)

    return {
        "success": True,
        "data": {
            "reviews": [ReviewOut.model_validate(r).to_wire() for r in reviews],
            "pagination": build_pagination(page, limit, total).to_wire(),
        },
    }
