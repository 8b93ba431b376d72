import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from advocate.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from advocate.models.appointment import Appointment, AppointmentStatus
from advocate.models.review import Review
from advocate.models.user import User, UserRole

logger = logging.getLogger(__name__)

DUPLICATE_REVIEW = "You have already reviewed this appointment"


def create_review(
    db: Session,
    client: User,
    *,
    appointment_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> Review:
    """One review per appointment, by its client, once it is COMPLETED."""
    if client.role != UserRole.CLIENT.value:
        raise ForbiddenException("Only clients can create reviews")

    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundException("Appointment not found")

    if appointment.client_id != client.id:
        raise ForbiddenException("You can only review your own appointments")

    if appointment.status != AppointmentStatus.COMPLETED.value:
        raise ValidationException("Only completed appointments can be reviewed")

    if db.query(Review.id).filter(Review.appointment_id == appointment.id).first():
        raise ConflictException(DUPLICATE_REVIEW)

    review = Review(
        appointment_id=appointment.id,
        client_id=client.id,
        lawyer_id=appointment.lawyer_id,
        rating=rating,
        comment=comment or None,
    )

    try:
        db.add(review)
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent review of the same appointment
        db.rollback()
        raise ConflictException(DUPLICATE_REVIEW)

    db.refresh(review)
    logger.info("Review %s for lawyer %s by client %s", review.id, review.lawyer_id, client.id)
    return review


def list_lawyer_reviews(
    db: Session,
    lawyer_id: int,
    *,
    page: int,
    limit: int,
) -> tuple[list[Review], int]:
    query = db.query(Review).filter(Review.lawyer_id == lawyer_id)

    total = query.count()
    reviews = (
        query.order_by(Review.created_at.desc(), Review.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return reviews, total


def list_my_reviews(db: Session, user: User) -> list[Review]:
    query = db.query(Review)
    if user.role == UserRole.LAWYER.value:
        query = query.filter(Review.lawyer_id == user.id)
    else:
        query = query.filter(Review.client_id == user.id)

    return query.order_by(Review.created_at.desc(), Review.id.desc()).all()


def rating_summary(db: Session, lawyer_ids: list[int]) -> dict[int, tuple[float, int]]:
    """lawyer id -> (average rating rounded to one decimal, review count)."""
    if not lawyer_ids:
        return {}

    rows = (
        db.query(Review.lawyer_id, func.avg(Review.rating), func.count(Review.id))
        .filter(Review.lawyer_id.in_(lawyer_ids))
        .group_by(Review.lawyer_id)
        .all()
    )
    return {lawyer_id: (round(float(average), 1), count) for lawyer_id, average, count in rows}
