from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from advocate.core.exceptions import NotFoundException
from advocate.models.user import User, UserRole


def _active_lawyers(db: Session):
    return db.query(User).filter(User.role == UserRole.LAWYER.value, User.is_active.is_(True))


def list_lawyers(
    db: Session,
    *,
    search: Optional[str],
    page: int,
    limit: int,
) -> tuple[list[User], int]:
    """Active lawyers, newest accounts first, optionally matched by name or email."""
    query = _active_lawyers(db)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )

    total = query.count()
    lawyers = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return lawyers, total


def get_lawyer(db: Session, lawyer_id: int) -> User:
    lawyer = _active_lawyers(db).filter(User.id == lawyer_id).first()
    if not lawyer:
        raise NotFoundException("Lawyer not found")
    return lawyer
