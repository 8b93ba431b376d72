from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from advocate.core.exceptions import ConflictException
from advocate.core.security import get_password_hash, verify_password
from advocate.models.user import User
from advocate.schemas.user import UserCreate


def create_user(db: Session, payload: UserCreate) -> User:
    email = payload.email.lower()

    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise ConflictException("User with this email already exists")

    user = User(
        email=email,
        hashed_password=get_password_hash(payload.password),
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )

    try:
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    except IntegrityError:
        db.rollback()
        raise ConflictException("User with this email already exists")


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == email.lower()).first()

    if not user:
        return None

    if not verify_password(password, user.hashed_password):
        return None

    return user


def get_active_user(db: Session, user_id: int) -> Optional[User]:
    user = db.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user
