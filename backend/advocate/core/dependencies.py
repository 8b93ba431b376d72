from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from advocate.core.config import settings
from advocate.core.exceptions import UnauthorizedException
from advocate.core.security import decode_access_token
from advocate.db.session import get_db
from advocate.models.user import User
from advocate.services.auth_service import get_active_user


oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False,
)


def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    if not token:
        raise UnauthorizedException("No token provided. Authorization denied.")

    claims = decode_access_token(token)

    user = get_active_user(db, claims["user_id"])
    if not user:
        raise UnauthorizedException("User not found or inactive.")

    return user
