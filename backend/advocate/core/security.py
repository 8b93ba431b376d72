import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from advocate.core.config import settings
from advocate.core.exceptions import UnauthorizedException


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto"
)

# -------------------- Password utils --------------------

def _prehash(password: str) -> str:
    """
    Pre-hash to avoid bcrypt 72-byte limit
    """
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_prehash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(_prehash(plain_password), hashed_password)


# -------------------- JWT utils --------------------

def create_access_token(
    user_id: int,
    role: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    to_encode = {
        "sub": str(user_id),
        "role": role,
        "exp": expire,
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def decode_access_token(token: str) -> dict:
    """
    Returns the verified claims. The token must carry a numeric `sub`
    (user id) and a `role`.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        raise UnauthorizedException("Invalid or expired token.")

    sub = payload.get("sub")
    if sub is None or not str(sub).isdigit() or not payload.get("role"):
        raise UnauthorizedException("Invalid or expired token.")

    return {"user_id": int(sub), "role": payload["role"]}
