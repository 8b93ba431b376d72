from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from advocate.core.dependencies import get_current_user
from advocate.core.exceptions import UnauthorizedException
from advocate.core.security import create_access_token
from advocate.db.session import get_db
from advocate.models.user import User
from advocate.schemas.user import Token, UserCreate, UserOut
from advocate.services.auth_service import authenticate_user, create_user

router = APIRouter(
    prefix="/auth",
    tags=["Auth"]
)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED
)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    user = create_user(db, payload)

    return {
        "success": True,
        "data": {
            "user": UserOut.model_validate(user).to_wire(),
            "token": create_access_token(user.id, user.role),
        },
    }


@router.post(
    "/login",
    response_model=Token,
    status_code=status.HTTP_200_OK
)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    user = authenticate_user(
        db,
        email=form_data.username,  # OAuth2 uses "username"
        password=form_data.password
    )

    if not user or not user.is_active:
        raise UnauthorizedException("Invalid email or password")

    return {
        "access_token": create_access_token(user.id, user.role),
        "token_type": "bearer"
    }


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {
        "success": True,
        "data": {"user": UserOut.model_validate(current_user).to_wire()},
    }
