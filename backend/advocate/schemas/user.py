from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from advocate.schemas.base import CamelModel


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    role: Literal["CLIENT", "LAWYER"]
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = None


# OAuth2 clients expect these two keys verbatim, so no camelCase here
class Token(BaseModel):
    access_token: str
    token_type: str


class UserOut(CamelModel):
    id: int
    email: str
    role: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    is_active: bool


class PartyOut(CamelModel):
    """Counterpart details shown on an appointment."""

    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    profile_picture: Optional[str] = None


class PublicUserOut(CamelModel):
    """What other users (and every live broadcast) may see of a user."""

    id: int
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None
