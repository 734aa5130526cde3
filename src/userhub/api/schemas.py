"""Pydantic schemas for the users API.

Learn: Pydantic v2 models validate request/response data. Separate
request schemas (input) from UserRead (output). UserRead is built from
an Identity and has no password field at all, so a hash can never be
serialized by accident.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

_USERNAME = r"^[A-Za-z0-9_.-]+$"


class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=1, max_length=100, pattern=_USERNAME)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class AddUserRequest(RegisterRequest):
    role: str = "USER"
    is_active: bool = True
    is_not_locked: bool = True


class UpdateUserRequest(AddUserRequest):
    pass


class LoginRequest(BaseModel):
    username: str
    password: str


class ResetPasswordRequest(BaseModel):
    email: str


class UserRead(BaseModel):
    id: int
    user_id: str
    first_name: str
    last_name: str
    username: str
    email: str
    profile_image_url: Optional[str] = None
    join_date: datetime
    last_login_date: Optional[datetime] = None
    last_login_date_display: Optional[datetime] = None
    role: str
    authorities: list[str]
    is_active: bool
    is_not_locked: bool

    @classmethod
    def from_identity(cls, identity) -> "UserRead":
        return cls(
            id=identity.id,
            user_id=identity.user_id,
            first_name=identity.first_name,
            last_name=identity.last_name,
            username=identity.username,
            email=identity.email,
            profile_image_url=identity.profile_image_url,
            join_date=identity.join_date,
            last_login_date=identity.last_login_date,
            last_login_date_display=identity.last_login_date_display,
            role=identity.role.value,
            authorities=list(identity.authorities),
            is_active=identity.is_active,
            is_not_locked=identity.is_not_locked,
        )


class LoginResponse(BaseModel):
    user: UserRead
    access_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str
