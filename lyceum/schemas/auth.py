"""
Request and response bodies for accounts and tokens.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from lyceum.kernel.models.user import UserRole

PASSWORD_RULES = (
    (str.isupper, "an uppercase letter"),
    (str.islower, "a lowercase letter"),
    (str.isdigit, "a digit"),
)


def strong_password(value: str) -> str:
    """At least 8 characters with upper case, lower case and a digit."""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    missing = [label for check, label in PASSWORD_RULES if not any(check(c) for c in value)]
    if missing:
        raise ValueError("Password must contain " + ", ".join(missing))
    return value


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("password")
    @classmethod
    def password_is_strong(cls, value: str) -> str:
        return strong_password(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserProfileUpdate(BaseModel):
    """Fields left out are not changed."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class RoleChangeRequest(BaseModel):
    role: UserRole


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    # None revokes every refresh token the user holds
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_is_strong(cls, value: str) -> str:
        return strong_password(value)
