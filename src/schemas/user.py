"""User schema definitions."""

from typing import Literal, Optional

from pydantic import EmailStr, Field

from schemas.common import ApiModel

UserType = Literal["teacher", "student"]


class RegisterRequest(ApiModel):
    user_type: UserType
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    enrollment: Optional[str] = None
    password: str


class LoginRequest(ApiModel):
    """Teachers log in with email, students with their enrollment number."""

    user_type: UserType
    email: Optional[str] = None
    enrollment: Optional[str] = None
    password: str


class UserInfo(ApiModel):
    user_id: str
    role: str
    name: str
    email: Optional[str] = None
    enrollment: Optional[str] = None
    is_verified: bool
    created_at: Optional[str] = None


class RegisterResponse(ApiModel):
    success: bool = True
    message: str
    user_id: str


class LoginResponse(ApiModel):
    success: bool = True
    token: str
    user: UserInfo


class CurrentUserResponse(ApiModel):
    success: bool = True
    user: UserInfo


class EmailRequest(ApiModel):
    email: EmailStr


class ChangeEmailRequest(ApiModel):
    new_email: EmailStr


class ResetPasswordRequest(ApiModel):
    new_password: str
    confirm_new_password: str
