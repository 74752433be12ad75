"""Authentication routes.

This module handles HTTP endpoints for registration, login, email
verification and password reset, plus the dependencies that resolve the
caller's identity and role from a bearer token.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from core.dependencies import EmailSenderDep, UserManagerDep
from core.exceptions import InvalidInputError
from models.user import UserModel
from schemas.common import SuccessResponse
from schemas.user import (
    ChangeEmailRequest,
    CurrentUserResponse,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserInfo,
)
from utils.time_utils import to_iso, utc_now
from utils.user_manager import STUDENT, TEACHER

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# HTTP Bearer token security
security = HTTPBearer()

RESET_REQUESTED_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token.
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token string.
    """
    to_encode = data.copy()
    expire = utc_now() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """Verify JWT token from Authorization header.

    Args:
        credentials: HTTP Bearer token credentials.

    Returns:
        Decoded token payload.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    try:
        payload = jwt.decode(
            credentials.credentials, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM]
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    if payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return payload


def get_current_user(
    user_manager: UserManagerDep,
    token_payload: dict = Depends(verify_token),
) -> UserModel:
    """Get current authenticated user.

    The role claim must still match the stored account.

    Raises:
        HTTPException: If user is not found.
    """
    user = user_manager.get_user_by_id(token_payload["sub"])
    if user is None or user.role != token_payload.get("role"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def require_teacher(current_user: UserModel = Depends(get_current_user)) -> UserModel:
    if current_user.role != TEACHER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Teachers only.",
        )
    return current_user


def require_student(current_user: UserModel = Depends(get_current_user)) -> UserModel:
    if current_user.role != STUDENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Students only.",
        )
    return current_user


def build_user_info(user: UserModel) -> UserInfo:
    return UserInfo(
        user_id=user.user_id,
        role=user.role,
        name=user.name,
        email=user.email,
        enrollment=user.enrollment,
        is_verified=user.is_verified,
        created_at=to_iso(user.created_at),
    )


@router.post("/register", response_model=RegisterResponse, summary="Register")
def register(
    req: RegisterRequest,
    user_manager: UserManagerDep,
    email_sender: EmailSenderDep,
    background_tasks: BackgroundTasks,
) -> RegisterResponse:
    """Register a teacher (by email) or a student (by enrollment number).

    A verification email is queued when the account has an email address.
    """
    user = user_manager.create_user(
        role=req.user_type,
        name=req.name,
        password=req.password,
        email=req.email,
        enrollment=req.enrollment,
    )
    if user.email:
        token = user_manager.issue_verification_token(user.user_id)
        background_tasks.add_task(
            email_sender.send_verification_email, user.email, user.name, token
        )

    return RegisterResponse(
        message="User registered successfully",
        user_id=user.user_id,
    )


@router.post("/login", response_model=LoginResponse, summary="Login")
def login(req: LoginRequest, user_manager: UserManagerDep) -> LoginResponse:
    identifier = req.email if req.user_type == TEACHER else req.enrollment
    if not identifier:
        field = "Email" if req.user_type == TEACHER else "Enrollment number"
        raise InvalidInputError(f"{field} is required.")

    user = user_manager.authenticate(req.user_type, identifier, req.password)
    access_token = create_access_token(data={"sub": user.user_id, "role": user.role})
    logger.info("User %s logged in as %s", user.user_id, user.role)
    return LoginResponse(token=access_token, user=build_user_info(user))


@router.post("/logout", response_model=SuccessResponse, summary="Logout")
def logout() -> SuccessResponse:
    """Logout endpoint.

    Note: Since we're using stateless JWT tokens, logout is handled
    client-side by removing the token. This endpoint exists for API
    consistency.
    """
    return SuccessResponse(message="Logged out successfully")


@router.get("/me", response_model=CurrentUserResponse, summary="Current user")
def get_current_user_info(
    current_user: UserModel = Depends(get_current_user),
) -> CurrentUserResponse:
    return CurrentUserResponse(user=build_user_info(current_user))


@router.get("/verify-email/{token}", response_model=SuccessResponse, summary="Verify email")
def verify_email(token: str, user_manager: UserManagerDep) -> SuccessResponse:
    _, changed = user_manager.verify_email(token)
    if changed:
        return SuccessResponse(
            message="Your email address has been successfully updated and verified!"
        )
    return SuccessResponse(
        message="Your email has been successfully verified! You can now log in."
    )


@router.post(
    "/resend-verification", response_model=SuccessResponse, summary="Resend verification"
)
def resend_verification(
    user_manager: UserManagerDep,
    email_sender: EmailSenderDep,
    background_tasks: BackgroundTasks,
    current_user: UserModel = Depends(get_current_user),
) -> SuccessResponse:
    recipient = current_user.pending_email or current_user.email
    if not recipient:
        raise InvalidInputError("No email address on file.")
    if current_user.is_verified and not current_user.pending_email:
        raise InvalidInputError("Your email address is already verified. No action needed.")

    token = user_manager.issue_verification_token(current_user.user_id)
    background_tasks.add_task(
        email_sender.send_verification_email, recipient, current_user.name, token
    )
    return SuccessResponse(message="Verification email sent.")


@router.post("/change-email", response_model=SuccessResponse, summary="Change email")
def change_email(
    req: ChangeEmailRequest,
    user_manager: UserManagerDep,
    email_sender: EmailSenderDep,
    background_tasks: BackgroundTasks,
    current_user: UserModel = Depends(get_current_user),
) -> SuccessResponse:
    """Stage a new email address; it replaces the old one once verified."""
    token = user_manager.request_email_change(current_user.user_id, req.new_email)
    background_tasks.add_task(
        email_sender.send_verification_email, req.new_email, current_user.name, token
    )
    return SuccessResponse(
        message="A verification link has been sent to your new email address."
    )


@router.post("/forgot-password", response_model=SuccessResponse, summary="Forgot password")
def forgot_password(
    req: EmailRequest,
    user_manager: UserManagerDep,
    email_sender: EmailSenderDep,
    background_tasks: BackgroundTasks,
) -> SuccessResponse:
    """Start a password reset.

    The response is identical whether or not the email is registered.
    """
    issued = user_manager.request_password_reset(req.email)
    if issued is not None:
        user, token = issued
        background_tasks.add_task(
            email_sender.send_password_reset_email, user.email, user.name, token
        )
    return SuccessResponse(message=RESET_REQUESTED_MESSAGE)


@router.get(
    "/reset-password/{token}", response_model=SuccessResponse, summary="Check reset token"
)
def check_reset_token(token: str, user_manager: UserManagerDep) -> SuccessResponse:
    if user_manager.get_user_by_reset_token(token) is None:
        raise InvalidInputError(
            "The password reset link is invalid or has expired. Please request a new one."
        )
    return SuccessResponse(message="Reset link is valid.")


@router.post(
    "/reset-password/{token}", response_model=SuccessResponse, summary="Reset password"
)
def reset_password(
    token: str, req: ResetPasswordRequest, user_manager: UserManagerDep
) -> SuccessResponse:
    user_manager.reset_password(token, req.new_password, req.confirm_new_password)
    return SuccessResponse(
        message="Your password has been successfully reset! "
        "You can now log in with your new password."
    )
