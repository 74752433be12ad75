"""User management utilities.

This module provides account storage for teachers and students, password
hashing, email verification tokens and password reset tokens. Both roles live
in one table, so token lookups are a single query regardless of role.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import (
    MIN_PASSWORD_LENGTH,
    PASSWORD_RESET_TOKEN_EXPIRY_MINUTES,
    VERIFICATION_TOKEN_EXPIRY_HOURS,
)
from core.exceptions import AuthenticationError, InvalidInputError, NotFoundError
from models.user import UserModel
from utils.time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12

TEACHER = "teacher"
STUDENT = "student"
ROLES = (TEACHER, STUDENT)


class UserAlreadyExistsError(InvalidInputError):
    """Exception raised when trying to create a user that already exists."""

    pass


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def normalize_enrollment(enrollment: Optional[str]) -> Optional[str]:
    if enrollment is None:
        return None
    enrollment = enrollment.strip().upper()
    return enrollment or None


class UserManager:
    """Manages user data persistence and operations using SQLAlchemy."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            clock: Returns the current aware UTC time.
        """
        self.db = db
        self.clock = clock

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        # Truncate password if it exceeds bcrypt's 72-byte limit
        password_bytes = password.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        try:
            return bcrypt.checkpw(
                plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8")
            )
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    def create_user(
        self,
        role: str,
        name: str,
        password: str,
        email: Optional[str] = None,
        enrollment: Optional[str] = None,
    ) -> UserModel:
        """Create a new teacher or student account.

        Teachers are identified by email, students by enrollment number.

        Args:
            role: 'teacher' or 'student'.
            name: Display name.
            password: Plain text password.
            email: Email address (required for teachers).
            enrollment: Enrollment number (required for students).

        Returns:
            Created UserModel instance.

        Raises:
            InvalidInputError: If required fields are missing.
            UserAlreadyExistsError: If the email or enrollment is taken.
        """
        if role not in ROLES:
            raise InvalidInputError(
                f"Invalid role: {role}. Must be 'teacher' or 'student'."
            )
        name = (name or "").strip()
        email = normalize_email(email)
        enrollment = normalize_enrollment(enrollment) if role == STUDENT else None
        if not name:
            raise InvalidInputError("Name is required.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
            )
        if role == TEACHER and not email:
            raise InvalidInputError("Email is required for teachers.")
        if role == STUDENT and not enrollment:
            raise InvalidInputError("Enrollment number is required for students.")

        if email and self.get_user_by_email(email):
            raise UserAlreadyExistsError("User with this email already exists.")
        if enrollment and self.get_student_by_enrollment(enrollment):
            raise UserAlreadyExistsError(
                "User with this enrollment number already exists."
            )

        model = UserModel(
            user_id=secrets.token_hex(12),
            role=role,
            name=name,
            email=email,
            enrollment=enrollment,
            password_hash=self.hash_password(password),
            is_verified=False,
            created_at=self.clock(),
        )
        # Two concurrent registrations can both pass the checks above; the
        # unique constraints catch the loser.
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
        except IntegrityError as e:
            self.db.rollback()
            raise UserAlreadyExistsError("User already exists.") from e

        logger.info("Created %s account: %s", role, model.user_id)
        return model

    def authenticate(self, role: str, identifier: str, password: str) -> UserModel:
        """Check credentials for the given role.

        Args:
            role: 'teacher' (identifier is an email) or 'student'
                (identifier is an enrollment number).
            identifier: Email or enrollment number.
            password: Plain text password.

        Returns:
            The authenticated UserModel.

        Raises:
            AuthenticationError: If the account is unknown or the password
                does not match.
        """
        if role == TEACHER:
            user = self.get_user_by_email(identifier)
        elif role == STUDENT:
            user = self.get_student_by_enrollment(identifier)
        else:
            raise AuthenticationError("Invalid user type.")

        if user is None or user.role != role:
            raise AuthenticationError("Invalid credentials.")
        if not self.verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials.")
        return user

    def get_user_by_id(self, user_id: str) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.user_id == user_id).first()

    def require_user(self, user_id: str, role: Optional[str] = None) -> UserModel:
        user = self.get_user_by_id(user_id)
        if user is None or (role and user.role != role):
            raise NotFoundError(f"{(role or 'user').capitalize()} record not found.")
        return user

    def get_user_by_email(self, email: str) -> Optional[UserModel]:
        email = normalize_email(email)
        if not email:
            return None
        return self.db.query(UserModel).filter(UserModel.email == email).first()

    def get_student_by_enrollment(self, enrollment: str) -> Optional[UserModel]:
        enrollment = normalize_enrollment(enrollment)
        if not enrollment:
            return None
        return (
            self.db.query(UserModel)
            .filter(UserModel.enrollment == enrollment, UserModel.role == STUDENT)
            .first()
        )

    # --- Email verification ---

    def issue_verification_token(self, user_id: str) -> str:
        """Create a fresh email verification token for the user.

        Args:
            user_id: Account to verify.

        Returns:
            The token to embed in the verification link.
        """
        user = self.require_user(user_id)
        user.verification_token = secrets.token_hex(32)
        user.verification_token_expires_at = self.clock() + timedelta(
            hours=VERIFICATION_TOKEN_EXPIRY_HOURS
        )
        self.db.commit()
        return user.verification_token

    def request_email_change(self, user_id: str, new_email: str) -> str:
        """Stage a new email address until its verification link is opened."""
        new_email = normalize_email(new_email)
        if not new_email:
            raise InvalidInputError("Email is required.")
        if self.get_user_by_email(new_email):
            raise UserAlreadyExistsError("User with this email already exists.")
        user = self.require_user(user_id)
        user.pending_email = new_email
        self.db.commit()
        return self.issue_verification_token(user_id)

    def verify_email(self, token: str) -> Tuple[UserModel, bool]:
        """Consume a verification token.

        Args:
            token: Token from the verification link.

        Returns:
            Tuple of the verified user and whether a pending email change
            was applied.

        Raises:
            InvalidInputError: If the token is unknown, expired, or the
                account is already verified.
        """
        user = self._find_by_token(
            UserModel.verification_token,
            UserModel.verification_token_expires_at,
            token,
        )
        if user is None:
            raise InvalidInputError(
                "The verification link is invalid or has expired. "
                "Please try resending the verification email."
            )

        if user.pending_email:
            user.email = user.pending_email
            user.pending_email = None
            changed = True
        elif user.is_verified:
            raise InvalidInputError(
                "Your email address is already verified. No action needed."
            )
        else:
            changed = False

        user.is_verified = True
        user.verification_token = None
        user.verification_token_expires_at = None
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise UserAlreadyExistsError("User with this email already exists.") from e
        logger.info("Verified email for user %s (changed=%s)", user.user_id, changed)
        return user, changed

    # --- Password reset ---

    def request_password_reset(self, email: str) -> Optional[Tuple[UserModel, str]]:
        """Issue a reset token when an account with this email exists.

        Returns:
            Tuple of the user and token, or None for unknown emails. Callers
            must answer both cases identically to avoid email enumeration.
        """
        user = self.get_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return None
        user.reset_password_token = secrets.token_hex(32)
        user.reset_password_token_expires_at = self.clock() + timedelta(
            minutes=PASSWORD_RESET_TOKEN_EXPIRY_MINUTES
        )
        self.db.commit()
        return user, user.reset_password_token

    def get_user_by_reset_token(self, token: str) -> Optional[UserModel]:
        return self._find_by_token(
            UserModel.reset_password_token,
            UserModel.reset_password_token_expires_at,
            token,
        )

    def reset_password(
        self, token: str, new_password: str, confirm_new_password: str
    ) -> UserModel:
        """Set a new password using a reset token.

        Raises:
            InvalidInputError: If the token is invalid or expired, the
                passwords differ, or the password is too short.
        """
        user = self.get_user_by_reset_token(token)
        if user is None:
            raise InvalidInputError(
                "The password reset link is invalid or has expired. "
                "Please request a new one."
            )
        if new_password != confirm_new_password:
            raise InvalidInputError("Passwords do not match.")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
            )

        user.password_hash = self.hash_password(new_password)
        user.reset_password_token = None
        user.reset_password_token_expires_at = None
        self.db.commit()
        logger.info("Password reset for user %s", user.user_id)
        return user

    def _find_by_token(self, token_column, expires_column, token: str) -> Optional[UserModel]:
        if not token:
            return None
        user = self.db.query(UserModel).filter(token_column == token).first()
        if user is None:
            return None
        expires_at = as_utc(getattr(user, expires_column.key))
        if expires_at is None or expires_at <= self.clock():
            return None
        return user
