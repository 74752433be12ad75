"""Custom exception classes for the Quizzie classroom API.

This module defines application-specific exceptions following Google Python
Style Guide. Every exception carries the HTTP status code it is rendered
with at the request boundary.
"""


class QuizzieError(Exception):
    """Base exception for all Quizzie errors."""

    status_code = 500

    def __init__(self, message: str):
        """Initialize the exception.

        Args:
            message: Human-readable message returned to the client.
        """
        self.message = message
        super().__init__(message)


class NotFoundError(QuizzieError):
    """Raised when a record is missing or not owned by the caller."""

    status_code = 404


class PermissionDeniedError(QuizzieError):
    """Raised when the caller may not access an existing record."""

    status_code = 403


class AuthenticationError(QuizzieError):
    """Raised when credentials are missing or wrong."""

    status_code = 401


class InvalidInputError(QuizzieError):
    """Raised when request data fails a business rule."""

    status_code = 400


class JoinCodeExpiredError(QuizzieError):
    """Raised when a join code is past its expiry timestamp."""

    status_code = 400

    def __init__(self, message: str = "This join code has expired."):
        super().__init__(message)


class UsageExceededError(QuizzieError):
    """Raised when a join code has reached its usage cap."""

    status_code = 400

    def __init__(self, message: str = "This join code has reached its usage limit."):
        super().__init__(message)


class AlreadyEnrolledError(QuizzieError):
    """Raised when the student already has an active enrollment."""

    status_code = 400

    def __init__(self, message: str = "You are already enrolled in this class."):
        super().__init__(message)


class RequestPendingError(QuizzieError):
    """Raised when a pending join request already exists."""

    status_code = 400

    def __init__(
        self, message: str = "You already have a pending request for this class."
    ):
        super().__init__(message)


class InvalidActionError(QuizzieError):
    """Raised when a join request action is neither approve nor reject."""

    status_code = 400

    def __init__(self, action: str):
        """Initialize the exception.

        Args:
            action: The unrecognized action verb.
        """
        self.action = action
        super().__init__(
            f"Invalid action '{action}'. Must be \"approve\" or \"reject\"."
        )
