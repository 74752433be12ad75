"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes,
following Google Python Style Guide and FastAPI best practices.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from utils import class_manager
from utils import email_sender
from utils import enrollment_manager
from utils import quiz_manager
from utils import user_manager

# Singleton for EmailSender (holds the SMTP connection config)
_email_sender_instance: email_sender.EmailSender = None


def get_user_manager(db: Session = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_class_manager(db: Session = Depends(get_db)) -> class_manager.ClassManager:
    """Get ClassManager instance with request-scoped DB session."""
    return class_manager.ClassManager(db)


def get_enrollment_manager(
    db: Session = Depends(get_db),
) -> enrollment_manager.EnrollmentManager:
    """Get EnrollmentManager instance with request-scoped DB session."""
    return enrollment_manager.EnrollmentManager(db)


def get_quiz_manager(db: Session = Depends(get_db)) -> quiz_manager.QuizManager:
    """Get QuizManager instance with request-scoped DB session."""
    return quiz_manager.QuizManager(db)


def get_email_sender() -> email_sender.EmailSender:
    """Get EmailSender singleton instance.

    Returns:
        EmailSender instance (singleton).
    """
    global _email_sender_instance
    if _email_sender_instance is None:
        _email_sender_instance = email_sender.EmailSender()
    return _email_sender_instance


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
ClassManagerDep = Annotated[
    class_manager.ClassManager, Depends(get_class_manager)
]
EnrollmentManagerDep = Annotated[
    enrollment_manager.EnrollmentManager, Depends(get_enrollment_manager)
]
QuizManagerDep = Annotated[
    quiz_manager.QuizManager, Depends(get_quiz_manager)
]
EmailSenderDep = Annotated[
    email_sender.EmailSender, Depends(get_email_sender)
]
