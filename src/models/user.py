"""User database model.

Teachers and students share one table; the ``role`` column tells them apart.
"""

from datetime import datetime

import pytz
from sqlalchemy import Boolean, Column, DateTime, String

from .base import Base


class UserModel(Base):
    """User database model."""

    __tablename__ = "users"

    user_id = Column(String, primary_key=True, index=True)
    role = Column(String, nullable=False, index=True)  # 'teacher' or 'student'
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    enrollment = Column(String, unique=True, index=True, nullable=True)  # students only
    password_hash = Column(String, nullable=False)

    is_verified = Column(Boolean, nullable=False, default=False)
    pending_email = Column(String, nullable=True)
    verification_token = Column(String, index=True, nullable=True)
    verification_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    reset_password_token = Column(String, index=True, nullable=True)
    reset_password_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(pytz.utc),
    )
