from datetime import datetime

import pytz
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class ClassEnrollmentModel(Base):
    __tablename__ = "class_enrollments"
    # One logical row per (class, student); leaving a class flips is_active
    __table_args__ = (
        UniqueConstraint(
            "class_id",
            "student_id",
            name="uq_class_enrollments_class_student",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(
        String, ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    student_id = Column(
        String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False
    )
    student_name = Column(String, nullable=False)
    student_enrollment = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    enrolled_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(pytz.utc)
    )

    class_ = relationship("ClassModel", back_populates="enrollments")
