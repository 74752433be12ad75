from datetime import datetime

import pytz
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class ClassModel(Base):
    __tablename__ = "classes"

    class_id = Column(String, primary_key=True, index=True)
    teacher_id = Column(String, ForeignKey("users.user_id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")

    # Denormalized counters, recomputed from the source tables on change
    student_count = Column(Integer, nullable=False, default=0)
    quiz_count = Column(Integer, nullable=False, default=0)
    average_score = Column(Float, nullable=False, default=0.0)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(pytz.utc)
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(pytz.utc)
    )

    teacher = relationship("UserModel")
    enrollments = relationship(
        "ClassEnrollmentModel",
        back_populates="class_",
        cascade="all, delete-orphan",
    )
    join_codes = relationship(
        "ClassJoinCodeModel",
        back_populates="class_",
        cascade="all, delete-orphan",
    )
