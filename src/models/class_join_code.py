"""Class join code database model.

A join code is a short-lived, usage-capped secret a teacher hands out so
students can request enrollment in a class.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class ClassJoinCodeModel(Base):
    """Class join code database model."""

    __tablename__ = "class_join_codes"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(
        String, ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    teacher_id = Column(String, nullable=False)
    code = Column(String, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    usage_count = Column(Integer, nullable=False, default=0)
    max_usage = Column(Integer, nullable=False, default=50)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    class_ = relationship("ClassModel", back_populates="join_codes")
