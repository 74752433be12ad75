"""Class join request database model."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import relationship

from .base import Base

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


class ClassJoinRequestModel(Base):
    """A student's ask to be enrolled in a class, awaiting teacher review."""

    __tablename__ = "class_join_requests"
    # At most one pending request per (class, student)
    __table_args__ = (
        Index(
            "uq_class_join_requests_pending",
            "class_id",
            "student_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    request_id = Column(String, primary_key=True, index=True)
    class_id = Column(
        String, ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    student_id = Column(
        String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False
    )
    student_name = Column(String, nullable=False)
    student_enrollment = Column(String, nullable=True)
    join_code = Column(String, nullable=False)
    status = Column(String, nullable=False, default=PENDING)
    requested_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processed_by = Column(String, nullable=True)
    rejection_reason = Column(String, nullable=True)

    class_ = relationship("ClassModel")
