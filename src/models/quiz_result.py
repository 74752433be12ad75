from datetime import datetime

import pytz
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base


class QuizResultModel(Base):
    __tablename__ = "quiz_results"
    __table_args__ = (
        UniqueConstraint(
            "quiz_id",
            "student_id",
            name="uq_quiz_results_quiz_student",
        ),
    )

    result_id = Column(String, primary_key=True, index=True)
    quiz_id = Column(
        String, ForeignKey("quizzes.quiz_id", ondelete="CASCADE"), index=True, nullable=False
    )
    class_id = Column(String, index=True, nullable=False)
    student_id = Column(
        String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False
    )
    student_name = Column(String, nullable=False)
    answers = Column(JSON, nullable=False, default=list)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    time_taken_seconds = Column(Integer, nullable=False, default=0)
    submitted_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(pytz.utc)
    )

    quiz = relationship("QuizModel", back_populates="results")
