from datetime import datetime

import pytz
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class QuizModel(Base):
    __tablename__ = "quizzes"

    quiz_id = Column(String, primary_key=True, index=True)
    class_id = Column(
        String, ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    teacher_id = Column(String, nullable=False)
    title = Column(String, nullable=False)
    # [{"question", "options", "correct_answer", "explanation"}, ...]
    questions = Column(JSON, nullable=False, default=list)
    duration_minutes = Column(Integer, nullable=False, default=15)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(pytz.utc)
    )

    results = relationship(
        "QuizResultModel",
        back_populates="quiz",
        cascade="all, delete-orphan",
    )
