"""Quiz and quiz result management.

Quiz content is produced elsewhere (teachers or an external generator) and
handed in ready-made; this module stores it, scores submissions and derives
class rankings and per-student analytics from the stored results.
"""

import logging
import secrets
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import InvalidInputError, NotFoundError, PermissionDeniedError
from models.quiz import QuizModel
from models.quiz_result import QuizResultModel
from utils.class_manager import ClassManager
from utils.time_utils import to_iso, utc_now
from utils.user_manager import STUDENT, TEACHER, UserManager

logger = logging.getLogger(__name__)

OPTIONS_PER_QUESTION = 4


class QuizManager:
    """Manages quizzes, submissions and result analytics."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.classes = ClassManager(db, clock=clock)
        self.users = UserManager(db, clock=clock)

    def create_quiz(
        self,
        class_id: str,
        teacher_id: str,
        title: str,
        questions: List[dict],
        duration_minutes: int = 15,
    ) -> QuizModel:
        """Store a quiz for an owned class.

        Args:
            class_id: Class ID.
            teacher_id: Caller, must own the class.
            title: Quiz title.
            questions: Dicts with question, options, correct_answer and an
                optional explanation. correct_answer must be one of options.
            duration_minutes: Time allowed to take the quiz.

        Returns:
            Created QuizModel.

        Raises:
            ClassNotFoundError: If the class is missing or not owned.
            InvalidInputError: If the quiz content is malformed.
        """
        self.classes.get_owned_class(class_id, teacher_id)
        title = (title or "").strip()
        if not title:
            raise InvalidInputError("Quiz title is required.")
        if not questions:
            raise InvalidInputError("A quiz needs at least one question.")
        if duration_minutes < 1:
            raise InvalidInputError("Duration must be at least one minute.")
        for index, question in enumerate(questions, start=1):
            options = question.get("options") or []
            if not (question.get("question") or "").strip():
                raise InvalidInputError(f"Question {index} has no text.")
            if len(options) != OPTIONS_PER_QUESTION:
                raise InvalidInputError(
                    f"Question {index} must have exactly {OPTIONS_PER_QUESTION} options."
                )
            if question.get("correct_answer") not in options:
                raise InvalidInputError(
                    f"Question {index} has a correct answer that is not one of its options."
                )

        quiz = QuizModel(
            quiz_id=secrets.token_hex(12),
            class_id=class_id,
            teacher_id=teacher_id,
            title=title,
            questions=[
                {
                    "question": q["question"].strip(),
                    "options": list(q["options"]),
                    "correct_answer": q["correct_answer"],
                    "explanation": q.get("explanation") or "",
                }
                for q in questions
            ],
            duration_minutes=duration_minutes,
            is_active=True,
            created_at=self.clock(),
        )
        self.db.add(quiz)
        self.db.flush()
        self.classes.recompute_quiz_stats(class_id)
        self.db.commit()
        self.db.refresh(quiz)
        logger.info("Created quiz %s in class %s", quiz.quiz_id, class_id)
        return quiz

    def get_quiz(self, quiz_id: str) -> QuizModel:
        quiz = (
            self.db.query(QuizModel)
            .filter(QuizModel.quiz_id == quiz_id, QuizModel.is_active.is_(True))
            .first()
        )
        if not quiz:
            raise NotFoundError("Quiz not found.")
        return quiz

    def get_quiz_for_user(self, quiz_id: str, user_id: str, role: str) -> QuizModel:
        quiz = self.get_quiz(quiz_id)
        self.classes.get_class_for_user(quiz.class_id, user_id, role)
        return quiz

    def list_quizzes(self, class_id: str, user_id: str, role: str) -> List[QuizModel]:
        self.classes.get_class_for_user(class_id, user_id, role)
        return (
            self.db.query(QuizModel)
            .filter(QuizModel.class_id == class_id, QuizModel.is_active.is_(True))
            .order_by(QuizModel.created_at.desc())
            .all()
        )

    def get_result(self, quiz_id: str, student_id: str) -> Optional[QuizResultModel]:
        return (
            self.db.query(QuizResultModel)
            .filter(
                QuizResultModel.quiz_id == quiz_id,
                QuizResultModel.student_id == student_id,
            )
            .first()
        )

    def submit_quiz(
        self,
        quiz_id: str,
        student_id: str,
        answers: List[Optional[str]],
        time_taken_seconds: int = 0,
    ) -> QuizResultModel:
        """Score and store a student's answers.

        Args:
            quiz_id: Quiz to submit.
            student_id: Caller, must be actively enrolled in the quiz's class.
            answers: Chosen option per question, in question order; missing
                or None entries count as wrong.
            time_taken_seconds: Time the student spent.

        Returns:
            Stored QuizResultModel.

        Raises:
            NotFoundError: If the quiz does not exist.
            PermissionDeniedError: If the student is not enrolled.
            InvalidInputError: If the student already submitted this quiz.
        """
        quiz = self.get_quiz(quiz_id)
        if not self.classes.is_enrolled(quiz.class_id, student_id):
            raise PermissionDeniedError("Access denied. You are not enrolled in this class.")
        if self.get_result(quiz_id, student_id):
            raise InvalidInputError("You have already submitted this quiz.")
        student = self.users.require_user(student_id, role=STUDENT)

        total = len(quiz.questions)
        padded = list(answers[:total]) + [None] * max(0, total - len(answers))
        score = sum(
            1
            for question, answer in zip(quiz.questions, padded)
            if answer is not None and answer == question["correct_answer"]
        )
        result = QuizResultModel(
            result_id=secrets.token_hex(12),
            quiz_id=quiz_id,
            class_id=quiz.class_id,
            student_id=student_id,
            student_name=student.name,
            answers=padded,
            score=score,
            total_questions=total,
            percentage=round(score / total * 100, 1) if total else 0.0,
            time_taken_seconds=max(0, int(time_taken_seconds or 0)),
            submitted_at=self.clock(),
        )
        self.db.add(result)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise InvalidInputError("You have already submitted this quiz.") from e
        self.classes.recompute_quiz_stats(quiz.class_id)
        self.db.commit()
        self.db.refresh(result)
        logger.info(
            "Student %s scored %d/%d on quiz %s", student_id, score, total, quiz_id
        )
        return result

    def delete_quiz(self, quiz_id: str, teacher_id: str) -> None:
        """Soft-delete a quiz and refresh the class's quiz counter.

        Submitted results are kept for rankings and analytics.
        """
        quiz = self.get_quiz(quiz_id)
        self.classes.get_owned_class(quiz.class_id, teacher_id)
        quiz.is_active = False
        self.classes.recompute_quiz_stats(quiz.class_id)
        self.db.commit()
        logger.info("Deleted quiz %s from class %s", quiz_id, quiz.class_id)

    def list_results(self, quiz_id: str, teacher_id: str) -> List[QuizResultModel]:
        quiz = self.get_quiz(quiz_id)
        self.classes.get_owned_class(quiz.class_id, teacher_id)
        return (
            self.db.query(QuizResultModel)
            .filter(QuizResultModel.quiz_id == quiz_id)
            .order_by(
                QuizResultModel.percentage.desc(),
                QuizResultModel.time_taken_seconds.asc(),
            )
            .all()
        )

    def class_rankings(self, class_id: str, user_id: str, role: str) -> List[dict]:
        """Rank the class's active students by their quiz results.

        Ordering is average percentage (high first), then quizzes taken
        (more first), then total time (less first). Students without results
        are listed last with zeros.
        """
        self.classes.get_class_for_user(class_id, user_id, role)
        students = self.classes.list_students(class_id)
        results = (
            self.db.query(QuizResultModel)
            .filter(QuizResultModel.class_id == class_id)
            .all()
        )
        by_student: Dict[str, List[QuizResultModel]] = {}
        for result in results:
            by_student.setdefault(result.student_id, []).append(result)

        rows = []
        for enrollment in students:
            own = by_student.get(enrollment.student_id, [])
            taken = len(own)
            rows.append(
                {
                    "student_id": enrollment.student_id,
                    "student_name": enrollment.student_name,
                    "student_enrollment": enrollment.student_enrollment,
                    "quizzes_taken": taken,
                    "average_percentage": round(
                        sum(r.percentage for r in own) / taken, 1
                    ) if taken else 0.0,
                    "total_time_seconds": sum(r.time_taken_seconds for r in own),
                }
            )
        rows.sort(
            key=lambda r: (
                -r["average_percentage"],
                -r["quizzes_taken"],
                r["total_time_seconds"],
            )
        )
        for rank, row in enumerate(rows, start=1):
            row["rank"] = rank
        return rows

    def last_quiz_rankings(self, class_id: str, user_id: str, role: str) -> dict:
        """Rank results of the class's most recent quiz."""
        self.classes.get_class_for_user(class_id, user_id, role)
        quiz = (
            self.db.query(QuizModel)
            .filter(QuizModel.class_id == class_id, QuizModel.is_active.is_(True))
            .order_by(QuizModel.created_at.desc())
            .first()
        )
        if quiz is None:
            return {"quiz": None, "rankings": []}
        results = (
            self.db.query(QuizResultModel)
            .filter(QuizResultModel.quiz_id == quiz.quiz_id)
            .order_by(
                QuizResultModel.percentage.desc(),
                QuizResultModel.time_taken_seconds.asc(),
            )
            .all()
        )
        return {
            "quiz": {"quiz_id": quiz.quiz_id, "title": quiz.title},
            "rankings": [
                {
                    "rank": rank,
                    "student_id": r.student_id,
                    "student_name": r.student_name,
                    "score": r.score,
                    "total_questions": r.total_questions,
                    "percentage": r.percentage,
                    "time_taken_seconds": r.time_taken_seconds,
                }
                for rank, r in enumerate(results, start=1)
            ],
        }

    def student_analytics(self, class_id: str, student_id: str, teacher_id: str) -> dict:
        """Per-quiz history and summary of one student in an owned class."""
        self.classes.get_owned_class(class_id, teacher_id)
        enrollment = self.classes.get_enrollment(class_id, student_id)
        if enrollment is None:
            raise NotFoundError("Student not found in this class.")

        rows = (
            self.db.query(QuizResultModel, QuizModel)
            .join(QuizModel, QuizModel.quiz_id == QuizResultModel.quiz_id)
            .filter(
                QuizResultModel.class_id == class_id,
                QuizResultModel.student_id == student_id,
            )
            .order_by(QuizResultModel.submitted_at.asc())
            .all()
        )
        history = [
            {
                "quiz_id": quiz.quiz_id,
                "quiz_title": quiz.title,
                "score": result.score,
                "total_questions": result.total_questions,
                "percentage": result.percentage,
                "time_taken_seconds": result.time_taken_seconds,
                "submitted_at": to_iso(result.submitted_at),
            }
            for result, quiz in rows
        ]
        percentages = [item["percentage"] for item in history]
        return {
            "student_id": student_id,
            "student_name": enrollment.student_name,
            "student_enrollment": enrollment.student_enrollment,
            "is_active": enrollment.is_active,
            "quizzes_taken": len(history),
            "average_percentage": round(sum(percentages) / len(percentages), 1)
            if percentages else 0.0,
            "best_percentage": max(percentages) if percentages else 0.0,
            "history": history,
        }


def quiz_for_role(quiz: QuizModel, role: str) -> dict:
    """Serialize a quiz, hiding answers from students."""
    questions = []
    for index, question in enumerate(quiz.questions):
        item = {
            "index": index,
            "question": question["question"],
            "options": question["options"],
        }
        if role == TEACHER:
            item["correct_answer"] = question["correct_answer"]
            item["explanation"] = question.get("explanation", "")
        questions.append(item)
    return {
        "quiz_id": quiz.quiz_id,
        "class_id": quiz.class_id,
        "title": quiz.title,
        "duration_minutes": quiz.duration_minutes,
        "total_questions": len(quiz.questions),
        "created_at": to_iso(quiz.created_at),
        "questions": questions,
    }
