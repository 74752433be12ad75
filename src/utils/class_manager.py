"""Class management utilities."""

import logging
import secrets
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import (
    AlreadyEnrolledError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from models.class_enrollment import ClassEnrollmentModel
from models.class_join_code import ClassJoinCodeModel
from models.class_join_request import APPROVED, PENDING, ClassJoinRequestModel
from models.class_model import ClassModel
from models.quiz import QuizModel
from models.quiz_result import QuizResultModel
from utils.time_utils import utc_now
from utils.user_manager import STUDENT, TEACHER, UserManager

logger = logging.getLogger(__name__)


class ClassNotFoundError(NotFoundError):
    """Exception raised when a class is not found or not owned by the caller."""

    def __init__(self, message: str = "Class not found or access denied."):
        super().__init__(message)


class ClassManager:
    """Manages classes, enrollments and the class counters."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def create_class(
        self, teacher_id: str, name: str, subject: str, description: str = ""
    ) -> ClassModel:
        """Create a new class owned by a teacher.

        Args:
            teacher_id: Owner of the class.
            name: Class name, unique among the teacher's active classes.
            subject: Subject taught.
            description: Optional free text.

        Returns:
            Created ClassModel instance.

        Raises:
            InvalidInputError: If name or subject is missing, or the teacher
                already has an active class with that name.
        """
        name = (name or "").strip()
        subject = (subject or "").strip()
        if not name or not subject:
            raise InvalidInputError("Class name and subject are required.")

        existing = (
            self.db.query(ClassModel)
            .filter(
                ClassModel.teacher_id == teacher_id,
                ClassModel.name == name,
                ClassModel.is_active.is_(True),
            )
            .first()
        )
        if existing:
            raise InvalidInputError("You already have a class with this name.")

        now = self.clock()
        class_model = ClassModel(
            class_id=secrets.token_hex(12),
            teacher_id=teacher_id,
            name=name,
            subject=subject,
            description=(description or "").strip(),
            student_count=0,
            quiz_count=0,
            average_score=0.0,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(class_model)
        self.db.commit()
        self.db.refresh(class_model)
        logger.info("Created class %s (%s) for teacher %s", class_model.class_id, name, teacher_id)
        return class_model

    def get_class(self, class_id: str) -> ClassModel:
        model = (
            self.db.query(ClassModel)
            .filter(ClassModel.class_id == class_id, ClassModel.is_active.is_(True))
            .first()
        )
        if not model:
            raise ClassNotFoundError("Class not found.")
        return model

    def get_owned_class(self, class_id: str, teacher_id: str) -> ClassModel:
        """Return the class if it is active and owned by ``teacher_id``.

        Raises:
            ClassNotFoundError: Otherwise; a foreign class is reported the
                same way as a missing one.
        """
        model = (
            self.db.query(ClassModel)
            .filter(
                ClassModel.class_id == class_id,
                ClassModel.teacher_id == teacher_id,
                ClassModel.is_active.is_(True),
            )
            .first()
        )
        if not model:
            raise ClassNotFoundError()
        return model

    def get_class_for_user(self, class_id: str, user_id: str, role: str) -> ClassModel:
        """Return a class the caller may see.

        Teachers must own it; students must be actively enrolled.

        Raises:
            ClassNotFoundError: If the class does not exist.
            PermissionDeniedError: If the caller has no access.
        """
        model = self.get_class(class_id)
        if role == TEACHER:
            if model.teacher_id != user_id:
                raise PermissionDeniedError("Access denied. You do not own this class.")
        elif role == STUDENT:
            if not self.is_enrolled(class_id, user_id):
                raise PermissionDeniedError(
                    "Access denied. You are not enrolled in this class."
                )
        else:
            raise PermissionDeniedError("Invalid user type")
        return model

    def list_classes_for_teacher(self, teacher_id: str) -> List[ClassModel]:
        return (
            self.db.query(ClassModel)
            .filter(ClassModel.teacher_id == teacher_id, ClassModel.is_active.is_(True))
            .order_by(ClassModel.created_at.desc())
            .all()
        )

    def list_enrolled_classes(self, student_id: str) -> List[dict]:
        """List a student's active classes with their progress in each."""
        query = (
            self.db.query(ClassEnrollmentModel, ClassModel)
            .join(ClassModel, ClassModel.class_id == ClassEnrollmentModel.class_id)
            .filter(
                ClassEnrollmentModel.student_id == student_id,
                ClassEnrollmentModel.is_active.is_(True),
                ClassModel.is_active.is_(True),
            )
            .order_by(ClassEnrollmentModel.enrolled_at.desc())
        )
        results = []
        for enrollment, class_model in query.all():
            percentages = [
                row.percentage
                for row in self.db.query(QuizResultModel.percentage).filter(
                    QuizResultModel.class_id == class_model.class_id,
                    QuizResultModel.student_id == student_id,
                )
            ]
            available = (
                self.db.query(func.count(QuizModel.quiz_id))
                .filter(
                    QuizModel.class_id == class_model.class_id,
                    QuizModel.is_active.is_(True),
                )
                .scalar()
            )
            taken = len(percentages)
            average = round(sum(percentages) / taken, 1) if taken else 0.0
            results.append(
                {
                    "class": class_model,
                    "enrolled_at": enrollment.enrolled_at,
                    "quizzes_taken": taken,
                    "average_score": average,
                    "available_quizzes": available,
                    "completion_rate": round(taken / available * 100, 1) if available else 0.0,
                }
            )
        return results

    def get_enrollment(self, class_id: str, student_id: str) -> Optional[ClassEnrollmentModel]:
        return (
            self.db.query(ClassEnrollmentModel)
            .filter(
                ClassEnrollmentModel.class_id == class_id,
                ClassEnrollmentModel.student_id == student_id,
            )
            .first()
        )

    def is_enrolled(self, class_id: str, student_id: str) -> bool:
        enrollment = self.get_enrollment(class_id, student_id)
        return bool(enrollment and enrollment.is_active)

    def list_students(self, class_id: str) -> List[ClassEnrollmentModel]:
        return (
            self.db.query(ClassEnrollmentModel)
            .filter(
                ClassEnrollmentModel.class_id == class_id,
                ClassEnrollmentModel.is_active.is_(True),
            )
            .order_by(ClassEnrollmentModel.student_name)
            .all()
        )

    def count_active_students(self, class_id: str) -> int:
        return (
            self.db.query(func.count(ClassEnrollmentModel.id))
            .filter(
                ClassEnrollmentModel.class_id == class_id,
                ClassEnrollmentModel.is_active.is_(True),
            )
            .scalar()
        )

    def recompute_student_count(self, class_id: str) -> int:
        """Refresh the denormalized student counter from a fresh count.

        Pending changes are flushed first so the count sees them. The caller
        commits.
        """
        self.db.flush()
        total = self.count_active_students(class_id)
        self.db.query(ClassModel).filter(ClassModel.class_id == class_id).update(
            {"student_count": total, "updated_at": self.clock()},
            synchronize_session="fetch",
        )
        return total

    def recompute_quiz_stats(self, class_id: str) -> None:
        """Refresh quiz_count and average_score. The caller commits."""
        self.db.flush()
        quiz_count = (
            self.db.query(func.count(QuizModel.quiz_id))
            .filter(QuizModel.class_id == class_id, QuizModel.is_active.is_(True))
            .scalar()
        )
        average = (
            self.db.query(func.avg(QuizResultModel.percentage))
            .filter(QuizResultModel.class_id == class_id)
            .scalar()
        )
        self.db.query(ClassModel).filter(ClassModel.class_id == class_id).update(
            {
                "quiz_count": quiz_count,
                "average_score": round(float(average or 0.0), 1),
                "updated_at": self.clock(),
            },
            synchronize_session="fetch",
        )

    def activate_enrollment(
        self,
        class_id: str,
        student_id: str,
        student_name: str,
        student_enrollment: Optional[str] = None,
    ) -> ClassEnrollmentModel:
        """Create the enrollment row or reactivate the existing one.

        The (class, student) row is reused so re-joining never duplicates it.
        The caller commits.
        """
        enrollment = self.get_enrollment(class_id, student_id)
        now = self.clock()
        if enrollment is None:
            enrollment = ClassEnrollmentModel(
                class_id=class_id,
                student_id=student_id,
                student_name=student_name,
                student_enrollment=student_enrollment,
                is_active=True,
                enrolled_at=now,
            )
            self.db.add(enrollment)
        else:
            enrollment.is_active = True
            enrollment.enrolled_at = now
            enrollment.student_name = student_name
            enrollment.student_enrollment = student_enrollment
        self.db.flush()
        return enrollment

    def add_student(
        self, class_id: str, enrollment: str, teacher_id: str
    ) -> ClassEnrollmentModel:
        """Enroll a student directly, without a join code.

        A pending join request from the same student is closed as approved.

        Args:
            class_id: Class ID.
            enrollment: The student's enrollment number.
            teacher_id: Caller, must own the class.

        Returns:
            The active ClassEnrollmentModel.

        Raises:
            ClassNotFoundError: If the class is missing or not owned.
            NotFoundError: If no student has this enrollment number.
            AlreadyEnrolledError: If the student is already active.
        """
        self.get_owned_class(class_id, teacher_id)
        student = UserManager(self.db, clock=self.clock).get_student_by_enrollment(enrollment)
        if student is None:
            raise NotFoundError("Student not found with this enrollment number.")
        if self.is_enrolled(class_id, student.user_id):
            raise AlreadyEnrolledError("Student is already enrolled in this class.")

        enrollment_model = self.activate_enrollment(
            class_id, student.user_id, student.name, student.enrollment
        )
        self.db.query(ClassJoinRequestModel).filter(
            ClassJoinRequestModel.class_id == class_id,
            ClassJoinRequestModel.student_id == student.user_id,
            ClassJoinRequestModel.status == PENDING,
        ).update(
            {"status": APPROVED, "processed_at": self.clock(), "processed_by": teacher_id},
            synchronize_session="fetch",
        )
        total = self.recompute_student_count(class_id)
        self.db.commit()
        logger.info(
            "Teacher %s added student %s to class %s (%d students)",
            teacher_id,
            student.user_id,
            class_id,
            total,
        )
        return enrollment_model

    def remove_student(self, class_id: str, student_id: str, teacher_id: str) -> int:
        """Deactivate a student's enrollment.

        Args:
            class_id: Class ID.
            student_id: Student to remove.
            teacher_id: Caller, must own the class.

        Returns:
            The class's active student count afterwards.

        Raises:
            ClassNotFoundError: If the class is missing or not owned.
            NotFoundError: If the student is not actively enrolled.
        """
        self.get_owned_class(class_id, teacher_id)
        enrollment = self.get_enrollment(class_id, student_id)
        if not enrollment or not enrollment.is_active:
            raise NotFoundError("Student is not enrolled in this class.")

        enrollment.is_active = False
        total = self.recompute_student_count(class_id)
        self.db.commit()
        logger.info("Removed student %s from class %s", student_id, class_id)
        return total

    def delete_class(self, class_id: str, teacher_id: str) -> None:
        """Soft-delete a class and retire its join codes.

        Only the class owner can delete the class.
        """
        class_model = self.get_owned_class(class_id, teacher_id)
        class_model.is_active = False
        class_model.updated_at = self.clock()
        self.db.query(ClassJoinCodeModel).filter(
            ClassJoinCodeModel.class_id == class_id,
            ClassJoinCodeModel.is_active.is_(True),
        ).update({"is_active": False}, synchronize_session="fetch")
        self.db.commit()
        logger.info("Deleted class: %s", class_id)
