"""Join code and join request workflow.

Teachers issue short-lived join codes for their classes; students use a code
to ask for enrollment and the teacher approves or rejects the request. A
student whose enrollment was deactivated is re-admitted directly.

Usage of a code is consumed with a single conditional UPDATE that re-checks
activity, expiry and the usage cap, so two students racing for the last
slot cannot both get through.
"""

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import (
    DEFAULT_REJECTION_REASON,
    JOIN_CODE_EXPIRY_MINUTES,
    JOIN_CODE_LENGTH,
    JOIN_CODE_MAX_ATTEMPTS,
    JOIN_CODE_MAX_USAGE,
)
from core.exceptions import (
    AlreadyEnrolledError,
    InvalidActionError,
    InvalidInputError,
    JoinCodeExpiredError,
    NotFoundError,
    QuizzieError,
    RequestPendingError,
    UsageExceededError,
)
from models.class_join_code import ClassJoinCodeModel
from models.class_join_request import (
    APPROVED,
    PENDING,
    REJECTED,
    ClassJoinRequestModel,
)
from models.class_model import ClassModel
from utils.class_manager import ClassManager
from utils.time_utils import as_utc, seconds_until, time_ago, to_iso, utc_now
from utils.user_manager import STUDENT, UserManager

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"
ACTIONS = (APPROVE, REJECT)

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_join_code(length: int = JOIN_CODE_LENGTH) -> str:
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def normalize_join_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


class EnrollmentManager:
    """Issues join codes and drives join requests to an enrollment."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utc_now,
        code_generator: Callable[[], str] = generate_join_code,
    ):
        """Initialize EnrollmentManager.

        Args:
            db: SQLAlchemy Session.
            clock: Returns the current aware UTC time.
            code_generator: Produces candidate join code values.
        """
        self.db = db
        self.clock = clock
        self.code_generator = code_generator
        self.classes = ClassManager(db, clock=clock)
        self.users = UserManager(db, clock=clock)

    # --- Join codes ---

    def issue_join_code(
        self, class_id: str, teacher_id: str, max_usage: Optional[int] = None
    ) -> ClassJoinCodeModel:
        """Issue a fresh join code for a class, retiring any active one.

        Args:
            class_id: Class ID.
            teacher_id: Caller, must own the class.
            max_usage: Usage cap, defaults to JOIN_CODE_MAX_USAGE.

        Returns:
            The new ClassJoinCodeModel.

        Raises:
            ClassNotFoundError: If the class is missing or not owned.
            InvalidInputError: If max_usage is not positive.
        """
        class_model = self.classes.get_owned_class(class_id, teacher_id)
        if max_usage is None:
            max_usage = JOIN_CODE_MAX_USAGE
        if max_usage < 1:
            raise InvalidInputError("maxUsage must be at least 1.")

        self.db.query(ClassJoinCodeModel).filter(
            ClassJoinCodeModel.class_id == class_id,
            ClassJoinCodeModel.is_active.is_(True),
        ).update({"is_active": False}, synchronize_session="fetch")

        code = self._generate_unique_code()
        now = self.clock()
        model = ClassJoinCodeModel(
            class_id=class_model.class_id,
            teacher_id=teacher_id,
            code=code,
            created_at=now,
            expires_at=now + timedelta(minutes=JOIN_CODE_EXPIRY_MINUTES),
            usage_count=0,
            max_usage=max_usage,
            is_active=True,
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        logger.info(
            "Join code generated for class %s (%s), expires at %s",
            class_id,
            class_model.name,
            model.expires_at,
        )
        return model

    def get_active_join_code(
        self, class_id: str, teacher_id: str
    ) -> Optional[ClassJoinCodeModel]:
        """Return the class's active, unexpired join code, if any."""
        self.classes.get_owned_class(class_id, teacher_id)
        return (
            self.db.query(ClassJoinCodeModel)
            .filter(
                ClassJoinCodeModel.class_id == class_id,
                ClassJoinCodeModel.is_active.is_(True),
                ClassJoinCodeModel.expires_at > self.clock(),
            )
            .order_by(ClassJoinCodeModel.created_at.desc())
            .first()
        )

    def validate_join_code(self, code: str, student_id: str) -> dict:
        """Check whether a student could use a join code right now.

        Read-only with respect to the usage counter.

        Args:
            code: Join code as typed by the student.
            student_id: Caller.

        Returns:
            Class info for display, including the remaining lifetime.

        Raises:
            NotFoundError: If no active code has this value.
            JoinCodeExpiredError: If the code is past its expiry.
            UsageExceededError: If the code has reached its cap.
            AlreadyEnrolledError: If the student is actively enrolled.
            RequestPendingError: If a pending request already exists.
        """
        code_model = self._get_usable_code(code)

        if self.classes.is_enrolled(code_model.class_id, student_id):
            raise AlreadyEnrolledError()
        if self._get_pending_request(code_model.class_id, student_id):
            raise RequestPendingError()

        logger.info(
            "Join code validated for student %s, class %s", student_id, code_model.class_id
        )
        return self._class_info(code_model, include_expiry=True)

    # --- Join requests ---

    def submit_join_request(self, code: str, student_id: str) -> dict:
        """Use a join code to ask for enrollment.

        A student with an inactive enrollment is reactivated at once and
        any earlier requests are marked approved. Otherwise a pending request
        is created and one use of the code is consumed. A previously rejected
        request is deleted first.

        Args:
            code: Join code.
            student_id: Caller.

        Returns:
            Dict with ``reactivated``, ``request_id`` (None on reactivation)
            and ``class_info``.

        Raises:
            InvalidInputError: If the code is empty.
            NotFoundError: If the student or an active code is missing.
            JoinCodeExpiredError: If the code has expired.
            UsageExceededError: If the code has reached its cap.
            AlreadyEnrolledError: If the student is actively enrolled.
            RequestPendingError: If a pending request already exists.
        """
        if not normalize_join_code(code):
            raise InvalidInputError("Join code is required.")
        student = self.users.require_user(student_id, role=STUDENT)
        code_model = self._get_usable_code(code)
        class_id = code_model.class_id
        class_info = self._class_info(code_model)

        enrollment = self.classes.get_enrollment(class_id, student_id)
        if enrollment is not None:
            if enrollment.is_active:
                raise AlreadyEnrolledError()
            # Rejoining does not consume a use of the code
            return self._reactivate(class_id, student, class_info)

        if self._get_pending_request(class_id, student_id):
            raise RequestPendingError(
                "You already have a pending request for this class. "
                "Please wait for the teacher's approval."
            )

        # Rejections are not retained once the student tries again
        self.db.query(ClassJoinRequestModel).filter(
            ClassJoinRequestModel.class_id == class_id,
            ClassJoinRequestModel.student_id == student_id,
            ClassJoinRequestModel.status == REJECTED,
        ).delete(synchronize_session="fetch")

        self._consume_code(code_model)

        request = ClassJoinRequestModel(
            request_id=secrets.token_hex(12),
            class_id=class_id,
            student_id=student_id,
            student_name=student.name,
            student_enrollment=student.enrollment,
            join_code=code_model.code,
            status=PENDING,
            requested_at=self.clock(),
        )
        self.db.add(request)
        try:
            self.db.commit()
        except IntegrityError as e:
            # A concurrent submission created the pending row first; the
            # usage increment is rolled back with it.
            self.db.rollback()
            raise RequestPendingError() from e

        logger.info(
            "New join request %s from student %s for class %s",
            request.request_id,
            student_id,
            class_id,
        )
        return {
            "reactivated": False,
            "request_id": request.request_id,
            "class_info": class_info,
        }

    def list_pending_requests(self, class_id: str, teacher_id: str) -> List[dict]:
        """List pending requests for an owned class, newest first."""
        self.classes.get_owned_class(class_id, teacher_id)
        requests = (
            self.db.query(ClassJoinRequestModel)
            .filter(
                ClassJoinRequestModel.class_id == class_id,
                ClassJoinRequestModel.status == PENDING,
            )
            .order_by(ClassJoinRequestModel.requested_at.desc())
            .all()
        )
        now = self.clock()
        return [
            {
                "request_id": r.request_id,
                "student_id": r.student_id,
                "student_name": r.student_name,
                "student_enrollment": r.student_enrollment,
                "join_code": r.join_code,
                "requested_at": to_iso(r.requested_at),
                "time_ago": time_ago(r.requested_at, now),
            }
            for r in requests
        ]

    def resolve_join_request(
        self, class_id: str, request_id: str, action: str, teacher_id: str
    ) -> dict:
        """Approve or reject a pending join request.

        Args:
            class_id: Class ID.
            request_id: Request to resolve.
            action: 'approve' or 'reject'.
            teacher_id: Caller, must own the class.

        Returns:
            Dict with the resulting ``action`` and student details.

        Raises:
            InvalidActionError: If action is not approve or reject.
            ClassNotFoundError: If the class is missing or not owned.
            NotFoundError: If the request is missing or already resolved.
            AlreadyEnrolledError: If approving a student who is already
                active; the request is still marked approved.
        """
        if action not in ACTIONS:
            raise InvalidActionError(action)
        self.classes.get_owned_class(class_id, teacher_id)

        request = (
            self.db.query(ClassJoinRequestModel)
            .filter(
                ClassJoinRequestModel.request_id == request_id,
                ClassJoinRequestModel.class_id == class_id,
                ClassJoinRequestModel.status == PENDING,
            )
            .first()
        )
        if request is None:
            raise NotFoundError("Join request not found or already processed.")

        now = self.clock()
        request.processed_at = now
        request.processed_by = teacher_id

        if action == REJECT:
            request.status = REJECTED
            request.rejection_reason = DEFAULT_REJECTION_REASON
            self.db.commit()
            logger.info("Join request %s rejected by %s", request_id, teacher_id)
            return {
                "action": "rejected",
                "student_name": request.student_name,
                "rejection_reason": request.rejection_reason,
            }

        request.status = APPROVED
        if self.classes.is_enrolled(class_id, request.student_id):
            self.db.commit()
            raise AlreadyEnrolledError("Student is already enrolled in this class.")

        try:
            self.classes.activate_enrollment(
                class_id,
                request.student_id,
                request.student_name,
                request.student_enrollment,
            )
            total = self.classes.recompute_student_count(class_id)
            self.db.commit()
        except IntegrityError as e:
            # Another approval inserted the enrollment row first
            self.db.rollback()
            raise AlreadyEnrolledError("Student is already enrolled in this class.") from e
        logger.info(
            "Join request %s approved by %s, class %s now has %d students",
            request_id,
            teacher_id,
            class_id,
            total,
        )
        return {
            "action": "approved",
            "student_name": request.student_name,
            "student_enrollment": request.student_enrollment,
            "student_count": total,
        }

    # --- Helpers ---

    def _generate_unique_code(self) -> str:
        for _ in range(JOIN_CODE_MAX_ATTEMPTS):
            candidate = normalize_join_code(self.code_generator())
            clash = (
                self.db.query(ClassJoinCodeModel.id)
                .filter(
                    ClassJoinCodeModel.code == candidate,
                    ClassJoinCodeModel.is_active.is_(True),
                )
                .first()
            )
            if clash is None:
                return candidate
            logger.debug("Join code collision on %s, retrying", candidate)
        raise QuizzieError("Could not generate a unique join code. Please try again.")

    def _get_usable_code(self, code: str) -> ClassJoinCodeModel:
        code_model = (
            self.db.query(ClassJoinCodeModel)
            .filter(
                ClassJoinCodeModel.code == normalize_join_code(code),
                ClassJoinCodeModel.is_active.is_(True),
            )
            .first()
        )
        if code_model is None:
            raise NotFoundError("Invalid or expired join code.")
        if self._is_expired(code_model):
            code_model.is_active = False
            self.db.commit()
            logger.warning("Join code %s used after expiry", code_model.code)
            raise JoinCodeExpiredError()
        if code_model.usage_count >= code_model.max_usage:
            raise UsageExceededError()
        return code_model

    def _consume_code(self, code_model: ClassJoinCodeModel) -> None:
        """Take one use of the code, or fail without writing anything."""
        now = self.clock()
        updated = (
            self.db.query(ClassJoinCodeModel)
            .filter(
                ClassJoinCodeModel.id == code_model.id,
                ClassJoinCodeModel.is_active.is_(True),
                ClassJoinCodeModel.usage_count < ClassJoinCodeModel.max_usage,
                ClassJoinCodeModel.expires_at > now,
            )
            .update(
                {"usage_count": ClassJoinCodeModel.usage_count + 1},
                synchronize_session=False,
            )
        )
        if updated == 1:
            return
        self.db.rollback()
        self.db.refresh(code_model)
        logger.warning("Join code %s could not be consumed", code_model.code)
        if self._is_expired(code_model):
            raise JoinCodeExpiredError()
        raise UsageExceededError()

    def _reactivate(self, class_id: str, student, class_info: dict) -> dict:
        self.classes.activate_enrollment(
            class_id, student.user_id, student.name, student.enrollment
        )
        self.db.query(ClassJoinRequestModel).filter(
            ClassJoinRequestModel.class_id == class_id,
            ClassJoinRequestModel.student_id == student.user_id,
            ClassJoinRequestModel.status.in_([PENDING, REJECTED]),
        ).update(
            {"status": APPROVED, "processed_at": self.clock()},
            synchronize_session="fetch",
        )
        self.classes.recompute_student_count(class_id)
        self.db.commit()
        logger.info("Student %s rejoined class %s", student.user_id, class_id)
        return {"reactivated": True, "request_id": None, "class_info": class_info}

    def _get_pending_request(
        self, class_id: str, student_id: str
    ) -> Optional[ClassJoinRequestModel]:
        return (
            self.db.query(ClassJoinRequestModel)
            .filter(
                ClassJoinRequestModel.class_id == class_id,
                ClassJoinRequestModel.student_id == student_id,
                ClassJoinRequestModel.status == PENDING,
            )
            .first()
        )

    def _is_expired(self, code_model: ClassJoinCodeModel) -> bool:
        return self.clock() >= as_utc(code_model.expires_at)

    def _class_info(self, code_model: ClassJoinCodeModel, include_expiry: bool = False) -> dict:
        class_model: ClassModel = code_model.class_
        info = {
            "class_id": class_model.class_id,
            "class_name": class_model.name,
            "class_subject": class_model.subject,
            "teacher_name": class_model.teacher.name if class_model.teacher else None,
        }
        if include_expiry:
            info["expires_at"] = to_iso(code_model.expires_at)
            info["remaining_time"] = seconds_until(code_model.expires_at, self.clock())
        return info
