"""Tests for join codes and the join request workflow."""

import itertools
from datetime import timedelta

import pytest
from sqlalchemy import update

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
from models.class_enrollment import ClassEnrollmentModel
from models.class_join_code import ClassJoinCodeModel
from models.class_join_request import APPROVED, PENDING, REJECTED, ClassJoinRequestModel
from utils.class_manager import ClassNotFoundError
from utils.enrollment_manager import (
    JOIN_CODE_ALPHABET,
    EnrollmentManager,
    generate_join_code,
)
from utils.time_utils import as_utc


def _requests_for(db, class_id, student_id):
    return (
        db.query(ClassJoinRequestModel)
        .filter(
            ClassJoinRequestModel.class_id == class_id,
            ClassJoinRequestModel.student_id == student_id,
        )
        .all()
    )


class TestJoinCodes:
    """Issuing and looking up join codes."""

    def test_generated_code_shape(self):
        code = generate_join_code()
        assert len(code) == 6
        assert all(ch in JOIN_CODE_ALPHABET for ch in code)

    def test_issue_sets_expiry_and_defaults(self, enrollments, algebra, teacher, clock):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)

        assert code.is_active
        assert code.usage_count == 0
        assert code.max_usage == 50
        assert as_utc(code.expires_at) == clock.now + timedelta(minutes=10)

    def test_issue_retires_previous_code(self, db_session, enrollments, algebra, teacher):
        first = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        second = enrollments.issue_join_code(algebra.class_id, teacher.user_id, max_usage=5)

        active = (
            db_session.query(ClassJoinCodeModel)
            .filter(
                ClassJoinCodeModel.class_id == algebra.class_id,
                ClassJoinCodeModel.is_active.is_(True),
            )
            .all()
        )
        assert [c.id for c in active] == [second.id]
        assert first.is_active is False
        assert second.max_usage == 5

    def test_issue_rejects_non_positive_cap(self, enrollments, algebra, teacher):
        with pytest.raises(InvalidInputError):
            enrollments.issue_join_code(algebra.class_id, teacher.user_id, max_usage=0)

    def test_issue_for_foreign_class_is_not_found(self, enrollments, algebra, other_teacher):
        with pytest.raises(ClassNotFoundError):
            enrollments.issue_join_code(algebra.class_id, other_teacher.user_id)

    def test_active_code_disappears_after_expiry(self, enrollments, algebra, teacher, clock):
        issued = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        assert enrollments.get_active_join_code(algebra.class_id, teacher.user_id).id == issued.id

        clock.advance(minutes=11)
        assert enrollments.get_active_join_code(algebra.class_id, teacher.user_id) is None

    def test_collision_with_active_code_is_retried(self, db_session, clock, classes, teacher, algebra):
        other = classes.create_class(teacher.user_id, "Geometry", "Mathematics")
        values = iter(["abc123", "ABC123", "XYZ789"])
        manager = EnrollmentManager(db_session, clock=clock, code_generator=lambda: next(values))

        first = manager.issue_join_code(algebra.class_id, teacher.user_id)
        second = manager.issue_join_code(other.class_id, teacher.user_id)

        assert first.code == "ABC123"
        assert second.code == "XYZ789"

    def test_gives_up_when_every_candidate_collides(self, db_session, clock, classes, teacher, algebra):
        other = classes.create_class(teacher.user_id, "Geometry", "Mathematics")
        manager = EnrollmentManager(
            db_session, clock=clock, code_generator=itertools.repeat("SAME00").__next__
        )
        manager.issue_join_code(algebra.class_id, teacher.user_id)

        with pytest.raises(QuizzieError):
            manager.issue_join_code(other.class_id, teacher.user_id)


class TestValidateJoinCode:
    """Read-only checks a student runs before asking to join."""

    def test_valid_code_returns_class_info(self, db_session, enrollments, algebra, teacher, student):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)

        info = enrollments.validate_join_code(code.code.lower(), student.user_id)

        assert info["class_id"] == algebra.class_id
        assert info["class_name"] == "Algebra I"
        assert info["teacher_name"] == "Ada Lovelace"
        assert info["remaining_time"] == 600
        db_session.refresh(code)
        assert code.usage_count == 0

    def test_unknown_code(self, enrollments, student):
        with pytest.raises(NotFoundError):
            enrollments.validate_join_code("NOPE00", student.user_id)

    def test_expired_eleven_minutes_later(self, enrollments, algebra, teacher, student, clock):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        clock.advance(minutes=11)

        with pytest.raises(JoinCodeExpiredError):
            enrollments.validate_join_code(code.code, student.user_id)

    def test_code_at_cap(self, enrollments, algebra, teacher, make_student):
        first = make_student("First Student", "ENR111")
        second = make_student("Second Student", "ENR112")
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id, max_usage=1)
        enrollments.submit_join_request(code.code, first.user_id)

        with pytest.raises(UsageExceededError):
            enrollments.validate_join_code(code.code, second.user_id)

    def test_full_and_expired_code_reports_expiry(
        self, enrollments, algebra, teacher, make_student, clock
    ):
        first = make_student("First Student", "ENR121")
        second = make_student("Second Student", "ENR122")
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id, max_usage=1)
        enrollments.submit_join_request(code.code, first.user_id)
        clock.advance(minutes=11)

        with pytest.raises(JoinCodeExpiredError):
            enrollments.validate_join_code(code.code, second.user_id)

    def test_enrolled_student(self, db_session, enrollments, classes, algebra, teacher, student):
        classes.activate_enrollment(algebra.class_id, student.user_id, student.name)
        db_session.commit()
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)

        with pytest.raises(AlreadyEnrolledError):
            enrollments.validate_join_code(code.code, student.user_id)

    def test_pending_request_is_reported(self, enrollments, algebra, teacher, student):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        enrollments.submit_join_request(code.code, student.user_id)

        with pytest.raises(RequestPendingError):
            enrollments.validate_join_code(code.code, student.user_id)


class TestSubmitJoinRequest:
    """Using a join code to ask for enrollment."""

    def test_creates_pending_request_and_consumes_one_use(
        self, db_session, enrollments, algebra, teacher, student
    ):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)

        outcome = enrollments.submit_join_request(code.code, student.user_id)

        assert outcome["reactivated"] is False
        request = db_session.get(ClassJoinRequestModel, outcome["request_id"])
        assert request.status == PENDING
        assert request.student_name == "Grace Hopper"
        assert request.student_enrollment == "ENR001"
        db_session.refresh(code)
        assert code.usage_count == 1

    def test_empty_code(self, enrollments, student):
        with pytest.raises(InvalidInputError):
            enrollments.submit_join_request("  ", student.user_id)

    def test_second_request_while_pending(self, db_session, enrollments, algebra, teacher, student):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        enrollments.submit_join_request(code.code, student.user_id)

        with pytest.raises(RequestPendingError):
            enrollments.submit_join_request(code.code, student.user_id)

        db_session.refresh(code)
        assert code.usage_count == 1
        assert len(_requests_for(db_session, algebra.class_id, student.user_id)) == 1

    def test_code_expires_after_ten_minutes(self, db_session, enrollments, algebra, teacher, student, clock):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        clock.advance(minutes=11)

        with pytest.raises(JoinCodeExpiredError):
            enrollments.submit_join_request(code.code, student.user_id)

        db_session.refresh(code)
        assert code.is_active is False
        assert code.usage_count == 0
        # Once retired the code is simply unknown
        with pytest.raises(NotFoundError):
            enrollments.submit_join_request(code.code, student.user_id)

    def test_code_is_expired_at_its_expiry_instant(self, enrollments, algebra, teacher, student, clock):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        clock.advance(minutes=10)

        with pytest.raises(JoinCodeExpiredError):
            enrollments.validate_join_code(code.code, student.user_id)

    def test_usage_cap(self, db_session, enrollments, algebra, teacher, make_student):
        first = make_student("First Student", "ENR101")
        second = make_student("Second Student", "ENR102")
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id, max_usage=1)

        enrollments.submit_join_request(code.code, first.user_id)
        with pytest.raises(UsageExceededError):
            enrollments.submit_join_request(code.code, second.user_id)

        db_session.refresh(code)
        assert code.usage_count == 1
        assert _requests_for(db_session, algebra.class_id, second.user_id) == []

    def test_consume_rechecks_cap_in_database(self, db_session, enrollments, algebra, teacher):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id, max_usage=1)
        # Another request took the last slot after this one loaded the code
        db_session.connection().execute(
            update(ClassJoinCodeModel)
            .where(ClassJoinCodeModel.id == code.id)
            .values(usage_count=1)
        )

        with pytest.raises(UsageExceededError):
            enrollments._consume_code(code)

    def test_already_enrolled(self, enrollments, classes, algebra, teacher, student):
        classes.activate_enrollment(algebra.class_id, student.user_id, student.name)
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)

        with pytest.raises(AlreadyEnrolledError):
            enrollments.submit_join_request(code.code, student.user_id)

    def test_rejected_request_is_replaced(self, db_session, enrollments, algebra, teacher, student):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        first = enrollments.submit_join_request(code.code, student.user_id)
        enrollments.resolve_join_request(
            algebra.class_id, first["request_id"], "reject", teacher.user_id
        )

        second = enrollments.submit_join_request(code.code, student.user_id)

        rows = _requests_for(db_session, algebra.class_id, student.user_id)
        assert [(r.request_id, r.status) for r in rows] == [(second["request_id"], PENDING)]

    def test_inactive_enrollment_is_reactivated(
        self, db_session, enrollments, classes, algebra, teacher, student
    ):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        outcome = enrollments.submit_join_request(code.code, student.user_id)
        enrollments.resolve_join_request(
            algebra.class_id, outcome["request_id"], "approve", teacher.user_id
        )
        classes.remove_student(algebra.class_id, student.user_id, teacher.user_id)

        rejoined = enrollments.submit_join_request(code.code, student.user_id)

        assert rejoined["reactivated"] is True
        assert rejoined["request_id"] is None
        rows = (
            db_session.query(ClassEnrollmentModel)
            .filter(ClassEnrollmentModel.student_id == student.user_id)
            .all()
        )
        assert len(rows) == 1 and rows[0].is_active
        db_session.refresh(code)
        db_session.refresh(algebra)
        assert code.usage_count == 1
        assert algebra.student_count == 1


class TestResolveJoinRequest:
    """Teacher decisions on pending requests."""

    @pytest.fixture
    def pending(self, enrollments, algebra, teacher, student):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        return enrollments.submit_join_request(code.code, student.user_id)["request_id"]

    def test_approve_enrolls_student(self, db_session, enrollments, classes, algebra, teacher, student, pending):
        outcome = enrollments.resolve_join_request(
            algebra.class_id, pending, "approve", teacher.user_id
        )

        assert outcome["action"] == "approved"
        assert outcome["student_count"] == 1
        assert classes.is_enrolled(algebra.class_id, student.user_id)
        request = db_session.get(ClassJoinRequestModel, pending)
        assert request.status == APPROVED
        assert request.processed_by == teacher.user_id
        db_session.refresh(algebra)
        assert algebra.student_count == classes.count_active_students(algebra.class_id)

    def test_reject_records_reason(self, db_session, enrollments, classes, algebra, teacher, student, pending):
        outcome = enrollments.resolve_join_request(
            algebra.class_id, pending, "reject", teacher.user_id
        )

        assert outcome["action"] == "rejected"
        assert outcome["rejection_reason"] == "Request rejected by teacher"
        assert db_session.get(ClassJoinRequestModel, pending).status == REJECTED
        assert not classes.is_enrolled(algebra.class_id, student.user_id)

    def test_unknown_action(self, enrollments, algebra, teacher, pending):
        with pytest.raises(InvalidActionError):
            enrollments.resolve_join_request(algebra.class_id, pending, "maybe", teacher.user_id)

    def test_foreign_class(self, enrollments, algebra, other_teacher, pending):
        with pytest.raises(ClassNotFoundError):
            enrollments.resolve_join_request(
                algebra.class_id, pending, "approve", other_teacher.user_id
            )

    def test_request_resolves_only_once(self, enrollments, algebra, teacher, pending):
        enrollments.resolve_join_request(algebra.class_id, pending, "reject", teacher.user_id)

        with pytest.raises(NotFoundError):
            enrollments.resolve_join_request(algebra.class_id, pending, "approve", teacher.user_id)

    def test_approving_active_student_marks_request(
        self, db_session, enrollments, classes, algebra, teacher, student, pending
    ):
        classes.activate_enrollment(algebra.class_id, student.user_id, student.name)
        db_session.commit()

        with pytest.raises(AlreadyEnrolledError):
            enrollments.resolve_join_request(algebra.class_id, pending, "approve", teacher.user_id)

        assert db_session.get(ClassJoinRequestModel, pending).status == APPROVED

    def test_pending_list_is_newest_first(self, enrollments, algebra, teacher, make_student, clock):
        code = enrollments.issue_join_code(algebra.class_id, teacher.user_id)
        early = make_student("Early Bird", "ENR201")
        late = make_student("Late Comer", "ENR202")
        enrollments.submit_join_request(code.code, early.user_id)
        clock.advance(minutes=2)
        enrollments.submit_join_request(code.code, late.user_id)
        clock.advance(minutes=3)

        listed = enrollments.list_pending_requests(algebra.class_id, teacher.user_id)

        assert [r["student_name"] for r in listed] == ["Late Comer", "Early Bird"]
        assert [r["time_ago"] for r in listed] == ["3 minutes ago", "5 minutes ago"]
