"""Tests for accounts, email verification and password reset."""

import pytest

from core.exceptions import AuthenticationError, InvalidInputError
from utils.user_manager import STUDENT, TEACHER, UserAlreadyExistsError

from conftest import PASSWORD


class TestRegistrationAndLogin:

    def test_password_is_hashed(self, teacher):
        assert teacher.password_hash != PASSWORD
        assert teacher.password_hash.startswith("$2")

    def test_teacher_logs_in_by_email(self, users, teacher):
        user = users.authenticate(TEACHER, "ADA@example.com ", PASSWORD)
        assert user.user_id == teacher.user_id

    def test_student_logs_in_by_enrollment(self, users, student):
        user = users.authenticate(STUDENT, "enr001", PASSWORD)
        assert user.user_id == student.user_id

    def test_wrong_password(self, users, teacher):
        with pytest.raises(AuthenticationError):
            users.authenticate(TEACHER, "ada@example.com", "not-the-password")

    def test_role_must_match(self, users, teacher):
        with pytest.raises(AuthenticationError):
            users.authenticate(STUDENT, "ada@example.com", PASSWORD)

    def test_duplicate_email(self, users, teacher):
        with pytest.raises(UserAlreadyExistsError):
            users.create_user(TEACHER, "Another Ada", PASSWORD, email="ada@example.com")

    def test_duplicate_enrollment(self, users, student):
        with pytest.raises(UserAlreadyExistsError):
            users.create_user(STUDENT, "Copy Cat", PASSWORD, enrollment="enr001")

    @pytest.mark.parametrize(
        "role, kwargs",
        [
            (TEACHER, {}),
            (STUDENT, {"email": "x@example.com"}),
        ],
    )
    def test_identifier_required(self, users, role, kwargs):
        with pytest.raises(InvalidInputError):
            users.create_user(role, "Someone", PASSWORD, **kwargs)

    def test_short_password(self, users):
        with pytest.raises(InvalidInputError):
            users.create_user(TEACHER, "Someone", "123", email="s@example.com")


class TestEmailVerification:

    def test_verify_marks_account(self, users, teacher):
        token = users.issue_verification_token(teacher.user_id)

        user, changed = users.verify_email(token)

        assert user.is_verified
        assert changed is False
        assert user.verification_token is None

    def test_expired_token(self, users, teacher, clock):
        token = users.issue_verification_token(teacher.user_id)
        clock.advance(hours=25)

        with pytest.raises(InvalidInputError):
            users.verify_email(token)

    def test_email_change_applies_on_verification(self, users, teacher):
        token = users.request_email_change(teacher.user_id, "ada@newmail.example.com")
        assert teacher.email == "ada@example.com"

        user, changed = users.verify_email(token)

        assert changed is True
        assert user.email == "ada@newmail.example.com"
        assert user.pending_email is None

    def test_email_change_to_taken_address(self, users, teacher, other_teacher):
        with pytest.raises(UserAlreadyExistsError):
            users.request_email_change(teacher.user_id, "alan@example.com")


class TestPasswordReset:

    def test_unknown_email_issues_nothing(self, users):
        assert users.request_password_reset("nobody@example.com") is None

    def test_reset_flow(self, users, teacher):
        user, token = users.request_password_reset("ada@example.com")
        assert users.get_user_by_reset_token(token).user_id == teacher.user_id

        users.reset_password(token, "brand-new-pass", "brand-new-pass")

        assert users.authenticate(TEACHER, "ada@example.com", "brand-new-pass")
        assert users.get_user_by_reset_token(token) is None

    def test_passwords_must_match(self, users, teacher):
        _, token = users.request_password_reset("ada@example.com")
        with pytest.raises(InvalidInputError):
            users.reset_password(token, "brand-new-pass", "different-pass")

    def test_token_expires_after_an_hour(self, users, teacher, clock):
        _, token = users.request_password_reset("ada@example.com")
        clock.advance(minutes=61)
        assert users.get_user_by_reset_token(token) is None
