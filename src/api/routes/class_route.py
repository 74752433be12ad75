"""Class management routes.

Covers classes, enrolled students, join codes, join requests and class-level
rankings. Role checks happen in the route dependencies; ownership and
enrollment checks happen in the managers.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from config import JOIN_CODE_EXPIRY_MINUTES
from core.dependencies import ClassManagerDep, EnrollmentManagerDep, QuizManagerDep
from core.exceptions import PermissionDeniedError
from models.class_model import ClassModel
from models.user import UserModel
from api.routes.auth import get_current_user, require_student, require_teacher
from schemas.class_schema import (
    ActiveJoinCodeResponse,
    AddStudentRequest,
    AddStudentResponse,
    ClassInfo,
    ClassListResponse,
    ClassResponse,
    CreateClassRequest,
    EnrolledClassInfo,
    GenerateJoinCodeRequest,
    JoinClassInfo,
    JoinCodeResponse,
    JoinRequestInfo,
    JoinRequestListResponse,
    LastQuizRankingsResponse,
    RankingsResponse,
    RemoveStudentResponse,
    ResolveJoinRequestResponse,
    StudentAnalyticsResponse,
    StudentInfo,
    StudentListResponse,
    SubmitJoinRequestBody,
    SubmitJoinRequestResponse,
    ValidateJoinCodeResponse,
)
from schemas.common import SuccessResponse
from utils.time_utils import seconds_until, to_iso
from utils.user_manager import STUDENT, TEACHER

router = APIRouter(prefix="/api/classes", tags=["Class"])


def _build_class_info(model: ClassModel) -> ClassInfo:
    return ClassInfo(
        id=model.class_id,
        name=model.name,
        subject=model.subject,
        description=model.description or "",
        student_count=model.student_count or 0,
        quiz_count=model.quiz_count or 0,
        average_score=model.average_score or 0.0,
        created_at=to_iso(model.created_at),
        updated_at=to_iso(model.updated_at),
    )


@router.get("", response_model=ClassListResponse, summary="List classes")
def list_classes(
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> ClassListResponse:
    """List the teacher's classes, or the student's enrolled classes."""
    if current_user.role == TEACHER:
        models = class_manager.list_classes_for_teacher(current_user.user_id)
        classes = [_build_class_info(model) for model in models]
    elif current_user.role == STUDENT:
        classes = [
            EnrolledClassInfo(
                id=item["class"].class_id,
                name=item["class"].name,
                subject=item["class"].subject,
                description=item["class"].description or "",
                enrolled_at=to_iso(item["enrolled_at"]),
                quizzes_taken=item["quizzes_taken"],
                average_score=item["average_score"],
                available_quizzes=item["available_quizzes"],
                completion_rate=item["completion_rate"],
            )
            for item in class_manager.list_enrolled_classes(current_user.user_id)
        ]
    else:
        raise PermissionDeniedError("Invalid user type")

    return ClassListResponse(
        classes=classes,
        total_classes=len(classes),
        user_type=current_user.role,
    )


@router.post("", response_model=ClassResponse, summary="Create class")
def create_class(
    req: CreateClassRequest,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> ClassResponse:
    class_model = class_manager.create_class(
        teacher_id=current_user.user_id,
        name=req.name,
        subject=req.subject,
        description=req.description or "",
    )
    return ClassResponse(
        message="Class created successfully!",
        class_info=_build_class_info(class_model),
    )


# Declared before the /{class_id}/... routes so the literal segment wins.
@router.get(
    "/validate-join-code/{code}",
    response_model=ValidateJoinCodeResponse,
    summary="Validate join code",
)
def validate_join_code(
    code: str,
    enrollment_manager: EnrollmentManagerDep,
    current_user: UserModel = Depends(require_student),
) -> ValidateJoinCodeResponse:
    class_info = enrollment_manager.validate_join_code(code, current_user.user_id)
    return ValidateJoinCodeResponse(class_info=JoinClassInfo(**class_info))


@router.post(
    "/join-request",
    response_model=SubmitJoinRequestResponse,
    summary="Submit join request",
)
def submit_join_request(
    req: SubmitJoinRequestBody,
    enrollment_manager: EnrollmentManagerDep,
    current_user: UserModel = Depends(require_student),
) -> SubmitJoinRequestResponse:
    """Ask to join a class with a join code.

    A student who previously left the class is re-admitted immediately.
    """
    outcome = enrollment_manager.submit_join_request(req.join_code, current_user.user_id)
    class_info = JoinClassInfo(**outcome["class_info"])
    if outcome["reactivated"]:
        message = f"You have successfully rejoined {class_info.class_name}!"
    else:
        message = (
            "Join request sent successfully! "
            f"Waiting for {class_info.teacher_name or 'your teacher'} to approve your request."
        )
    return SubmitJoinRequestResponse(
        message=message,
        reactivated=outcome["reactivated"],
        request_id=outcome["request_id"],
        class_info=class_info,
    )


@router.get("/{class_id}", response_model=ClassResponse, summary="Get class")
def get_class(
    class_id: str,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> ClassResponse:
    class_model = class_manager.get_class_for_user(
        class_id, current_user.user_id, current_user.role
    )
    return ClassResponse(class_info=_build_class_info(class_model))


@router.delete("/{class_id}", response_model=SuccessResponse, summary="Delete class")
def delete_class(
    class_id: str,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> SuccessResponse:
    class_manager.delete_class(class_id, current_user.user_id)
    return SuccessResponse(message="Class deleted successfully")


@router.get(
    "/{class_id}/students", response_model=StudentListResponse, summary="List students"
)
def list_students(
    class_id: str,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> StudentListResponse:
    class_manager.get_owned_class(class_id, current_user.user_id)
    students = [
        StudentInfo(
            student_id=e.student_id,
            student_name=e.student_name,
            student_enrollment=e.student_enrollment,
            enrolled_at=to_iso(e.enrolled_at),
        )
        for e in class_manager.list_students(class_id)
    ]
    return StudentListResponse(students=students, total_students=len(students))


@router.post(
    "/{class_id}/students", response_model=AddStudentResponse, summary="Add student"
)
def add_student(
    class_id: str,
    req: AddStudentRequest,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> AddStudentResponse:
    """Enroll a student by enrollment number, bypassing join codes."""
    enrollment = class_manager.add_student(class_id, req.enrollment, current_user.user_id)
    return AddStudentResponse(
        message=f"{enrollment.student_name} has been added to the class successfully!",
        student=StudentInfo(
            student_id=enrollment.student_id,
            student_name=enrollment.student_name,
            student_enrollment=enrollment.student_enrollment,
            enrolled_at=to_iso(enrollment.enrolled_at),
        ),
        student_count=class_manager.count_active_students(class_id),
    )


@router.delete(
    "/{class_id}/students/{student_id}",
    response_model=RemoveStudentResponse,
    summary="Remove student",
)
def remove_student(
    class_id: str,
    student_id: str,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> RemoveStudentResponse:
    total = class_manager.remove_student(class_id, student_id, current_user.user_id)
    return RemoveStudentResponse(
        message="Student removed from class successfully.",
        student_count=total,
    )


@router.post(
    "/{class_id}/generate-join-code",
    response_model=JoinCodeResponse,
    summary="Generate join code",
)
def generate_join_code(
    class_id: str,
    enrollment_manager: EnrollmentManagerDep,
    req: Optional[GenerateJoinCodeRequest] = None,
    current_user: UserModel = Depends(require_teacher),
) -> JoinCodeResponse:
    model = enrollment_manager.issue_join_code(
        class_id,
        current_user.user_id,
        max_usage=req.max_usage if req else None,
    )
    return JoinCodeResponse(
        message="Join code generated successfully!",
        join_code=model.code,
        expires_at=to_iso(model.expires_at),
        expires_in_minutes=JOIN_CODE_EXPIRY_MINUTES,
        class_name=model.class_.name,
        class_subject=model.class_.subject,
        usage_count=model.usage_count,
        max_usage=model.max_usage,
    )


@router.get(
    "/{class_id}/active-join-code",
    response_model=ActiveJoinCodeResponse,
    summary="Get active join code",
)
def get_active_join_code(
    class_id: str,
    enrollment_manager: EnrollmentManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> ActiveJoinCodeResponse:
    model = enrollment_manager.get_active_join_code(class_id, current_user.user_id)
    if model is None:
        return ActiveJoinCodeResponse(
            has_active_code=False,
            message="No active join code found.",
        )
    return ActiveJoinCodeResponse(
        has_active_code=True,
        join_code=model.code,
        expires_at=to_iso(model.expires_at),
        usage_count=model.usage_count,
        max_usage=model.max_usage,
        remaining_time=seconds_until(model.expires_at, enrollment_manager.clock()),
    )


@router.get(
    "/{class_id}/join-requests",
    response_model=JoinRequestListResponse,
    summary="List pending join requests",
)
def list_join_requests(
    class_id: str,
    class_manager: ClassManagerDep,
    enrollment_manager: EnrollmentManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> JoinRequestListResponse:
    requests = enrollment_manager.list_pending_requests(class_id, current_user.user_id)
    class_model = class_manager.get_class(class_id)
    return JoinRequestListResponse(
        requests=[JoinRequestInfo(**r) for r in requests],
        total_pending=len(requests),
        class_name=class_model.name,
    )


@router.post(
    "/{class_id}/join-requests/{request_id}/{action}",
    response_model=ResolveJoinRequestResponse,
    summary="Approve or reject join request",
)
def resolve_join_request(
    class_id: str,
    request_id: str,
    action: str,
    enrollment_manager: EnrollmentManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> ResolveJoinRequestResponse:
    outcome = enrollment_manager.resolve_join_request(
        class_id, request_id, action, current_user.user_id
    )
    if outcome["action"] == "approved":
        message = f"{outcome['student_name']} has been added to the class successfully!"
    else:
        message = f"Join request from {outcome['student_name']} has been rejected."
    return ResolveJoinRequestResponse(message=message, **outcome)


@router.get(
    "/{class_id}/rankings", response_model=RankingsResponse, summary="Class rankings"
)
def class_rankings(
    class_id: str,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> RankingsResponse:
    rankings = quiz_manager.class_rankings(class_id, current_user.user_id, current_user.role)
    return RankingsResponse(rankings=rankings)


@router.get(
    "/{class_id}/last-quiz-rankings",
    response_model=LastQuizRankingsResponse,
    summary="Last quiz rankings",
)
def last_quiz_rankings(
    class_id: str,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> LastQuizRankingsResponse:
    data = quiz_manager.last_quiz_rankings(class_id, current_user.user_id, current_user.role)
    return LastQuizRankingsResponse(**data)


@router.get(
    "/{class_id}/students/{student_id}/analytics",
    response_model=StudentAnalyticsResponse,
    summary="Student analytics",
)
def student_analytics(
    class_id: str,
    student_id: str,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> StudentAnalyticsResponse:
    data = quiz_manager.student_analytics(class_id, student_id, current_user.user_id)
    return StudentAnalyticsResponse(**data)
