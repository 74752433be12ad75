"""Quiz routes."""

from fastapi import APIRouter, Depends

from core.dependencies import QuizManagerDep
from models.quiz_result import QuizResultModel
from models.user import UserModel
from api.routes.auth import get_current_user, require_student, require_teacher
from schemas.common import SuccessResponse
from schemas.quiz import (
    CreateQuizRequest,
    QuizInfo,
    QuizListResponse,
    QuizResponse,
    QuizResultInfo,
    QuizResultListResponse,
    SubmitQuizRequest,
    SubmitQuizResponse,
)
from utils.quiz_manager import quiz_for_role
from utils.time_utils import to_iso
from utils.user_manager import TEACHER

router = APIRouter(prefix="/api/quizzes", tags=["Quiz"])


def _build_result_info(model: QuizResultModel) -> QuizResultInfo:
    return QuizResultInfo(
        result_id=model.result_id,
        quiz_id=model.quiz_id,
        student_id=model.student_id,
        student_name=model.student_name,
        score=model.score,
        total_questions=model.total_questions,
        percentage=model.percentage,
        time_taken_seconds=model.time_taken_seconds,
        submitted_at=to_iso(model.submitted_at),
    )


@router.post("", response_model=QuizResponse, summary="Create quiz")
def create_quiz(
    req: CreateQuizRequest,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> QuizResponse:
    quiz = quiz_manager.create_quiz(
        class_id=req.class_id,
        teacher_id=current_user.user_id,
        title=req.title,
        questions=[q.model_dump() for q in req.questions],
        duration_minutes=req.duration_minutes,
    )
    return QuizResponse(
        message="Quiz created successfully!",
        quiz=QuizInfo(**quiz_for_role(quiz, TEACHER)),
    )


@router.get("/class/{class_id}", response_model=QuizListResponse, summary="List class quizzes")
def list_class_quizzes(
    class_id: str,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> QuizListResponse:
    quizzes = quiz_manager.list_quizzes(class_id, current_user.user_id, current_user.role)
    items = []
    for quiz in quizzes:
        info = quiz_for_role(quiz, current_user.role)
        # Listings carry no question bodies
        info["questions"] = []
        items.append(QuizInfo(**info))
    return QuizListResponse(quizzes=items, total_quizzes=len(items))


@router.get("/{quiz_id}", response_model=QuizResponse, summary="Get quiz")
def get_quiz(
    quiz_id: str,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> QuizResponse:
    """Fetch a quiz; students receive it without answers or explanations."""
    quiz = quiz_manager.get_quiz_for_user(quiz_id, current_user.user_id, current_user.role)
    return QuizResponse(quiz=QuizInfo(**quiz_for_role(quiz, current_user.role)))


@router.delete("/{quiz_id}", response_model=SuccessResponse, summary="Delete quiz")
def delete_quiz(
    quiz_id: str,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> SuccessResponse:
    quiz_manager.delete_quiz(quiz_id, current_user.user_id)
    return SuccessResponse(message="Quiz deleted successfully")


@router.post("/{quiz_id}/submit", response_model=SubmitQuizResponse, summary="Submit quiz")
def submit_quiz(
    quiz_id: str,
    req: SubmitQuizRequest,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(require_student),
) -> SubmitQuizResponse:
    result = quiz_manager.submit_quiz(
        quiz_id,
        current_user.user_id,
        req.answers,
        time_taken_seconds=req.time_taken_seconds,
    )
    return SubmitQuizResponse(
        message=f"Quiz submitted! You scored {result.score}/{result.total_questions}.",
        result=_build_result_info(result),
    )


@router.get(
    "/{quiz_id}/results", response_model=QuizResultListResponse, summary="List quiz results"
)
def list_quiz_results(
    quiz_id: str,
    quiz_manager: QuizManagerDep,
    current_user: UserModel = Depends(require_teacher),
) -> QuizResultListResponse:
    results = [
        _build_result_info(r) for r in quiz_manager.list_results(quiz_id, current_user.user_id)
    ]
    return QuizResultListResponse(results=results, total_results=len(results))
