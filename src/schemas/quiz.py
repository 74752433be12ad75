"""Quiz schema definitions."""

from typing import List, Optional

from pydantic import Field

from schemas.common import ApiModel


class QuestionIn(ApiModel):
    question: str
    options: List[str]
    correct_answer: str
    explanation: Optional[str] = ""


class CreateQuizRequest(ApiModel):
    class_id: str
    title: str
    questions: List[QuestionIn]
    duration_minutes: int = 15


class QuestionOut(ApiModel):
    index: int
    question: str
    options: List[str]
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


class QuizInfo(ApiModel):
    quiz_id: str
    class_id: str
    title: str
    duration_minutes: int
    total_questions: int
    created_at: Optional[str] = None
    questions: List[QuestionOut] = Field(default_factory=list)


class QuizResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    quiz: QuizInfo


class QuizListResponse(ApiModel):
    success: bool = True
    quizzes: List[QuizInfo]
    total_quizzes: int


class SubmitQuizRequest(ApiModel):
    answers: List[Optional[str]]
    time_taken_seconds: int = 0


class QuizResultInfo(ApiModel):
    result_id: str
    quiz_id: str
    student_id: str
    student_name: str
    score: int
    total_questions: int
    percentage: float
    time_taken_seconds: int
    submitted_at: Optional[str] = None


class SubmitQuizResponse(ApiModel):
    success: bool = True
    message: str
    result: QuizResultInfo


class QuizResultListResponse(ApiModel):
    success: bool = True
    results: List[QuizResultInfo]
    total_results: int
