"""Class, join code and join request schema definitions."""

from typing import List, Literal, Optional, Union

from pydantic import Field

from schemas.common import ApiModel


class CreateClassRequest(ApiModel):
    name: str
    subject: str
    description: Optional[str] = ""


class ClassInfo(ApiModel):
    id: str
    name: str
    subject: str
    description: str = ""
    student_count: int = 0
    quiz_count: int = 0
    average_score: float = 0.0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class EnrolledClassInfo(ApiModel):
    id: str
    name: str
    subject: str
    description: str = ""
    enrolled_at: Optional[str] = None
    quizzes_taken: int = 0
    average_score: float = 0.0
    available_quizzes: int = 0
    completion_rate: float = 0.0


class ClassListResponse(ApiModel):
    success: bool = True
    classes: List[Union[ClassInfo, EnrolledClassInfo]]
    total_classes: int
    user_type: Literal["teacher", "student"]


class ClassResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    class_info: ClassInfo = Field(alias="class")


class StudentInfo(ApiModel):
    student_id: str
    student_name: str
    student_enrollment: Optional[str] = None
    enrolled_at: Optional[str] = None


class StudentListResponse(ApiModel):
    success: bool = True
    students: List[StudentInfo]
    total_students: int


class AddStudentRequest(ApiModel):
    enrollment: str


class AddStudentResponse(ApiModel):
    success: bool = True
    message: str
    student: StudentInfo
    student_count: int


class RemoveStudentResponse(ApiModel):
    success: bool = True
    message: str
    student_count: int


# --- Join codes ---


class GenerateJoinCodeRequest(ApiModel):
    max_usage: Optional[int] = Field(default=None, ge=1)


class JoinCodeResponse(ApiModel):
    success: bool = True
    message: str
    join_code: str
    expires_at: str
    expires_in_minutes: int
    class_name: str
    class_subject: str
    usage_count: int
    max_usage: int


class ActiveJoinCodeResponse(ApiModel):
    success: bool = True
    has_active_code: bool
    message: Optional[str] = None
    join_code: Optional[str] = None
    expires_at: Optional[str] = None
    usage_count: Optional[int] = None
    max_usage: Optional[int] = None
    remaining_time: Optional[int] = None


class JoinClassInfo(ApiModel):
    class_id: str
    class_name: str
    class_subject: str
    teacher_name: Optional[str] = None
    expires_at: Optional[str] = None
    remaining_time: Optional[int] = None


class ValidateJoinCodeResponse(ApiModel):
    success: bool = True
    valid: bool = True
    class_info: JoinClassInfo


# --- Join requests ---


class SubmitJoinRequestBody(ApiModel):
    join_code: Optional[str] = None


class SubmitJoinRequestResponse(ApiModel):
    success: bool = True
    message: str
    reactivated: bool = False
    request_id: Optional[str] = None
    class_info: JoinClassInfo


class JoinRequestInfo(ApiModel):
    request_id: str
    student_id: str
    student_name: str
    student_enrollment: Optional[str] = None
    join_code: str
    requested_at: str
    time_ago: str


class JoinRequestListResponse(ApiModel):
    success: bool = True
    requests: List[JoinRequestInfo]
    total_pending: int
    class_name: str


class ResolveJoinRequestResponse(ApiModel):
    success: bool = True
    message: str
    action: Literal["approved", "rejected"]
    student_name: str
    student_enrollment: Optional[str] = None
    rejection_reason: Optional[str] = None
    student_count: Optional[int] = None


# --- Rankings and analytics ---


class RankingEntry(ApiModel):
    rank: int
    student_id: str
    student_name: str
    student_enrollment: Optional[str] = None
    quizzes_taken: int
    average_percentage: float
    total_time_seconds: int


class RankingsResponse(ApiModel):
    success: bool = True
    rankings: List[RankingEntry]


class QuizRef(ApiModel):
    quiz_id: str
    title: str


class LastQuizRankingEntry(ApiModel):
    rank: int
    student_id: str
    student_name: str
    score: int
    total_questions: int
    percentage: float
    time_taken_seconds: int


class LastQuizRankingsResponse(ApiModel):
    success: bool = True
    quiz: Optional[QuizRef] = None
    rankings: List[LastQuizRankingEntry]


class QuizHistoryEntry(ApiModel):
    quiz_id: str
    quiz_title: str
    score: int
    total_questions: int
    percentage: float
    time_taken_seconds: int
    submitted_at: Optional[str] = None


class StudentAnalyticsResponse(ApiModel):
    success: bool = True
    student_id: str
    student_name: str
    student_enrollment: Optional[str] = None
    is_active: bool
    quizzes_taken: int
    average_percentage: float
    best_percentage: float
    history: List[QuizHistoryEntry]
