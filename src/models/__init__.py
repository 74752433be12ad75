from .user import UserModel
from .class_model import ClassModel
from .class_enrollment import ClassEnrollmentModel
from .class_join_code import ClassJoinCodeModel
from .class_join_request import ClassJoinRequestModel
from .quiz import QuizModel
from .quiz_result import QuizResultModel

__all__ = [
    "UserModel",
    "ClassModel",
    "ClassEnrollmentModel",
    "ClassJoinCodeModel",
    "ClassJoinRequestModel",
    "QuizModel",
    "QuizResultModel",
]
