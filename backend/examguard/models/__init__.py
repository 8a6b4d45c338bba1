from .base import BaseModel
from .user import User
from .quiz import Quiz
from .security_violation import QuizSecurityViolation
from .quiz_submission import QuizSubmission

__all__ = [
    "BaseModel",
    "User",
    "Quiz",
    "QuizSecurityViolation",
    "QuizSubmission"
]
