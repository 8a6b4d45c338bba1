from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from ..core.database import Base


class QuizSecurityViolation(Base):
    __tablename__ = "quiz_security_violations"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(String(36), ForeignKey("quizzes.id"), nullable=False, index=True)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    violation_type = Column(String, nullable=False)       # fullscreen_exit, tab_switch, window_blur, max_violations_reached
    student_name = Column(String)
    quiz_title = Column(String)
    occurred_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<QuizSecurityViolation {self.violation_type} for quiz {self.quiz_id}>"
