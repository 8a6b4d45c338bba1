from sqlalchemy import Column, String, Boolean, Integer, ForeignKey
from sqlalchemy.orm import relationship
from .base import BaseModel


class Quiz(BaseModel):
    """Quiz header as authored elsewhere; the monitor only reads it"""
    __tablename__ = "quizzes"

    title = Column(String, nullable=False)
    teacher_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    strict_mode = Column(Boolean, default=False)
    duration_minutes = Column(Integer, nullable=True)

    teacher = relationship("User", back_populates="quizzes")
