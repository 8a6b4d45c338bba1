from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from .base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    full_name = Column(String, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String, default="student")                 # student | teacher | admin

    quizzes = relationship("Quiz", back_populates="teacher")

    @property
    def is_teacher(self) -> bool:
        return self.role in ("teacher", "admin")
