from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List

from ..models.security_violation import QuizSecurityViolation
from ..models.quiz_submission import QuizSubmission
from ..models.quiz import Quiz


class SecurityRecordService:
    """Durable store for violation logs and forced submissions.

    Both tables are append-only from the monitor's side. Failed writes are
    rolled back and re-raised so the caller decides how fatal they are.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _add(self, row):
        self.db.add(row)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(row)
        return row

    async def log_violation(
        self,
        quiz_id: str,
        student_id: str,
        violation_type: str,
        student_name: Optional[str],
        quiz_title: Optional[str],
    ) -> QuizSecurityViolation:
        return await self._add(QuizSecurityViolation(
            quiz_id=quiz_id,
            student_id=student_id,
            violation_type=violation_type,
            student_name=student_name,
            quiz_title=quiz_title,
        ))

    async def create_forced_submission(self, quiz_id: str, student_id: str) -> QuizSubmission:
        """Zero-score submission with no answers"""
        return await self._add(QuizSubmission(
            student_id=student_id,
            quiz_id=quiz_id,
            answers={},
            score=0,
            total_questions=0,
            correct_answers=0,
        ))

    async def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        result = await self.db.execute(select(Quiz).filter(Quiz.id == quiz_id))
        return result.scalars().first()

    async def get_recent_violations_for_teacher(self, teacher_id: str, limit: int = 5) -> List[QuizSecurityViolation]:
        quiz_ids_result = await self.db.execute(select(Quiz.id).filter(Quiz.teacher_id == teacher_id))
        quiz_ids = list(quiz_ids_result.scalars().all())
        if not quiz_ids:
            return []

        result = await self.db.execute(
            select(QuizSecurityViolation)
            .filter(QuizSecurityViolation.quiz_id.in_(quiz_ids))
            .order_by(QuizSecurityViolation.occurred_at.desc(), QuizSecurityViolation.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

