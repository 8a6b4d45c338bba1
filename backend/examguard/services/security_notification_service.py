from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, AsyncIterator, Dict, List, Optional
import logging
import uuid

from ..core.cache import CacheManager, cache as default_cache
from ..core.config import settings
from ..models.security_violation import QuizSecurityViolation
from ..schemas.exam_security import SecurityAlert, SecurityNotification
from ..utils.timezone import format_local_time, utc_now
from .security_record_service import SecurityRecordService
from .violation_broadcaster import VIOLATION_EVENT

logger = logging.getLogger(__name__)

VIOLATION_MESSAGES = {
    "tab_switch": "switched tabs",
    "window_blur": "left the quiz window",
    "fullscreen_exit": "exited fullscreen mode",
}


def format_violation_message(violation_type: str) -> str:
    return VIOLATION_MESSAGES.get(violation_type, "performed an unauthorized action")


def alerts_key(teacher_id: str) -> str:
    return f"security_alerts:{teacher_id}"


class SecurityNotificationService:
    """Violation feed for the teacher who owns the quizzes"""

    def __init__(self, db: AsyncSession, cache: Optional[CacheManager] = None):
        self.records = SecurityRecordService(db)
        self.cache = cache or default_cache

    async def get_recent(self, teacher_id: str, limit: Optional[int] = None) -> List[SecurityNotification]:
        violations = await self.records.get_recent_violations_for_teacher(
            teacher_id, limit=limit or settings.recent_violations_limit
        )
        return [self.from_record(v) for v in violations]

    @staticmethod
    def from_record(violation: QuizSecurityViolation) -> SecurityNotification:
        occurred_at = violation.occurred_at or utc_now()
        return SecurityNotification(
            id=str(violation.id),
            quiz_id=violation.quiz_id,
            quiz_title=violation.quiz_title,
            student_name=violation.student_name,
            violation_type=violation.violation_type,
            message=format_violation_message(violation.violation_type),
            occurred_at=occurred_at,
            occurred_at_local=format_local_time(occurred_at),
        )

    @staticmethod
    def from_broadcast(message: Any, teacher_id: str) -> Optional[SecurityNotification]:
        """Turn a channel message into a notification if it is meant for this teacher"""
        if not isinstance(message, dict) or message.get("event") != VIOLATION_EVENT:
            return None
        payload: Dict[str, Any] = message.get("payload") or {}
        if payload.get("teacher_id") != teacher_id:
            return None

        occurred_at = utc_now()
        violation_type = payload.get("violation_type", "")
        return SecurityNotification(
            id=uuid.uuid4().hex,
            quiz_id=payload.get("quiz_id", ""),
            quiz_title=payload.get("quiz_title"),
            student_name=payload.get("student_name"),
            violation_type=violation_type,
            message=format_violation_message(violation_type),
            occurred_at=occurred_at,
            occurred_at_local=format_local_time(occurred_at),
            violation_count=payload.get("violation_count"),
        )

    async def stream_live(self, teacher_id: str) -> AsyncIterator[SecurityNotification]:
        async for message in self.cache.asubscribe(settings.violation_channel):
            notification = self.from_broadcast(message, teacher_id)
            if notification is not None:
                logger.info(f"New violation for teacher {teacher_id}: {notification.violation_type}")
                yield notification

    async def get_alerts(self, teacher_id: str) -> List[SecurityAlert]:
        alerts = await self.cache.aget(alerts_key(teacher_id)) or []
        return [SecurityAlert(**alert) for alert in reversed(alerts)]
