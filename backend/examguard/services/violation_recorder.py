from typing import Optional, Protocol
import logging

from ..core.config import settings
from .exam_session import (
    AuthenticationError,
    ExamSecurityError,
    ExamSession,
    Identity,
    Notice,
    PersistenceWarning,
    Severity,
    ViolationType,
)

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    async def get_current_identity(self) -> Optional[Identity]: ...


async def resolve_identity(provider: IdentityProvider, failure_message: str) -> Identity:
    """Fetch the current identity or raise AuthenticationError"""
    try:
        identity = await provider.get_current_identity()
    except Exception as e:
        logger.error(f"Identity resolution failed: {e}")
        raise AuthenticationError(failure_message) from e
    if identity is None:
        raise AuthenticationError(failure_message)
    return identity


class ViolationRecorder:
    """Counts, persists and broadcasts one violation per detected event."""

    def __init__(self, session: ExamSession, identity_provider: IdentityProvider, store, broadcaster,
                 auto_submitter=None, max_violations: Optional[int] = None):
        self.session = session
        self.identity_provider = identity_provider
        self.store = store
        self.broadcaster = broadcaster
        self.auto_submitter = auto_submitter
        self.max_violations = max_violations if max_violations is not None else settings.max_violations

    async def record(self, violation_type: ViolationType) -> Optional[int]:
        """Handle one violation; returns the counter value it produced.

        Failures end up as the session notice rather than as exceptions.
        """
        session = self.session
        if not session.strict_mode:
            return None

        # counted before anything can fail
        count = session.count_violation()
        logger.info(
            f"Violation {violation_type.value} #{count} on quiz {session.quiz_id} by {session.student_name}"
        )

        try:
            identity = await resolve_identity(self.identity_provider, "No authenticated user found")

            try:
                await self.store.log_violation(
                    quiz_id=session.quiz_id,
                    student_id=identity.id,
                    violation_type=violation_type.value,
                    student_name=session.student_name,
                    quiz_title=session.quiz_title,
                )
            except Exception as e:
                logger.warning(f"Failed to log security violation: {e}")
                session.notice = PersistenceWarning(
                    "Failed to log security violation, but this incident will be reported."
                ).to_notice()

            await self.broadcaster.publish({
                "quiz_id": session.quiz_id,
                "student_name": session.student_name,
                "quiz_title": session.quiz_title,
                "violation_type": violation_type.value,
                "teacher_id": session.teacher_id,
                "violation_count": count,
            })

            if count >= self.max_violations and self.auto_submitter is not None:
                await self.auto_submitter.trigger()
        except ExamSecurityError as e:
            logger.error(f"Security violation not recorded: {e.message}")
            session.notice = e.to_notice()
        except Exception as e:
            logger.error(f"Error recording security violation: {e}", exc_info=True)
            session.notice = Notice(
                severity=Severity.ERROR,
                title="Security Error",
                message="An error occurred while recording a security violation.",
            )

        return count
