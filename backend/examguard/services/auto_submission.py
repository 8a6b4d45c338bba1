from typing import Awaitable, Callable, Optional
import logging

from ..core.config import settings
from .exam_session import (
    ExamSecurityError,
    ExamSession,
    Identity,
    PersistenceWarning,
    SubmissionError,
    ViolationType,
)
from .violation_recorder import IdentityProvider, resolve_identity

logger = logging.getLogger(__name__)

SubmittedCallback = Callable[[ExamSession, Identity], Awaitable[None]]


class AutoSubmitter:
    """Force-submits the attempt with a zero score, at most once per session"""

    def __init__(self, session: ExamSession, identity_provider: IdentityProvider, store, environment,
                 inbox_route: Optional[str] = None, on_submitted: Optional[SubmittedCallback] = None):
        self.session = session
        self.identity_provider = identity_provider
        self.store = store
        self.environment = environment
        self.inbox_route = inbox_route if inbox_route is not None else settings.inbox_route
        self.on_submitted = on_submitted

    async def trigger(self, final_violation: Optional[ViolationType] = ViolationType.MAX_VIOLATIONS_REACHED) -> bool:
        """Run the forced submission; returns True once the student was sent away.

        The guard flag is never reset: after a failed attempt the session
        stays in the submitting state.
        """
        session = self.session
        if session.is_submitting:
            return False
        session.is_submitting = True

        try:
            identity = await resolve_identity(self.identity_provider, "Authentication failed during submission")

            try:
                await self.store.create_forced_submission(quiz_id=session.quiz_id, student_id=identity.id)
            except Exception as e:
                logger.error(f"Forced submission insert failed: {e}")
                raise SubmissionError(f"Failed to submit quiz: {e}") from e

            logger.warning(
                f"Quiz {session.quiz_id} force-submitted for {session.student_name} "
                f"after {session.violation_count} violation(s)"
            )

            if final_violation is not None:
                try:
                    await self.store.log_violation(
                        quiz_id=session.quiz_id,
                        student_id=identity.id,
                        violation_type=final_violation.value,
                        student_name=session.student_name,
                        quiz_title=session.quiz_title,
                    )
                except Exception as e:
                    logger.warning(f"Failed to log final violation: {e}")
                    session.notice = PersistenceWarning(
                        "Failed to log the final violation, but your quiz has been submitted."
                    ).to_notice()

            if self.on_submitted is not None:
                try:
                    await self.on_submitted(session, identity)
                except Exception as e:
                    logger.error(f"Post-submission hook failed: {e}")

            await self.environment.navigate(self.inbox_route)
            session.submitted = True
            return True
        except ExamSecurityError as e:
            logger.error(f"Forced submission aborted: {e.message}")
            session.notice = e.to_notice()
            return False
