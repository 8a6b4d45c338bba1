"""
Exam-integrity monitor for one exam attempt.

While the quiz runs in strict mode the monitor keeps the student in
fullscreen, watches the client's fullscreen, visibility and focus
notifications, and hands every violation to the recorder. A violation puts
the watchdog into the warned state, which only the student's explicit
"Return to Quiz" acknowledgment clears.
"""
from typing import Awaitable, Callable, Optional
import asyncio
import logging

from ..core.config import settings
from ..schemas.exam_security import ClientMessage, GateView, MonitorView, WarningView
from .auto_submission import AutoSubmitter
from .client_environment import ClientEnvironment, DOCUMENT, WINDOW
from .exam_session import ExamSession, ViolationType
from .exam_timer import ExamTimer
from .violation_recorder import ViolationRecorder

logger = logging.getLogger(__name__)

ViewPublisher = Callable[[MonitorView], Awaitable[None]]


class FullscreenGate:
    """Keeps the quiz hidden until the client is in fullscreen (strict mode only)"""

    TITLE = "Fullscreen Mode Required"
    MESSAGE = "This quiz requires fullscreen mode. Please enter fullscreen mode to continue."
    ACTION = "Enter Fullscreen Mode"

    def __init__(self, session: ExamSession, environment: ClientEnvironment):
        self.session = session
        self.environment = environment

    @property
    def blocking(self) -> bool:
        return self.session.strict_mode and not self.session.is_fullscreen

    async def enter_fullscreen(self) -> bool:
        """Ask the client for fullscreen. A refusal leaves the gate up."""
        try:
            await self.environment.request_fullscreen()
            return True
        except Exception as e:
            logger.warning(f"Fullscreen request for quiz {self.session.quiz_id} failed: {e}")
            return False

    def render(self) -> Optional[GateView]:
        if not self.blocking:
            return None
        return GateView(title=self.TITLE, message=self.MESSAGE, action=self.ACTION)


class ExamSecurityMonitor:
    WARNING_TITLE = "Security Warning"
    WARNING_ACTION = "Return to Quiz"

    def __init__(self, session: ExamSession, environment: ClientEnvironment, recorder: ViolationRecorder,
                 auto_submitter: Optional[AutoSubmitter] = None, timer_tick: Optional[float] = None,
                 publish_view: Optional[ViewPublisher] = None):
        self.session = session
        self.environment = environment
        self.recorder = recorder
        self.auto_submitter = auto_submitter
        self.gate = FullscreenGate(session, environment)
        self.timer: Optional[ExamTimer] = None
        self.timer_tick = timer_tick if timer_tick is not None else settings.timer_tick_seconds
        self.publish_view = publish_view
        # client messages and timer callbacks run one at a time: they share the DB session and the socket
        self.lock = asyncio.Lock()
        self.finished = asyncio.Event()
        # needs_user_action as seen by the current subscription, None when unsubscribed
        self._subscribed_for: Optional[bool] = None

    def _listeners(self):
        return [
            (DOCUMENT, "fullscreenchange", self._on_fullscreen_change),
            (DOCUMENT, "fullscreenerror", self._on_fullscreen_error),
            (DOCUMENT, "visibilitychange", self._on_visibility_change),
            (WINDOW, "focus", self._on_focus),
            (WINDOW, "blur", self._on_blur),
        ]

    def _subscribe(self):
        for target, event_type, handler in self._listeners():
            self.environment.add_event_listener(target, event_type, handler)
        self._subscribed_for = self.session.needs_user_action

    def _unsubscribe(self):
        for target, event_type, handler in self._listeners():
            self.environment.remove_event_listener(target, event_type, handler)
        self._subscribed_for = None

    def _resync_listeners(self):
        if self._subscribed_for is None or self._subscribed_for == self.session.needs_user_action:
            return
        self._unsubscribe()
        self._subscribe()

    @property
    def subscribed(self) -> bool:
        return self._subscribed_for is not None

    async def start(self):
        self.session.is_fullscreen = self.environment.is_fullscreen
        if self.session.strict_mode:
            self._subscribe()
        if self.session.duration_minutes and self.timer is None:
            self.session.time_left = self.session.duration_minutes * 60
            self.timer = ExamTimer(
                self.session.time_left,
                on_expire=self._on_time_up,
                on_tick=self._on_tick,
                tick=self.timer_tick,
            )
            self.timer.start()
        logger.info(
            f"Monitoring quiz {self.session.quiz_id} for {self.session.student_name} "
            f"(strict_mode={self.session.strict_mode})"
        )

    async def stop(self):
        self._unsubscribe()
        if self.timer is not None:
            await self.timer.stop()

    def set_strict_mode(self, enabled: bool):
        self.session.strict_mode = enabled
        if enabled and not self.subscribed:
            self.session.is_fullscreen = self.environment.is_fullscreen
            self._subscribe()
        elif not enabled and self.subscribed:
            self._unsubscribe()

    async def _on_fullscreen_change(self):
        self.session.is_fullscreen = self.environment.is_fullscreen
        if not self.environment.is_fullscreen:
            await self._report(ViolationType.FULLSCREEN_EXIT)

    async def _on_fullscreen_error(self):
        logger.info(f"Client refused fullscreen for quiz {self.session.quiz_id}")

    async def _on_visibility_change(self):
        if self.environment.hidden:
            await self._report(ViolationType.TAB_SWITCH)
        else:
            self._on_regained()

    async def _on_focus(self):
        self._on_regained()

    async def _on_blur(self):
        await self._report(ViolationType.WINDOW_BLUR)

    def _on_regained(self):
        # refocusing alone never clears a pending warning
        if self.session.needs_user_action:
            logger.debug(f"Focus regained on quiz {self.session.quiz_id} without acknowledgment, ignored")
            return
        self.session.is_blurred = False
        self.session.show_warning = False

    async def _report(self, violation_type: ViolationType):
        self.session.warn()
        self._resync_listeners()
        await self.recorder.record(violation_type)

    async def acknowledge(self):
        """Student pressed "Return to Quiz" """
        self.session.clear_warning()
        self._resync_listeners()
        await self.gate.enter_fullscreen()

    async def enter_fullscreen(self) -> bool:
        return await self.gate.enter_fullscreen()

    def dismiss_notice(self):
        self.session.notice = None

    async def handle(self, message: ClientMessage):
        """Apply one client message and push the resulting view"""
        async with self.lock:
            if message.event is not None:
                await self.environment.deliver(message.event, fullscreen=message.fullscreen, hidden=message.hidden)
            elif message.action == "enter_fullscreen":
                await self.enter_fullscreen()
            elif message.action == "acknowledge":
                await self.acknowledge()
            elif message.action == "dismiss_notice":
                self.dismiss_notice()
            await self._publish()

    async def push_view(self):
        async with self.lock:
            await self._publish()

    async def _publish(self):
        try:
            if self.publish_view is not None:
                await self.publish_view(self.view())
        finally:
            if self.session.submitted:
                self.finished.set()

    async def _publish_from_timer(self):
        try:
            await self._publish()
        except Exception as e:
            logger.warning(f"Could not push view for quiz {self.session.quiz_id}: {e}")

    async def _on_tick(self, remaining: int):
        async with self.lock:
            self.session.time_left = remaining
            await self._publish_from_timer()

    async def _on_time_up(self):
        async with self.lock:
            if self.session.strict_mode and self.auto_submitter is not None:
                await self.auto_submitter.trigger(final_violation=None)
            await self._publish_from_timer()

    def view(self) -> MonitorView:
        session = self.session
        blocking = self.gate.blocking
        warning = None
        if session.show_warning and not blocking:
            warning = WarningView(
                title=self.WARNING_TITLE,
                message=session.warning_message,
                action=self.WARNING_ACTION,
            )
        return MonitorView(
            strict_mode=session.strict_mode,
            state=session.state.value,
            gate=self.gate.render(),
            content_visible=not blocking,
            blurred=session.is_blurred,
            warning=warning,
            violation_count=session.violation_count,
            time_left=session.time_left,
            submitting=session.is_submitting,
            submitted=session.submitted,
            notice=session.notice.to_dict() if session.notice else None,
        )
