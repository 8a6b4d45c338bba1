"""
In-memory state of one monitored exam attempt and the error/notice types
surfaced to the student.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ViolationType(str, Enum):
    FULLSCREEN_EXIT = "fullscreen_exit"
    TAB_SWITCH = "tab_switch"
    WINDOW_BLUR = "window_blur"
    MAX_VIOLATIONS_REACHED = "max_violations_reached"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class WatchdogState(str, Enum):
    FOCUSED = "focused"
    WARNED = "warned"


@dataclass(frozen=True)
class Notice:
    """What the student sees in the error/warning modal"""
    severity: Severity
    title: str
    message: str

    def to_dict(self) -> dict:
        return {"type": self.severity.value, "title": self.title, "message": self.message}


class ExamSecurityError(Exception):
    severity = Severity.ERROR
    title = "Security Error"

    def __init__(self, message: str, title: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if title is not None:
            self.title = title

    def to_notice(self) -> Notice:
        return Notice(severity=self.severity, title=self.title, message=self.message)


class AuthenticationError(ExamSecurityError):
    title = "Authentication Error"


class SubmissionError(ExamSecurityError):
    title = "Submission Error"


class PersistenceWarning(ExamSecurityError):
    severity = Severity.WARNING
    title = "Warning"


@dataclass
class Identity:
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str = "student"


@dataclass
class ExamSession:
    quiz_id: str
    teacher_id: str
    student_name: str
    quiz_title: str
    strict_mode: bool
    duration_minutes: Optional[int] = None

    violation_count: int = 0
    is_fullscreen: bool = False
    is_blurred: bool = False
    show_warning: bool = False
    needs_user_action: bool = False
    is_submitting: bool = False
    submitted: bool = False
    notice: Optional[Notice] = None
    time_left: Optional[int] = field(default=None)

    def count_violation(self) -> int:
        """Bump the counter and return the new value.

        Runs without suspending, so under asyncio every caller gets its own
        value even when recorder calls overlap.
        """
        self.violation_count += 1
        return self.violation_count

    @property
    def state(self) -> WatchdogState:
        return WatchdogState.WARNED if self.needs_user_action else WatchdogState.FOCUSED

    def warn(self):
        self.needs_user_action = True
        self.show_warning = True
        self.is_blurred = True

    def clear_warning(self):
        self.needs_user_action = False
        self.show_warning = False
        self.is_blurred = False

    @property
    def warning_message(self) -> str:
        message = "You have left the quiz page. This incident has been recorded."
        if self.violation_count > 1:
            message += " Multiple violations may result in quiz termination."
        if self.violation_count > 2:
            message += " This is your final warning."
        return message
