from pydantic import BaseModel, model_validator
from datetime import datetime
from typing import Optional, Literal, Dict, Any


class ClientMessage(BaseModel):
    """One message from the student's browser: a notification or an action"""
    event: Optional[Literal["fullscreenchange", "fullscreenerror", "visibilitychange", "focus", "blur"]] = None
    action: Optional[Literal["enter_fullscreen", "acknowledge", "dismiss_notice"]] = None
    fullscreen: Optional[bool] = None
    hidden: Optional[bool] = None

    @model_validator(mode="after")
    def check_kind(self):
        if (self.event is None) == (self.action is None):
            raise ValueError("exactly one of 'event' or 'action' is required")
        return self


class GateView(BaseModel):
    title: str
    message: str
    action: str


class WarningView(BaseModel):
    title: str
    message: str
    action: str


class MonitorView(BaseModel):
    type: Literal["view"] = "view"
    strict_mode: bool
    state: str
    gate: Optional[GateView] = None
    content_visible: bool
    blurred: bool
    warning: Optional[WarningView] = None
    violation_count: int
    time_left: Optional[int] = None
    submitting: bool
    submitted: bool
    notice: Optional[Dict[str, str]] = None


class SecurityNotification(BaseModel):
    id: str
    quiz_id: str
    quiz_title: Optional[str] = None
    student_name: Optional[str] = None
    violation_type: str
    message: str
    occurred_at: datetime
    occurred_at_local: str
    violation_count: Optional[int] = None


class SecurityAlert(BaseModel):
    type: str
    title: str
    message: str
    data: Dict[str, Any]
    timestamp: str
