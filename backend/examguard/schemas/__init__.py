from .exam_security import (
    ClientMessage,
    GateView,
    WarningView,
    MonitorView,
    SecurityNotification,
    SecurityAlert,
)

__all__ = [
    "ClientMessage",
    "GateView",
    "WarningView",
    "MonitorView",
    "SecurityNotification",
    "SecurityAlert"
]
