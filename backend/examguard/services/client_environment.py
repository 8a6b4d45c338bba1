"""
Server-side stand-in for the student's browser document and window.

The browser forwards its fullscreen, visibility and focus notifications; the
monitor registers listeners here the way a page script would on
`document`/`window`, and sends commands (fullscreen request, navigation) back.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Tuple
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)

Handler = Callable[[], Awaitable[None]]

DOCUMENT = "document"
WINDOW = "window"

# client event name -> target it is delivered on
CLIENT_EVENTS = {
    "fullscreenchange": DOCUMENT,
    "fullscreenerror": DOCUMENT,
    "visibilitychange": DOCUMENT,
    "focus": WINDOW,
    "blur": WINDOW,
}


class ClientEnvironment(ABC):
    """Listener registry mirroring the client; subclasses carry commands back to it"""

    def __init__(self):
        self._listeners: Dict[Tuple[str, str], List[Handler]] = defaultdict(list)
        self.is_fullscreen = False
        self.hidden = False

    def add_event_listener(self, target: str, event_type: str, handler: Handler):
        handlers = self._listeners[(target, event_type)]
        if handler not in handlers:
            handlers.append(handler)

    def remove_event_listener(self, target: str, event_type: str, handler: Handler):
        handlers = self._listeners.get((target, event_type))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def listener_count(self) -> int:
        return sum(len(handlers) for handlers in self._listeners.values())

    async def dispatch(self, target: str, event_type: str):
        # copy: handlers may re-subscribe while running
        for handler in list(self._listeners.get((target, event_type), [])):
            await handler()

    async def deliver(self, event_type: str, fullscreen=None, hidden=None):
        """Apply a client notification to the mirrored state and fire its listeners"""
        target = CLIENT_EVENTS.get(event_type)
        if target is None:
            raise ValueError(f"Unknown client event: {event_type}")
        if event_type == "fullscreenchange" and fullscreen is not None:
            self.is_fullscreen = bool(fullscreen)
        elif event_type == "visibilitychange" and hidden is not None:
            self.hidden = bool(hidden)
        await self.dispatch(target, event_type)

    @abstractmethod
    async def request_fullscreen(self):
        ...

    @abstractmethod
    async def navigate(self, route: str):
        ...


class WebSocketClientEnvironment(ClientEnvironment):
    """Client environment backed by the student's monitor WebSocket"""

    def __init__(self, websocket: WebSocket):
        super().__init__()
        self.websocket = websocket

    async def send_command(self, command: str, **data):
        await self.websocket.send_json({"type": "command", "command": command, **data})

    async def request_fullscreen(self):
        await self.send_command("request_fullscreen")

    async def navigate(self, route: str):
        logger.info(f"Redirecting client to {route}")
        await self.send_command("navigate", route=route)
