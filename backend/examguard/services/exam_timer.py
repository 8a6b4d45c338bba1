import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ExamTimer:
    """Countdown for a timed quiz; calls `on_expire` once when it reaches zero"""

    def __init__(self, seconds: int, on_expire: Callable[[], Awaitable[None]],
                 on_tick: Optional[Callable[[int], Awaitable[None]]] = None, tick: float = 1.0):
        self.remaining = max(0, int(seconds))
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.tick = tick
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self):
        while self.remaining > 0:
            await asyncio.sleep(self.tick)
            self.remaining -= 1
            if self.on_tick is not None:
                await self.on_tick(self.remaining)
        logger.info("Exam time is up")
        try:
            await self.on_expire()
        except Exception as e:
            logger.error(f"Timer expiry handler failed: {e}", exc_info=True)

    async def stop(self):
        if self._task is None or self._task is asyncio.current_task():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
