from typing import Any, Dict, Optional
import logging

from ..core.cache import CacheManager, cache as default_cache
from ..core.config import settings

logger = logging.getLogger(__name__)

VIOLATION_EVENT = "security_violation"


class ViolationBroadcaster:
    """Publishes violations on the live channel the teachers' feeds listen to"""

    def __init__(self, cache: Optional[CacheManager] = None, channel: Optional[str] = None):
        self.cache = cache or default_cache
        self.channel = channel or settings.violation_channel

    async def publish(self, payload: Dict[str, Any]) -> int:
        message = {
            "type": "broadcast",
            "event": VIOLATION_EVENT,
            "payload": payload,
        }
        receivers = await self.cache.apublish(self.channel, message)
        logger.info(
            f"Broadcast {payload.get('violation_type')} for quiz {payload.get('quiz_id')} "
            f"to {receivers} subscriber(s)"
        )
        return receivers
