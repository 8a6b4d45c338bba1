import redis
import redis.asyncio as aioredis
import json
import logging
from typing import Any, AsyncIterator, List, Optional

from examguard.core.config import settings

logger = logging.getLogger(__name__)

_CONNECTION_OPTIONS = {
    "decode_responses": True,
    "socket_connect_timeout": 5,
    "retry_on_timeout": True,
}


class CacheManager:
    """Redis access for the monitor.

    Celery tasks use the blocking helpers (`get`, `set`, `keys`) to keep the
    teachers' alert lists; request handlers use the `a*` coroutines and the
    pub/sub channel that carries live violations.
    """

    def __init__(self, redis_url: Optional[str] = None, default_ttl: Optional[int] = None):
        self.redis_url = redis_url or settings.redis_url
        self.default_ttl = default_ttl or settings.cache_default_ttl
        self._blocking: Optional[redis.Redis] = None
        self._shared: Optional[aioredis.Redis] = None

    @property
    def sync_client(self) -> redis.Redis:
        if self._blocking is None:
            self._blocking = redis.from_url(self.redis_url, socket_timeout=5, **_CONNECTION_OPTIONS)
        return self._blocking

    async def get_async_client(self) -> aioredis.Redis:
        if self._shared is not None:
            return self._shared
        client = aioredis.from_url(self.redis_url, health_check_interval=30, **_CONNECTION_OPTIONS)
        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Redis at {self.redis_url} is unreachable: {e}")
            await client.aclose()
            raise
        self._shared = client
        return client

    @staticmethod
    def _dump(value: Any) -> str:
        return json.dumps(value, default=str)

    @staticmethod
    def _load(raw: Optional[str]) -> Any:
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Ignoring non-JSON cache value: {raw!r}")
            return raw

    def _forget_client(self, error: Exception):
        # reconnect on the next call after a dropped connection
        if isinstance(error, (redis.ConnectionError, redis.TimeoutError)):
            self._shared = None

    def get(self, key: str) -> Optional[Any]:
        try:
            return self._load(self.sync_client.get(key))
        except redis.RedisError as e:
            logger.error(f"Cache read failed for '{key}': {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            return bool(self.sync_client.setex(key, ttl or self.default_ttl, self._dump(value)))
        except redis.RedisError as e:
            logger.error(f"Cache write failed for '{key}': {e}")
            return False

    def keys(self, pattern: str) -> List[str]:
        try:
            return list(self.sync_client.scan_iter(match=pattern))
        except redis.RedisError as e:
            logger.error(f"Cache scan failed for '{pattern}': {e}")
            return []

    async def aget(self, key: str) -> Optional[Any]:
        try:
            client = await self.get_async_client()
            return self._load(await client.get(key))
        except redis.RedisError as e:
            logger.error(f"Cache read failed for '{key}': {e}")
            self._forget_client(e)
            return None

    async def apublish(self, channel: str, message: Any) -> int:
        """Publish on a pub/sub channel. Errors reach the caller."""
        client = await self.get_async_client()
        return await client.publish(channel, self._dump(message))

    async def asubscribe(self, channel: str) -> AsyncIterator[Any]:
        """Yield decoded messages published on `channel` until the caller stops"""
        client = await self.get_async_client()
        pubsub = client.pubsub()
        await pubsub.subscribe(channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                yield self._load(message.get("data"))
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    async def ahealth_check(self) -> bool:
        try:
            client = await self.get_async_client()
            return bool(await client.ping())
        except redis.RedisError as e:
            logger.warning(f"Cache health check failed: {e}")
            return False

    async def aclose(self):
        if self._shared is not None:
            await self._shared.aclose()
            self._shared = None
        if self._blocking is not None:
            self._blocking.close()
            self._blocking = None


cache = CacheManager()
