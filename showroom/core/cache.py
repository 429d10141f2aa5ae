import json
import time
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis
from loguru import logger

from showroom.core.config import settings
from showroom.core.utils import dumps

CONTENT_PREFIX = "site_content:"


class CacheService:
    """
    Read-through cache for site content documents.

    Redis is optional. Without REDIS_URL every call is a miss; when the
    server goes away the cache switches itself off and retries the
    connection at most once per RECONNECT_INTERVAL seconds.
    """

    TTL = 300
    RECONNECT_INTERVAL = 60

    def __init__(self, url: str = None):
        self.url = settings.REDIS_URL if url is None else url
        self.client: Optional[redis.Redis] = None
        self.online = False
        self._next_attempt = 0.0
        if self.url:
            self.client = redis.from_url(self.url, encoding="utf-8", decode_responses=True)
            self.online = True

    async def _available(self) -> bool:
        if self.online:
            return True
        if not self.client or time.monotonic() < self._next_attempt:
            return False
        self._next_attempt = time.monotonic() + self.RECONNECT_INTERVAL
        try:
            await self.client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis still unreachable: {e}")
            return False
        logger.info("Redis connection restored")
        self.online = True
        return True

    async def _call(self, op: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        if not await self._available():
            return None
        try:
            return await fn()
        except redis.ConnectionError as e:
            logger.error(f"Redis connection lost during {op}: {e}. Cache disabled for now.")
            self.online = False
            self._next_attempt = time.monotonic() + self.RECONNECT_INTERVAL
        except redis.RedisError as e:
            logger.error(f"Redis {op} failed: {e}")
        return None

    async def get_content(self, key: str) -> Optional[dict]:
        raw = await self._call("get", lambda: self.client.get(CONTENT_PREFIX + key))
        return json.loads(raw, parse_float=Decimal) if raw else None

    async def set_content(self, key: str, data: dict):
        await self._call("set", lambda: self.client.setex(CONTENT_PREFIX + key, self.TTL, dumps(data)))

    async def invalidate_content(self, key: str):
        await self._call("delete", lambda: self.client.delete(CONTENT_PREFIX + key))


cache_service = CacheService()
