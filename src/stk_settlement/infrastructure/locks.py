"""Lock service implementations.

RedisLockService: SET key token NX PX ttl, polled until the deadline; release
is a compare-and-delete Lua script so a holder whose TTL expired cannot free
a lock now owned by someone else.

LocalLockService: the same contract inside one process (single worker
deployments and tests). Expired entries are taken over like Redis keys.
"""

import asyncio
import logging
import time
import uuid

import redis.asyncio as aioredis

from config.settings import settings
from src.stk_common.redis_client import get_redis

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""

_KEY_PREFIX = "stk:lock:"


class RedisLockService:
    def __init__(
        self,
        client: aioredis.Redis | None = None,
        retry_interval_ms: int | None = None,
    ) -> None:
        self._client = client
        self._retry_interval = (
            retry_interval_ms if retry_interval_ms is not None else settings.LOCK_RETRY_INTERVAL_MS
        ) / 1000

    async def _redis(self) -> aioredis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def acquire(
        self, key: str, ttl_seconds: float, timeout_seconds: float
    ) -> str | None:
        client = await self._redis()
        token = uuid.uuid4().hex
        ttl_ms = max(1, int(ttl_seconds * 1000))
        deadline = time.monotonic() + timeout_seconds
        while True:
            if await client.set(_KEY_PREFIX + key, token, nx=True, px=ttl_ms):
                return token
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self._retry_interval, remaining))

    async def release(self, key: str, token: str) -> None:
        client = await self._redis()
        released = await client.eval(_RELEASE_SCRIPT, 1, _KEY_PREFIX + key, token)
        if not released:
            logger.warning("Lock %s expired before release", key)


class LocalLockService:
    def __init__(self, retry_interval_ms: int | None = None) -> None:
        self._held: dict[str, tuple[str, float]] = {}
        self._retry_interval = (
            retry_interval_ms if retry_interval_ms is not None else settings.LOCK_RETRY_INTERVAL_MS
        ) / 1000

    def _try_take(self, key: str, ttl_seconds: float) -> str | None:
        now = time.monotonic()
        current = self._held.get(key)
        if current is not None and current[1] > now:
            return None
        token = uuid.uuid4().hex
        self._held[key] = (token, now + ttl_seconds)
        return token

    async def acquire(
        self, key: str, ttl_seconds: float, timeout_seconds: float
    ) -> str | None:
        deadline = time.monotonic() + timeout_seconds
        while True:
            token = self._try_take(key, ttl_seconds)
            if token is not None:
                return token
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self._retry_interval, remaining))

    async def release(self, key: str, token: str) -> None:
        current = self._held.get(key)
        if current is None or current[0] != token:
            logger.warning("Lock %s expired before release", key)
            return
        del self._held[key]

    def is_held(self, key: str) -> bool:
        current = self._held.get(key)
        return current is not None and current[1] > time.monotonic()


def build_lock_service() -> RedisLockService | LocalLockService:
    if settings.LOCK_BACKEND == "local":
        return LocalLockService()
    return RedisLockService()
