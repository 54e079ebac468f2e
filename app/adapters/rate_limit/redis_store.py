"""Redis-backed sliding-window and override stores.

The window counter is a sorted set of request timestamps. Pruning, counting,
inserting and refreshing the expiry run inside one Lua script so that
concurrent requests for the same key cannot both observe spare capacity.
"""

from __future__ import annotations

import logging
import uuid

from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError

from app.adapters.rate_limit.base import (
    AbstractOverrideStore,
    AbstractWindowStore,
    WindowAdmission,
)
from app.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


# KEYS[1] = counter key
# ARGV: window_start_exclusive, now_ms, limit, ttl_ms, member
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local window_start = tonumber(ARGV[1])
local now = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local ttl_ms = tonumber(ARGV[4])

redis.call('ZREMRANGEBYSCORE', key, '-inf', window_start)
local count = redis.call('ZCARD', key)
if count >= limit then
  return {0, count}
end

redis.call('ZADD', key, now, ARGV[5])
redis.call('PEXPIRE', key, ttl_ms)
return {1, count + 1}
"""


def _store_unavailable(operation: str, exc: Exception) -> StoreUnavailableError:
    logger.error(
        "store.unavailable",
        extra={
            "store": "redis",
            "operation": operation,
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
        },
    )
    return StoreUnavailableError(
        code="store_unavailable",
        message="Rate limit store is unavailable. Please try again later.",
        details={"store": "redis", "operation": operation},
    )


class RedisSlidingWindowStore(AbstractWindowStore):
    """Sliding-window counters in Redis sorted sets."""

    def __init__(self, redis: Redis, *, expiry_grace_ms: int = 1_000) -> None:
        """Initialize the Redis window store.

        Args:
            redis: Async Redis client shared with the override store.
            expiry_grace_ms: Extra lifetime of idle counters beyond their window.
        """
        if expiry_grace_ms < 0:
            raise ValueError("expiry_grace_ms must be >= 0")

        self._redis = redis
        self._expiry_grace_ms = expiry_grace_ms
        self._script_sha: str | None = None

    async def _ensure_script(self) -> str:
        if self._script_sha is None:
            self._script_sha = await self._redis.script_load(SLIDING_WINDOW_SCRIPT)
        return self._script_sha

    async def _run_script(self, key: str, *args: int | str) -> list:
        sha = await self._ensure_script()
        try:
            return await self._redis.evalsha(sha, 1, key, *args)
        except NoScriptError:
            # Script cache flushed (restart or SCRIPT FLUSH): load it again once.
            self._script_sha = None
            sha = await self._ensure_script()
            return await self._redis.evalsha(sha, 1, key, *args)

    async def admit_and_record(
        self,
        key: str,
        window_start_exclusive: int,
        now_ms: int,
        limit: int,
        window_ms: int,
    ) -> WindowAdmission:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        member = f"{now_ms}:{uuid.uuid4().hex}"
        ttl_ms = window_ms + self._expiry_grace_ms
        try:
            result = await self._run_script(
                key, window_start_exclusive, now_ms, limit, ttl_ms, member
            )
        except RedisError as exc:
            raise _store_unavailable("admit_and_record", exc) from exc

        admitted, current_count = int(result[0]), int(result[1])
        return WindowAdmission(admitted=bool(admitted), current_count=current_count)


class RedisOverrideStore(AbstractOverrideStore):
    """Expiring override values stored with ``SET key value PX ttl``."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def set_with_ttl(self, key: str, value: int, ttl_ms: int) -> None:
        if ttl_ms < 1:
            raise ValueError("ttl_ms must be >= 1")
        try:
            await self._redis.set(key, value, px=ttl_ms)
        except RedisError as exc:
            raise _store_unavailable("set_override", exc) from exc

    async def get(self, key: str) -> str | None:
        try:
            raw = await self._redis.get(key)
        except RedisError as exc:
            raise _store_unavailable("get_override", exc) from exc

        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return str(raw)

    async def ping(self) -> None:
        try:
            await self._redis.ping()
        except RedisError as exc:
            raise _store_unavailable("ping", exc) from exc
