"""Factory functions for the counting and override stores."""

from __future__ import annotations

from redis.asyncio import Redis

from app.adapters.rate_limit.base import AbstractOverrideStore, AbstractWindowStore
from app.adapters.rate_limit.in_memory import (
    InMemoryOverrideStore,
    InMemorySlidingWindowStore,
)
from app.adapters.rate_limit.redis_store import RedisOverrideStore, RedisSlidingWindowStore
from app.core.config import RateLimitSettings, RedisSettings
from app.core.errors import ValidationAppError


def create_redis_client(redis_settings: RedisSettings) -> Redis:
    """Build the async Redis client shared by both stores.

    Connections are opened lazily on first command, so building the client
    never blocks application startup.
    """
    common = {
        "decode_responses": True,
        "socket_timeout": redis_settings.socket_timeout_seconds,
        "socket_connect_timeout": redis_settings.socket_timeout_seconds,
    }
    if redis_settings.url:
        return Redis.from_url(redis_settings.url, **common)

    return Redis(
        host=redis_settings.host,
        port=redis_settings.port,
        db=redis_settings.db,
        password=redis_settings.password,
        **common,
    )


def create_stores(
    rate_limit_settings: RateLimitSettings,
    redis: Redis | None = None,
) -> tuple[AbstractWindowStore, AbstractOverrideStore]:
    """Instantiate the window and override stores for the configured backend.

    Args:
        rate_limit_settings: Rate limiting settings (backend, expiry grace).
        redis: Redis client, required for the ``redis`` backend.

    Returns:
        Tuple of (window store, override store) sharing one backend.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    backend = rate_limit_settings.backend.lower()
    grace = rate_limit_settings.expiry_grace_ms

    if backend == "memory":
        return InMemorySlidingWindowStore(expiry_grace_ms=grace), InMemoryOverrideStore()

    if backend == "redis":
        if redis is None:
            raise ValidationAppError(
                code="store_missing_client",
                message="Redis backend requires a Redis client",
            )
        return RedisSlidingWindowStore(redis, expiry_grace_ms=grace), RedisOverrideStore(redis)

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memory",
    )
