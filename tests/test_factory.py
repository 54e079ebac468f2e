from unittest.mock import AsyncMock

import pytest

from app.adapters.rate_limit.factory import create_redis_client, create_stores
from app.adapters.rate_limit.in_memory import InMemoryOverrideStore, InMemorySlidingWindowStore
from app.adapters.rate_limit.redis_store import RedisOverrideStore, RedisSlidingWindowStore
from app.core.config import RateLimitSettings, RedisSettings
from app.core.errors import ValidationAppError


def test_memory_backend() -> None:
    window, override = create_stores(RateLimitSettings(backend="memory"))

    assert isinstance(window, InMemorySlidingWindowStore)
    assert isinstance(override, InMemoryOverrideStore)


def test_redis_backend_shares_client() -> None:
    client = AsyncMock()

    window, override = create_stores(RateLimitSettings(backend="redis", expiry_grace_ms=500), client)

    assert isinstance(window, RedisSlidingWindowStore)
    assert isinstance(override, RedisOverrideStore)
    assert window._redis is client
    assert override._redis is client
    assert window._expiry_grace_ms == 500


def test_redis_backend_requires_client() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        create_stores(RateLimitSettings(backend="redis"))

    assert exc_info.value.code == "store_missing_client"


def test_unknown_backend() -> None:
    cfg = RateLimitSettings.model_construct(backend="memcached", expiry_grace_ms=1_000)

    with pytest.raises(ValidationAppError) as exc_info:
        create_stores(cfg)

    assert exc_info.value.code == "store_unknown_backend"


def test_redis_client_from_url() -> None:
    client = create_redis_client(RedisSettings(url="redis://cache:6380/2"))

    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["host"] == "cache"
    assert kwargs["port"] == 6380
    assert kwargs["db"] == 2


def test_redis_client_from_host() -> None:
    client = create_redis_client(
        RedisSettings(url=None, host="redis.internal", port=6390, socket_timeout_seconds=0.5)
    )

    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["host"] == "redis.internal"
    assert kwargs["port"] == 6390
    assert kwargs["socket_timeout"] == 0.5
