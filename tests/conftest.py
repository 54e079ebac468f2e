"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any app import so the global settings
object is built with the in-memory backend and a known JWT secret.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("AUTH_JWT_SECRET_KEY", "test-secret-key-with-at-least-32-bytes")
os.environ.setdefault("APP_ADMIN_API_KEY_REQUIRED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Callable

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemoryOverrideStore, InMemorySlidingWindowStore
from app.core.app_factory import create_app
from app.schemas.rate_limit import RateLimit, RateLimitConfig

JWT_SECRET = os.environ["AUTH_JWT_SECRET_KEY"]
START_MS = 1_700_000_000_000


class FakeClock:
    """Deterministic millisecond clock used to simulate elapsed time."""

    def __init__(self, start: int = START_MS) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limit_config() -> RateLimitConfig:
    """Limits used by the HTTP scenarios (mirrors the service defaults)."""
    return RateLimitConfig(
        global_authenticated=RateLimit(limit=10, window_ms=60_000),
        global_unauthenticated=RateLimit(limit=5, window_ms=60_000),
        endpoints={"/api/special": RateLimit(limit=3, window_ms=30_000)},
    )


@pytest.fixture
def build_app(clock: FakeClock, rate_limit_config: RateLimitConfig) -> Callable[..., FastAPI]:
    """Build an isolated app on fresh in-memory stores sharing the fake clock."""

    def _build(**overrides) -> FastAPI:
        kwargs = {
            "rate_limit_config": rate_limit_config,
            "window_store": InMemorySlidingWindowStore(),
            "override_store": InMemoryOverrideStore(clock=clock),
            "clock": clock,
        }
        kwargs.update(overrides)
        return create_app(**kwargs)

    return _build


@pytest.fixture
def client(build_app: Callable[..., FastAPI]) -> TestClient:
    return TestClient(build_app())


@pytest.fixture
def bearer_headers() -> dict[str, str]:
    """Authorization header carrying a token signed with the test secret."""
    token = jwt.encode({"sub": "123"}, JWT_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}
