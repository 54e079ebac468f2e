"""Application factory for the rate limiter API.

Centralizes app construction (stores, engine, middleware, handlers, routers)
so tests can build isolated apps with their own configuration, stores and
clock, and production builds one from environment settings.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from redis.asyncio import Redis

from app.adapters.rate_limit.base import AbstractOverrideStore, AbstractWindowStore
from app.adapters.rate_limit.factory import create_redis_client, create_stores
from app.adapters.rate_limit.in_memory import epoch_ms
from app.api.routes import admin_router, demo_router, health_router
from app.core.config import Settings, settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.schemas.rate_limit import RateLimitConfig
from app.services.decision_engine import RateLimitDecisionEngine
from app.services.limit_resolver import LimitResolver
from app.services.override_registry import OverrideRegistry


def create_app(
    *,
    app_settings: Settings | None = None,
    rate_limit_config: RateLimitConfig | None = None,
    window_store: AbstractWindowStore | None = None,
    override_store: AbstractOverrideStore | None = None,
    clock: Callable[[], int] = epoch_ms,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        rate_limit_config: Limit table; defaults to one built from settings.
        window_store: Counter store; defaults to the configured backend.
        override_store: Override store; defaults to the configured backend.
        clock: Millisecond clock used for admission decisions.

    Returns:
        Configured FastAPI app. The engine and registry are exposed on
        ``app.state`` for the request dependencies.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    redis_client: Redis | None = None
    if window_store is None or override_store is None:
        if cfg.rate_limit.backend == "redis":
            redis_client = create_redis_client(cfg.redis)
        default_window_store, default_override_store = create_stores(cfg.rate_limit, redis_client)
        window_store = window_store or default_window_store
        override_store = override_store or default_override_store

    registry = OverrideRegistry(override_store, key_prefix=cfg.rate_limit.override_key_prefix)
    resolver = LimitResolver(rate_limit_config or cfg.rate_limit.to_config(), registry)
    engine = RateLimitDecisionEngine(
        resolver,
        window_store,
        key_prefix=cfg.rate_limit.key_prefix,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title="Rate Limiter API",
        description=(
            "Sliding-window request throttling per client identity, backed by a "
            "shared Redis store, with time-limited administrative overrides."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.rate_limit_settings = cfg.rate_limit
    app.state.auth_settings = cfg.auth
    app.state.app_settings = cfg.app
    app.state.decision_engine = engine
    app.state.override_registry = registry

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(demo_router)
    app.include_router(admin_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
