"""Rate limiting dependency for FastAPI routes.

This module wires the decision engine into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the counting store (Redis or memory) sits behind an
  abstract interface and is chosen by the app factory.
- Visible failures: a store outage surfaces as a 500 unless the deployment
  explicitly opts into failing open.

Rate limiting strategy:
- Sliding window per (identity, limit-class).
- Identity is the normalized client address, or the token subject for
  authenticated requests when configured.
"""

from __future__ import annotations

import logging
import math
from typing import Annotated

from fastapi import Depends, Request

from app.core.auth import AuthContext, get_auth_context
from app.core.config import RateLimitSettings
from app.core.errors import RateLimitExceededError, StoreUnavailableError
from app.core.logging import hash_identifier
from app.services.decision_engine import REJECTION_MESSAGE, RateLimitDecisionEngine
from app.services.identity import resolve_identity
from app.services.override_registry import OverrideRegistry

logger = logging.getLogger(__name__)


def get_rate_limit_settings(request: Request) -> RateLimitSettings:
    """Return the rate limit settings the application was built with."""

    return request.app.state.rate_limit_settings


def get_decision_engine(request: Request) -> RateLimitDecisionEngine:
    """Return the application's decision engine."""

    return request.app.state.decision_engine


def get_override_registry(request: Request) -> OverrideRegistry:
    """Return the application's override registry."""

    return request.app.state.override_registry


async def enforce_rate_limit(
    request: Request,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, records the request in its sliding window. If the requester
    exceeds the effective limit, raises RateLimitExceededError (HTTP 429).

    Args:
        request: FastAPI request.
        auth: Authentication state from the bearer token.

    Raises:
        RateLimitExceededError: When the request is rejected.
        StoreUnavailableError: When the store is down and fail-open is off.
    """
    rl_settings = get_rate_limit_settings(request)
    if not rl_settings.enabled:
        return

    engine = get_decision_engine(request)
    client_host = request.client.host if request.client else None
    identity = resolve_identity(
        client_host,
        is_authenticated=auth.is_authenticated,
        subject=auth.subject,
        source=rl_settings.identity_source,
    )

    try:
        decision = await engine.decide(request.url.path, auth.is_authenticated, identity)
    except StoreUnavailableError:
        if not rl_settings.fail_open:
            raise
        logger.warning(
            "rate_limit.fail_open",
            extra={
                "identity_hash": hash_identifier(identity),
                "request_path": request.url.path,
            },
        )
        return

    if decision.admitted:
        return

    raise RateLimitExceededError(
        code="rate_limit_exceeded",
        message=decision.message or REJECTION_MESSAGE,
        details={
            "limit": decision.limit,
            "remaining": decision.remaining,
            "retry_after": max(1, math.ceil(decision.window_ms / 1000)),
        },
    )
