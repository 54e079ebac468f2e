"""Rate limit decision engine.

Orchestrates the limit resolver and the window store to admit or reject a
single request. The engine holds no mutable state between calls; every
counter and override lives in the shared store, so any number of workers can
make decisions concurrently.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractWindowStore
from app.adapters.rate_limit.in_memory import epoch_ms
from app.core.logging import hash_identifier
from app.services.limit_resolver import LimitResolver

logger = logging.getLogger(__name__)

REJECTION_MESSAGE = "Too many requests. Please try again later."
DEFAULT_KEY_PREFIX = "rate-limiter"


class Outcome(str, enum.Enum):
    ADMIT = "admit"
    REJECT = "reject"


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of one admission decision.

    Attributes:
        outcome: ADMIT or REJECT.
        limit: Effective request ceiling.
        current_count: Requests in the window after the decision.
        window_ms: Sliding window length applied.
        limit_class: Bucket the request was counted in.
        message: User-facing message when rejected.
    """

    outcome: Outcome
    limit: int
    current_count: int
    window_ms: int
    limit_class: str
    message: str | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome is Outcome.ADMIT

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)


class RateLimitDecisionEngine:
    """Admits or rejects requests against per-identity sliding windows.

    Attributes:
        resolver: Limit resolver (config + overrides).
        window_store: Atomic sliding-window counter store.
        key_prefix: Prefix of counter keys.
    """

    def __init__(
        self,
        resolver: LimitResolver,
        window_store: AbstractWindowStore,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        """Initialize the engine with its collaborators.

        Args:
            resolver: Resolver producing the effective limit per request.
            window_store: Store performing the atomic admission.
            key_prefix: Prefix of counter keys.
            clock: Time source returning UNIX time in milliseconds, used when
                ``decide`` is called without ``now_ms``.
        """
        self.resolver = resolver
        self.window_store = window_store
        self.key_prefix = key_prefix
        self._clock = clock

    def counter_key(self, limit_class: str, identity: str) -> str:
        """Counter key scoped by limit-class and identity."""

        return f"{self.key_prefix}:{limit_class}:{identity}"

    async def decide(
        self,
        path: str,
        is_authenticated: bool,
        identity: str,
        now_ms: int | None = None,
    ) -> RateLimitDecision:
        """Admit or reject one request, recording it when admitted.

        Args:
            path: Request path, matched against endpoint limits.
            is_authenticated: Whether the request carried a verified token.
            identity: Client identity the counter is keyed by.
            now_ms: Decision instant in epoch milliseconds (defaults to clock).

        Returns:
            RateLimitDecision with the outcome and window metadata.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        now = self._clock() if now_ms is None else now_ms
        resolved = await self.resolver.resolve(path, is_authenticated, identity)
        window_start = now - resolved.window_ms
        key = self.counter_key(resolved.limit_class, identity)

        admission = await self.window_store.admit_and_record(
            key, window_start, now, resolved.limit, resolved.window_ms
        )

        log_extra = {
            "identity_hash": hash_identifier(identity),
            "limit_class": resolved.limit_class,
            "limit": resolved.limit,
            "current_count": admission.current_count,
            "window_ms": resolved.window_ms,
            "override": resolved.override_applied,
        }

        if admission.admitted:
            logger.debug("rate_limit.allowed", extra=log_extra)
            return RateLimitDecision(
                outcome=Outcome.ADMIT,
                limit=resolved.limit,
                current_count=admission.current_count,
                window_ms=resolved.window_ms,
                limit_class=resolved.limit_class,
            )

        logger.warning("rate_limit.exceeded", extra=log_extra)
        return RateLimitDecision(
            outcome=Outcome.REJECT,
            limit=resolved.limit,
            current_count=admission.current_count,
            window_ms=resolved.window_ms,
            limit_class=resolved.limit_class,
            message=REJECTION_MESSAGE,
        )
