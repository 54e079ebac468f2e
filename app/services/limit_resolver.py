"""Selection of the limit that governs a request.

The base limit comes from an explicit two-step decision table: an endpoint
entry for the request path wins regardless of authentication; otherwise the
authenticated or unauthenticated global limit applies. Active overrides then
replace the numeric ceiling (global first, per-identity last). The window
length always comes from the base limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from app.schemas.rate_limit import RateLimit, RateLimitConfig
from app.services.override_registry import OverrideRegistry, OverrideScope

AUTHENTICATED_CLASS = "authenticated"
UNAUTHENTICATED_CLASS = "unauthenticated"
ENDPOINT_CLASS_PREFIX = "endpoint:"

OverrideKind = Literal["global", "identity"]


@dataclass(frozen=True)
class ResolvedLimit:
    """Effective limit for one request.

    Attributes:
        limit: Request ceiling after overrides.
        window_ms: Sliding window length from the base limit.
        limit_class: Bucket the request is counted in.
        override_applied: Which override replaced the base limit, if any.
    """

    limit: int
    window_ms: int
    limit_class: str
    override_applied: OverrideKind | None = None


class LimitResolver:
    """Resolves base limits from configuration and applies overrides."""

    def __init__(self, config: RateLimitConfig, overrides: OverrideRegistry) -> None:
        self.config = config
        self.overrides = overrides

    def select_base(self, path: str, is_authenticated: bool) -> tuple[RateLimit, str]:
        """Return the base RateLimit and limit-class for a request."""

        endpoint_limit = self.config.endpoints.get(path)
        if endpoint_limit is not None:
            return endpoint_limit, f"{ENDPOINT_CLASS_PREFIX}{path}"
        if is_authenticated:
            return self.config.global_authenticated, AUTHENTICATED_CLASS
        return self.config.global_unauthenticated, UNAUTHENTICATED_CLASS

    async def resolve(self, path: str, is_authenticated: bool, identity: str) -> ResolvedLimit:
        """Resolve the effective limit for ``identity`` requesting ``path``.

        Raises:
            StoreUnavailableError: If overrides cannot be read.
        """
        base, limit_class = self.select_base(path, is_authenticated)
        limit = base.limit
        applied: OverrideKind | None = None

        global_override = await self.overrides.get_active_override(OverrideScope.global_scope())
        if global_override is not None:
            limit = global_override
            applied = "global"

        identity_override = await self.overrides.get_active_override(
            OverrideScope(identity=identity)
        )
        if identity_override is not None:
            limit = identity_override
            applied = "identity"

        return ResolvedLimit(
            limit=limit,
            window_ms=base.window_ms,
            limit_class=limit_class,
            override_applied=applied,
        )
