"""Time-limited rate limit overrides.

Overrides replace the numeric limit for every client (global scope) or for a
single identity. They live in the shared store as expiring values; the
store's TTL is the only source of expiry truth, so the registry keeps no
bookkeeping of its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.rate_limit.base import AbstractOverrideStore
from app.core.errors import InvalidOverrideRequestError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

DEFAULT_OVERRIDE_KEY_PREFIX = "rate_limit_override"


@dataclass(frozen=True)
class OverrideScope:
    """Scope an override applies to.

    Attributes:
        identity: Target identity, or None for the global scope.
    """

    identity: str | None = None

    @classmethod
    def global_scope(cls) -> "OverrideScope":
        return cls(identity=None)

    @classmethod
    def for_identity(cls, identity: str) -> "OverrideScope":
        if not identity or not identity.strip():
            raise InvalidOverrideRequestError(
                code="invalid_override_request",
                message="An identity override requires a non-empty key.",
                details={"field": "key"},
            )
        return cls(identity=identity.strip())

    @property
    def is_global(self) -> bool:
        return self.identity is None

    @property
    def kind(self) -> str:
        return "global" if self.is_global else "ip"


class OverrideRegistry:
    """Reads and writes overrides through an override store.

    Keys follow ``<prefix>:global`` and ``<prefix>:ip:<identity>``.
    """

    def __init__(
        self,
        store: AbstractOverrideStore,
        *,
        key_prefix: str = DEFAULT_OVERRIDE_KEY_PREFIX,
    ) -> None:
        self.store = store
        self.key_prefix = key_prefix

    def key_for(self, scope: OverrideScope) -> str:
        if scope.is_global:
            return f"{self.key_prefix}:global"
        return f"{self.key_prefix}:ip:{scope.identity}"

    async def set_override(self, scope: OverrideScope, new_limit: int, ttl_ms: int) -> None:
        """Store ``new_limit`` for ``scope`` for ``ttl_ms`` milliseconds.

        A prior override of the same scope is replaced, value and TTL alike.

        Raises:
            InvalidOverrideRequestError: If new_limit or ttl_ms is not positive.
            StoreUnavailableError: If the store cannot be reached.
        """
        if isinstance(new_limit, bool) or new_limit <= 0:
            raise InvalidOverrideRequestError(
                code="invalid_override_request",
                message="Invalid newLimit. Must be a positive integer.",
                details={"field": "newLimit"},
            )
        if isinstance(ttl_ms, bool) or ttl_ms <= 0:
            raise InvalidOverrideRequestError(
                code="invalid_override_request",
                message="Invalid ttlMs. Must be a positive integer representing milliseconds.",
                details={"field": "ttlMs"},
            )

        await self.store.set_with_ttl(self.key_for(scope), new_limit, ttl_ms)

        logger.info(
            "override.set",
            extra={
                "scope": scope.kind,
                "identity_hash": None if scope.is_global else hash_identifier(scope.identity or ""),
                "new_limit": new_limit,
                "ttl_ms": ttl_ms,
            },
        )

    async def get_active_override(self, scope: OverrideScope) -> int | None:
        """Return the active override limit for ``scope``, or None.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raw = await self.store.get(self.key_for(scope))
        if raw is None:
            return None

        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = 0
        if value <= 0:
            logger.warning(
                "override.ignored_invalid_value",
                extra={"scope": scope.kind, "raw_length": len(str(raw))},
            )
            return None
        return value
