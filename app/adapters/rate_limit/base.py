"""Counting and override store interfaces.

The services depend on these abstractions (not the concrete implementation)
so the shared store (Redis) and the process-local store used in development
and tests are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class WindowAdmission:
    """Result of an atomic prune+count+insert on a sliding window counter.

    Attributes:
        admitted: Whether the request was recorded in the window.
        current_count: Requests in the window after the call (including the
            new one when admitted).
    """

    admitted: bool
    current_count: int


class AbstractWindowStore(ABC):
    """Interface for sliding-window counters."""

    @abstractmethod
    async def admit_and_record(
        self,
        key: str,
        window_start_exclusive: int,
        now_ms: int,
        limit: int,
        window_ms: int,
    ) -> WindowAdmission:
        """Atomically prune, count and (when under the limit) record a request.

        Args:
            key: Counter key, already scoped to identity and limit-class.
            window_start_exclusive: Timestamps at or before this instant (epoch
                milliseconds) are evicted.
            now_ms: Timestamp recorded for an admitted request.
            limit: Maximum number of requests allowed in the window.
            window_ms: Window length, used to expire idle counters.

        Returns:
            WindowAdmission describing the decision.

        Raises:
            StoreUnavailableError: If the store cannot complete the operation.
        """
        raise NotImplementedError


class AbstractOverrideStore(ABC):
    """Interface for expiring integer values keyed by string."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: int, ttl_ms: int) -> None:
        """Store ``value`` under ``key``, replacing any prior value and TTL.

        Raises:
            StoreUnavailableError: If the store cannot complete the operation.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the raw stored value, or None when absent or expired.

        Raises:
            StoreUnavailableError: If the store cannot complete the operation.
        """
        raise NotImplementedError

    async def ping(self) -> None:
        """Check the store is reachable. Process-local stores always are.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
