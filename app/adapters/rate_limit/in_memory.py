"""In-memory sliding-window and override stores.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Both stores expire entries against an injectable millisecond clock so tests
  can advance simulated time.
"""

from __future__ import annotations

import threading
import time
from bisect import bisect_right, insort
from dataclasses import dataclass, field
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractOverrideStore,
    AbstractWindowStore,
    WindowAdmission,
)


def epoch_ms() -> int:
    """Current UNIX time in whole milliseconds."""

    return int(time.time() * 1000)


@dataclass
class _WindowState:
    timestamps: list[int] = field(default_factory=list)
    expires_at: int = 0


@dataclass
class _OverrideItem:
    value: int
    expires_at: int


class InMemorySlidingWindowStore(AbstractWindowStore):
    """Sliding-window counters held in a process-local dict.

    Each key maps to a sorted list of request timestamps. Pruning, counting
    and inserting happen under one lock, which gives the same atomicity the
    Redis script provides across processes.
    """

    def __init__(self, *, expiry_grace_ms: int = 1_000) -> None:
        """Initialize the in-memory window store.

        Idle counters expire relative to the ``now_ms`` of later calls, so the
        store follows whatever clock the caller uses.

        Args:
            expiry_grace_ms: Extra lifetime of idle counters beyond their window.

        Raises:
            ValueError: If expiry_grace_ms is negative.
        """
        if expiry_grace_ms < 0:
            raise ValueError("expiry_grace_ms must be >= 0")

        self._expiry_grace_ms = expiry_grace_ms
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    def _evict_expired_locked(self, now: int) -> None:
        expired_keys = [k for k, state in self._state_by_key.items() if state.expires_at <= now]
        for key in expired_keys:
            del self._state_by_key[key]

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

        with self._lock:
            self._evict_expired_locked(now_ms)
            state = self._state_by_key.setdefault(key, _WindowState())

            # Drop every timestamp <= window_start_exclusive
            cutoff = bisect_right(state.timestamps, window_start_exclusive)
            if cutoff:
                del state.timestamps[:cutoff]

            count = len(state.timestamps)
            if count >= limit:
                return WindowAdmission(admitted=False, current_count=count)

            insort(state.timestamps, now_ms)
            state.expires_at = now_ms + window_ms + self._expiry_grace_ms
            return WindowAdmission(admitted=True, current_count=count + 1)

    def count(self, key: str) -> int:
        """Return the number of recorded timestamps for ``key`` (diagnostics)."""

        with self._lock:
            state = self._state_by_key.get(key)
            return len(state.timestamps) if state else 0


class InMemoryOverrideStore(AbstractOverrideStore):
    """Expiring integer values held in a process-local dict."""

    def __init__(self, *, clock: Callable[[], int] = epoch_ms) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._items: dict[str, _OverrideItem] = {}

    async def set_with_ttl(self, key: str, value: int, ttl_ms: int) -> None:
        if ttl_ms < 1:
            raise ValueError("ttl_ms must be >= 1")

        with self._lock:
            self._items[key] = _OverrideItem(value=value, expires_at=self._clock() + ttl_ms)

    async def get(self, key: str) -> str | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            if self._clock() >= item.expires_at:
                del self._items[key]
                return None
            return str(item.value)
