"""Unit tests for the in-memory sliding-window and override stores."""

import asyncio

import pytest

from app.adapters.rate_limit.in_memory import InMemoryOverrideStore, InMemorySlidingWindowStore

WINDOW_MS = 60_000


def _admit(store: InMemorySlidingWindowStore, now: int, limit: int, key: str = "k"):
    return asyncio.run(store.admit_and_record(key, now - WINDOW_MS, now, limit, WINDOW_MS))


def test_allows_up_to_limit_in_same_window() -> None:
    store = InMemorySlidingWindowStore()

    assert _admit(store, 1_000_000, limit=3).admitted is True
    assert _admit(store, 1_000_001, limit=3).admitted is True
    result = _admit(store, 1_000_002, limit=3)
    assert result.admitted is True
    assert result.current_count == 3


def test_rejection_does_not_consume_capacity() -> None:
    store = InMemorySlidingWindowStore()

    assert _admit(store, 1_000_000, limit=1).admitted is True
    for offset in range(1, 4):
        blocked = _admit(store, 1_000_000 + offset, limit=1)
        assert blocked.admitted is False
        assert blocked.current_count == 1

    assert store.count("k") == 1


def test_window_slides_instead_of_resetting() -> None:
    store = InMemorySlidingWindowStore()

    assert _admit(store, 1_000_000, limit=2).admitted is True
    assert _admit(store, 1_030_000, limit=2).admitted is True
    assert _admit(store, 1_050_000, limit=2).admitted is False

    # First entry leaves the window exactly WINDOW_MS after it was recorded.
    assert _admit(store, 1_060_000, limit=2).admitted is True
    assert _admit(store, 1_060_001, limit=2).admitted is False


def test_same_millisecond_requests_are_all_counted() -> None:
    store = InMemorySlidingWindowStore()

    for _ in range(3):
        assert _admit(store, 1_000_000, limit=3).admitted is True
    assert _admit(store, 1_000_000, limit=3).admitted is False


def test_isolated_by_key() -> None:
    store = InMemorySlidingWindowStore()

    assert _admit(store, 1_000_000, limit=1, key="k1").admitted is True
    assert _admit(store, 1_000_000, limit=1, key="k1").admitted is False
    assert _admit(store, 1_000_000, limit=1, key="k2").admitted is True


def test_idle_counters_expire() -> None:
    store = InMemorySlidingWindowStore(expiry_grace_ms=1_000)

    _admit(store, 1_000_000, limit=5, key="idle")
    _admit(store, 1_000_000 + WINDOW_MS + 1_000, limit=5, key="other")

    assert store.count("idle") == 0


@pytest.mark.parametrize("limit,key", [(0, "k"), (1, "")])
def test_invalid_admit_args(limit: int, key: str) -> None:
    store = InMemorySlidingWindowStore()

    with pytest.raises(ValueError):
        asyncio.run(store.admit_and_record(key, 0, 1, limit, WINDOW_MS))


def test_invalid_constructor_args() -> None:
    with pytest.raises(ValueError):
        InMemorySlidingWindowStore(expiry_grace_ms=-1)


class TestInMemoryOverrideStore:
    def test_value_expires_after_ttl(self, clock) -> None:
        store = InMemoryOverrideStore(clock=clock)
        asyncio.run(store.set_with_ttl("o", 50, 1_000))

        assert asyncio.run(store.get("o")) == "50"
        clock.advance(999)
        assert asyncio.run(store.get("o")) == "50"
        clock.advance(1)
        assert asyncio.run(store.get("o")) is None

    def test_set_replaces_value_and_ttl(self, clock) -> None:
        store = InMemoryOverrideStore(clock=clock)
        asyncio.run(store.set_with_ttl("o", 50, 1_000))
        clock.advance(900)
        asyncio.run(store.set_with_ttl("o", 20, 1_000))
        clock.advance(500)

        assert asyncio.run(store.get("o")) == "20"

    def test_missing_key_returns_none(self, clock) -> None:
        store = InMemoryOverrideStore(clock=clock)
        assert asyncio.run(store.get("missing")) is None

    def test_rejects_non_positive_ttl(self, clock) -> None:
        store = InMemoryOverrideStore(clock=clock)
        with pytest.raises(ValueError):
            asyncio.run(store.set_with_ttl("o", 5, 0))
