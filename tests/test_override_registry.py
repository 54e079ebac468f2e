"""Tests for the override registry."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.adapters.rate_limit.in_memory import InMemoryOverrideStore
from app.core.errors import InvalidOverrideRequestError, StoreUnavailableError
from app.services.override_registry import OverrideRegistry, OverrideScope


@pytest.fixture
def registry(clock) -> OverrideRegistry:
    return OverrideRegistry(InMemoryOverrideStore(clock=clock))


def test_keys_follow_scope(registry: OverrideRegistry) -> None:
    assert registry.key_for(OverrideScope.global_scope()) == "rate_limit_override:global"
    assert (
        registry.key_for(OverrideScope.for_identity("10.0.0.1"))
        == "rate_limit_override:ip:10.0.0.1"
    )


def test_custom_prefix(clock) -> None:
    registry = OverrideRegistry(InMemoryOverrideStore(clock=clock), key_prefix="ovr")
    assert registry.key_for(OverrideScope.global_scope()) == "ovr:global"


def test_override_is_active_until_ttl(registry: OverrideRegistry, clock) -> None:
    scope = OverrideScope.global_scope()
    asyncio.run(registry.set_override(scope, 50, 1_800_000))

    assert asyncio.run(registry.get_active_override(scope)) == 50
    clock.advance(1_800_000)
    assert asyncio.run(registry.get_active_override(scope)) is None


def test_last_write_wins(registry: OverrideRegistry, clock) -> None:
    scope = OverrideScope.for_identity("10.0.0.1")
    asyncio.run(registry.set_override(scope, 50, 1_000))
    asyncio.run(registry.set_override(scope, 7, 5_000))
    clock.advance(2_000)

    assert asyncio.run(registry.get_active_override(scope)) == 7


def test_scopes_are_independent(registry: OverrideRegistry) -> None:
    asyncio.run(registry.set_override(OverrideScope.for_identity("a"), 3, 1_000))

    assert asyncio.run(registry.get_active_override(OverrideScope.global_scope())) is None
    assert asyncio.run(registry.get_active_override(OverrideScope.for_identity("b"))) is None


@pytest.mark.parametrize(
    "new_limit,ttl_ms,field",
    [(0, 1_000, "newLimit"), (-3, 1_000, "newLimit"), (True, 1_000, "newLimit"), (5, 0, "ttlMs")],
)
def test_rejects_non_positive_values(registry: OverrideRegistry, new_limit, ttl_ms, field) -> None:
    with pytest.raises(InvalidOverrideRequestError) as exc_info:
        asyncio.run(registry.set_override(OverrideScope.global_scope(), new_limit, ttl_ms))

    assert exc_info.value.details == {"field": field}


def test_identity_scope_requires_identity() -> None:
    with pytest.raises(InvalidOverrideRequestError):
        OverrideScope.for_identity("  ")


@pytest.mark.parametrize("raw", ["abc", "0", "-4"])
def test_invalid_stored_values_are_ignored(raw: str) -> None:
    store = AsyncMock()
    store.get.return_value = raw
    registry = OverrideRegistry(store)

    assert asyncio.run(registry.get_active_override(OverrideScope.global_scope())) is None


def test_store_errors_propagate() -> None:
    store = AsyncMock()
    store.get.side_effect = StoreUnavailableError(code="store_unavailable", message="down")
    registry = OverrideRegistry(store)

    with pytest.raises(StoreUnavailableError):
        asyncio.run(registry.get_active_override(OverrideScope.global_scope()))
