"""Pydantic schemas for rate limit configuration and the admin API."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator


class RateLimit(BaseModel):
    """Ceiling and sliding window length for one class of traffic."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(..., gt=0, description="Maximum requests per window.")
    window_ms: int = Field(..., gt=0, description="Sliding window length in milliseconds.")


class RateLimitConfig(BaseModel):
    """Immutable limit table loaded once at startup.

    ``endpoints`` is exposed as a read-only mapping so the table cannot be
    edited in place after the resolver has been built.
    """

    model_config = ConfigDict(frozen=True)

    global_authenticated: RateLimit
    global_unauthenticated: RateLimit
    endpoints: Mapping[str, RateLimit] = Field(default_factory=dict, validate_default=True)

    @field_validator("endpoints", mode="after")
    @classmethod
    def _read_only_endpoints(cls, value: Mapping[str, RateLimit]) -> Mapping[str, RateLimit]:
        return MappingProxyType(dict(value))


class OverrideRequest(BaseModel):
    """Body of ``POST /admin/rate-limit-override``.

    Field names follow the public wire format (camelCase). Numeric fields are
    strict so that booleans, strings and floats are rejected instead of
    coerced. ``key`` only matters for ``ip`` overrides and is dropped for
    global ones.
    """

    model_config = ConfigDict(extra="ignore")

    type: Literal["global", "ip"] = Field(
        ..., description="Override scope: every client, or a single client address."
    )
    key: str | None = Field(
        default=None,
        description="Client address the override applies to (required for type 'ip').",
    )
    newLimit: StrictInt = Field(..., gt=0, description="Replacement request ceiling.")
    ttlMs: StrictInt = Field(..., gt=0, description="Override lifetime in milliseconds.")

    @model_validator(mode="before")
    @classmethod
    def _drop_key_for_global(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("type") == "global":
            return {k: v for k, v in data.items() if k != "key"}
        return data

    @model_validator(mode="after")
    def _require_key_for_ip(self) -> "OverrideRequest":
        if self.type == "ip" and (self.key is None or not self.key.strip()):
            raise ValueError("key is required for type 'ip'")
        return self


class MessageResponse(BaseModel):
    """Plain acknowledgement or rejection message."""

    message: str
