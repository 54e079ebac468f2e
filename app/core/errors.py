"""Domain errors raised by stores, services and request dependencies.

Each error carries a stable ``code`` for clients and log queries; the HTTP
status is chosen by ``app.core.exception_handlers`` from the error's class.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Optional structured context attached to an error.

    ``field`` names the invalid input; the rate limit keys describe a
    rejection; ``store``/``operation`` describe a failed store call.
    """

    hint: str
    field: str
    limit: int
    remaining: int
    retry_after: int
    store: str
    operation: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Root of the service's error hierarchy.

    Attributes:
        code: Machine-readable error code, e.g. ``store_unavailable``.
        message: Message safe to return to clients.
        details: Optional structured context.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Invalid input or configuration."""


class InvalidOverrideRequestError(ValidationAppError):
    """Malformed administrative override request."""


class AuthenticationAppError(AppError):
    """Admin credentials missing, invalid, or not configured."""


class StoreUnavailableError(AppError):
    """The shared counter/override store could not serve a call."""


class RateLimitExceededError(AppError):
    """The request exceeded its effective limit."""
