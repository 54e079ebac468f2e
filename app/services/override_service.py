"""Administrative override handling: request validation and application."""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import ValidationError

from app.core.errors import InvalidOverrideRequestError
from app.schemas.rate_limit import OverrideRequest
from app.services.identity import normalize_client_address
from app.services.override_registry import OverrideRegistry, OverrideScope

OVERRIDE_SET_MESSAGE = "Rate limit override set successfully."

# Messages keyed by the field that failed, in the order fields are checked.
_FIELD_MESSAGES = {
    "type": 'Invalid type. Must be "global" or "ip".',
    "key": 'For type "ip", a valid key (IP address) must be provided.',
    "newLimit": "Invalid newLimit. Must be a positive integer.",
    "ttlMs": "Invalid ttlMs. Must be a positive integer representing milliseconds.",
}


def _invalid(field: str, message: str | None = None) -> InvalidOverrideRequestError:
    return InvalidOverrideRequestError(
        code="invalid_override_request",
        message=message or _FIELD_MESSAGES.get(field, f"Invalid {field}."),
        details={"field": field},
    )


def decode_override_body(raw: bytes) -> Any:
    """Decode a raw admin request body as JSON.

    Raises:
        InvalidOverrideRequestError: With field ``body`` when the body is
            empty or not valid JSON.
    """
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise _invalid("body", "Request body must be valid JSON.") from exc


def parse_override_request(payload: Any) -> OverrideRequest:
    """Validate a raw admin request body.

    Args:
        payload: Decoded JSON body.

    Returns:
        Validated OverrideRequest.

    Raises:
        InvalidOverrideRequestError: Naming the first field that failed.
    """
    if not isinstance(payload, Mapping):
        raise _invalid("body", "Request body must be a JSON object.")

    try:
        return OverrideRequest.model_validate(dict(payload))
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = first.get("loc") or ()
        # Model-level checks carry an empty location; the only one requires key.
        field = str(loc[0]) if loc else "key"
        raise _invalid(field) from exc


def scope_for(request: OverrideRequest) -> OverrideScope:
    """Map a validated request to its override scope."""

    if request.type == "global":
        return OverrideScope.global_scope()
    return OverrideScope.for_identity(normalize_client_address(request.key))


async def apply_override(registry: OverrideRegistry, payload: Any) -> str:
    """Validate ``payload`` and store the override it describes.

    Returns:
        Acknowledgement message.

    Raises:
        InvalidOverrideRequestError: If the payload is malformed.
        StoreUnavailableError: If the store cannot be reached.
    """
    request = parse_override_request(payload)
    await registry.set_override(scope_for(request), request.newLimit, request.ttlMs)
    return OVERRIDE_SET_MESSAGE
