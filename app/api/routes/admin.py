from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.core.auth import verify_admin_api_key
from app.core.rate_limit import get_override_registry
from app.schemas.rate_limit import MessageResponse, OverrideRequest
from app.services.override_registry import OverrideRegistry
from app.services.override_service import apply_override, decode_override_body

router = APIRouter(tags=["Admin"], dependencies=[Depends(verify_admin_api_key)])

# The body is decoded by the handler so malformed JSON gets the same 400
# envelope as any other invalid override; documented here for OpenAPI.
_OVERRIDE_BODY_DOC = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": OverrideRequest.model_json_schema()}},
    }
}


@router.post(
    "/admin/rate-limit-override",
    response_model=MessageResponse,
    openapi_extra=_OVERRIDE_BODY_DOC,
)
async def set_rate_limit_override(
    request: Request,
    registry: Annotated[OverrideRegistry, Depends(get_override_registry)],
) -> MessageResponse:
    """Set a time-limited override of the request limit.

    Body: ``{"type": "global" | "ip", "key"?: str, "newLimit": int, "ttlMs": int}``.
    A new override of the same scope replaces the previous one.

    Raises:
        InvalidOverrideRequestError: 400 naming the failing field (``body``
            when the payload is not a JSON object).
        StoreUnavailableError: 500 when the store cannot be reached.
    """
    payload = decode_override_body(await request.body())
    message = await apply_override(registry, payload)
    return MessageResponse(message=message)
