"""Sample throttled endpoints.

``/`` falls under the global (authenticated or unauthenticated) limits and
``/api/special`` under its own endpoint limit in the default configuration.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.core.rate_limit import enforce_rate_limit

router = APIRouter(tags=["Demo"], dependencies=[Depends(enforce_rate_limit)])


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Hello API Rate Limiter!"


@router.get("/api/special", response_class=PlainTextResponse)
async def special() -> str:
    """Endpoint with a custom rate limit (see RATE_LIMIT_ENDPOINTS)."""
    return "Special API endpoint with a custom rate limit."
