from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.rate_limit import get_override_registry
from app.services.override_registry import OverrideRegistry

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check. Never touches the store and is never throttled."""

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    registry: Annotated[OverrideRegistry, Depends(get_override_registry)],
) -> dict:
    """Readiness check: succeeds only when the shared store answers.

    Raises:
        StoreUnavailableError: 500 when the store cannot be reached.
    """

    await registry.store.ping()
    return {"status": "ready"}
