"""Mapping of domain errors to HTTP responses.

Status codes:
- RateLimitExceededError: 429 with the bare ``{"message": ...}`` body
- ValidationAppError (incl. bad override requests): 400
- AuthenticationAppError: 403
- StoreUnavailableError: 500
- anything else: 500 with a generic message

Every ``{"error": ...}`` envelope carries the request id so a client report
can be matched to the service logs.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededError,
    StoreUnavailableError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, StoreUnavailableError):
        return 500
    return 400


def _rate_limit_headers(request: Request, exc: RateLimitExceededError) -> dict[str, str]:
    rl_settings = getattr(request.app.state, "rate_limit_settings", None)
    if rl_settings is None or not rl_settings.include_headers:
        return {}

    details = exc.details or {}
    header_fields = (
        ("Retry-After", "retry_after"),
        ("X-RateLimit-Limit", "limit"),
        ("X-RateLimit-Remaining", "remaining"),
    )
    return {header: str(details[field]) for header, field in header_fields if field in details}


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Reject a throttled request with 429.

    The body is the plain ``{"message": ...}`` object limiter clients expect,
    not the error envelope. Retry-After and X-RateLimit-* headers are added
    when ``RATE_LIMIT_INCLUDE_HEADERS`` is on.
    """
    return JSONResponse(
        status_code=429,
        content={"message": exc.message},
        headers=_rate_limit_headers(request, exc) or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as ``{"error": {code, message, request_id, details?}}``.

    Server-side failures (store outages) are logged at error level, client
    faults at warning.
    """
    status_code = _status_for(exc)
    request_id = get_request_id()

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "request_id": request_id,
        },
    )

    body = {"code": exc.code, "message": exc.message, "request_id": request_id}
    if exc.details:
        body["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": body})


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort 500 for errors nothing else handled.

    The exception type and text go to the log only; the client sees a
    generic message without internals.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": GENERIC_ERROR_MESSAGE,
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on ``app``.

    Starlette resolves handlers along the exception's MRO, so the 429 handler
    takes precedence over the AppError one for rate limit rejections.
    """
    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
