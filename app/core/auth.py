"""Authentication collaborators.

Two concerns live here:
- Bearer token verification (JWT). It never rejects a request: a missing or
  invalid token simply marks the request unauthenticated, which selects the
  stricter rate limit.
- Admin API key validation for the override endpoint, validated against the
  comma-separated key list of the settings the app was built with.

Request dependencies read their settings from ``app.state`` (set by
``create_app``) and only fall back to the global settings outside an app.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Header, HTTPException, Request, status

from app.core.config import AppSettings, AuthSettings, settings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthContext:
    """Authentication state consumed by the rate limiter.

    Attributes:
        is_authenticated: Whether a bearer token verified.
        subject: The token's ``sub`` claim, when present.
    """

    is_authenticated: bool
    subject: str | None = None


ANONYMOUS = AuthContext(is_authenticated=False)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    Examples:
        >>> extract_bearer_token("Bearer abc")
        'abc'
        >>> extract_bearer_token("Basic abc") is None
        True
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate_bearer(
    authorization: str | None,
    auth_settings: AuthSettings | None = None,
) -> AuthContext:
    """Verify a bearer token and describe the caller.

    Args:
        authorization: Raw Authorization header value.
        auth_settings: Token settings; defaults to global settings.

    Returns:
        AuthContext; anonymous when the token is missing, invalid, or no
        secret is configured.
    """
    cfg = auth_settings or settings.auth
    token = extract_bearer_token(authorization)
    if token is None:
        return ANONYMOUS

    if not cfg.jwt_secret_key:
        logger.warning(
            "auth.token_ignored",
            extra={"reason": "jwt_secret_not_configured"},
        )
        return ANONYMOUS

    try:
        claims = jwt.decode(token, cfg.jwt_secret_key, algorithms=cfg.algorithms)
    except jwt.PyJWTError as exc:
        logger.info(
            "auth.token_invalid",
            extra={"error_type": type(exc).__name__},
        )
        return ANONYMOUS

    subject = claims.get("sub")
    return AuthContext(
        is_authenticated=True,
        subject=str(subject) if subject is not None else None,
    )


def get_auth_settings(request: Request) -> AuthSettings:
    """Return the token settings the application was built with."""

    return getattr(request.app.state, "auth_settings", None) or settings.auth


def get_app_settings(request: Request) -> AppSettings:
    """Return the admin settings the application was built with."""

    return getattr(request.app.state, "app_settings", None) or settings.app


async def get_auth_context(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> AuthContext:
    """FastAPI dependency resolving the caller's authentication state."""

    return authenticate_bearer(authorization, get_auth_settings(request))


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Args:
        keys_string: Comma-separated string of API keys, or None.

    Returns:
        Set of trimmed, non-empty API keys.

    Examples:
        >>> parse_api_keys("key1,key2,key3")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    keys = {key.strip() for key in keys_string.split(",") if key.strip()}
    return keys


def validate_admin_api_key(provided_key: str, app_settings: AppSettings | None = None) -> None:
    """Validate that provided API key matches configured admin keys.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided_key: API key to validate.
        app_settings: Admin key policy; defaults to global settings.

    Raises:
        AuthenticationAppError: If key is invalid or admin auth is required but no keys configured.
    """
    cfg = app_settings or settings.app
    if not cfg.admin_api_key_required:
        return

    valid_keys = parse_api_keys(cfg.admin_api_keys)

    if not valid_keys:
        logger.error(
            "api_key_validation_failed",
            extra={
                "reason": "api_keys_not_configured",
                "auth_required": cfg.admin_api_key_required,
            },
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="Admin API key authentication is enabled but no valid keys are configured",
            details={
                "hint": "Set APP_ADMIN_API_KEYS or disable admin auth with APP_ADMIN_API_KEY_REQUIRED=false"
            },
        )

    if provided_key not in valid_keys:
        api_key_hash = hashlib.sha256(provided_key.encode()).hexdigest()[:16]
        logger.warning(
            "api_key_validation_failed",
            extra={
                "reason": "invalid_api_key",
                "api_key_hash": api_key_hash,
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_admin_api_key(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding administrative endpoints.

    Can be disabled by setting APP_ADMIN_API_KEY_REQUIRED=false (the default).

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    app_cfg = get_app_settings(request)
    if not app_cfg.admin_api_key_required:
        return

    if not x_api_key:
        logger.warning(
            "auth.missing_key",
            extra={"auth_required": True, "api_key_present": False},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_admin_api_key(x_api_key, app_cfg)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc
