"""OpenAPI customization.

Documents the two credentials the service understands:
- ``BearerAuth`` (optional JWT) on throttled endpoints, where it only selects
  the authenticated limit;
- ``AdminApiKey`` (``X-API-Key``) on administrative endpoints.
Health endpoints are marked as requiring nothing.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Demo", "description": "Sample endpoints protected by the rate limiter."},
    {"name": "Admin", "description": "Time-limited overrides of the request limit."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap FastAPI's OpenAPI generation to add security schemes and tags."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Optional. A verified token selects the authenticated rate limit.",
            },
        )
        security_schemes.setdefault(
            "AdminApiKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Required on admin endpoints when APP_ADMIN_API_KEY_REQUIRED=true.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if path.startswith("/health"):
                security: list = []
            elif path.startswith("/admin"):
                security = [{"AdminApiKey": []}]
            else:
                security = [{"BearerAuth": []}, {}]
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = security

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
