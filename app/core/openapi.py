"""OpenAPI metadata and customization utilities.

Enriches the generated schema with:
- security schemes for the operational endpoints (cron bearer, metrics key)
- tags metadata
- the shared 429 response documented on every rate-limited operation
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.rate_limit import select_policy_name

_RATE_LIMIT_HEADERS = {
    "X-RateLimit-Limit": "Maximum requests per window for the applied policy.",
    "X-RateLimit-Window": "Window length in milliseconds.",
    "X-RateLimit-Remaining": "Requests left in the current window.",
    "X-RateLimit-Reset": "UNIX epoch seconds when the window resets.",
}

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded",
    "headers": {
        name: {"description": description, "schema": {"type": "string"}}
        for name, description in _RATE_LIMIT_HEADERS.items()
    },
    "content": {
        "application/json": {
            "example": {
                "error": "Too many requests",
                "message": "Rate limit exceeded. Please try again later.",
                "resetTime": 1735689600000,
            }
        }
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add security and 429 docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "CronBearer",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Scheduler secret (APP_CRON_SECRET or CRON_SECRET).",
            },
        )
        security_schemes.setdefault(
            "MetricsApiKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Monitoring key (APP_METRICS_API_KEY or METRICS_API_KEY).",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in (
            {"name": "Health", "description": "Liveness and readiness checks."},
            {"name": "Operations", "description": "Metrics and scheduled maintenance."},
        ):
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            rate_limited = select_policy_name(path) is not None
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if path.startswith("/api/cron/"):
                    method_obj["security"] = [{"CronBearer": []}]
                elif path == "/api/metrics":
                    method_obj["security"] = [{"MetricsApiKey": []}]
                if rate_limited:
                    method_obj.setdefault("responses", {}).setdefault("429", _TOO_MANY_REQUESTS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
