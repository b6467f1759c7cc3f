"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- An optional API Key security scheme (``X-API-Key``)
- Tags metadata
- Documentation of the 429 response on rate limited operations
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.schemas.rate_limit import RateLimitExceededResponse

_TAGS = [
    {"name": "Search", "description": "AI search under an adaptive daily limit."},
    {"name": "Rate limits", "description": "Configured policies and store status."},
    {"name": "Health", "description": "Liveness checks (never rate limited)."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for API Key auth (header ``X-API-Key``);
      the key is optional, so operations accept either no auth or the key
    - Documents the 429 payload on every non-health operation
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {}).setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Optional. Authenticated callers get per-user, higher limits.",
            },
        )
        schemas = components.setdefault("schemas", {})
        denial_schema = RateLimitExceededResponse.model_json_schema(
            by_alias=True, ref_template="#/components/schemas/{model}"
        )
        for name, definition in denial_schema.pop("$defs", {}).items():
            schemas.setdefault(name, definition)
        schemas.setdefault("RateLimitExceededResponse", denial_schema)

        schema.setdefault("security", [{}, {"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing_tag_names)

        too_many = {
            "description": "Rate limit exceeded",
            "content": {
                "application/json": {
                    "schema": {"$ref": "#/components/schemas/RateLimitExceededResponse"}
                }
            },
        }
        for path, methods in schema.get("paths", {}).items():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if path.endswith("/health"):
                    method_obj["security"] = []
                    continue
                method_obj.setdefault("responses", {}).setdefault("429", too_many)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
