"""OpenAPI customization.

Adds the bearer security scheme, marks every operation as requiring it
except the public ones, and adds tag descriptions.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

PUBLIC_PATH_PREFIXES = ("/health", "/api/hello", "/api/recaptcha", "/api/email")

TAGS = [
    {"name": "Health", "description": "Liveness check and demo endpoint."},
    {"name": "Uploads", "description": "Profile, clinic and doctor images with cancellation."},
    {"name": "reCAPTCHA", "description": "Server-side reCAPTCHA v3 verification."},
    {"name": "Email", "description": "Staff invitations and transactional email."},
    {"name": "Dashboard", "description": "Role-shaped dashboards and analytics."},
    {"name": "Appointments", "description": "Booking, cancellation and time slots."},
    {"name": "Clinics", "description": "Clinic discovery, clinic details and patient location."},
    {"name": "Notifications", "description": "In-app notifications."},
    {"name": "Admin", "description": "Partnerships, rate limits and password resets."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Access token issued by the auth service.",
            },
        )
        schema.setdefault("security", [{"BearerAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path.startswith(PUBLIC_PATH_PREFIXES):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
