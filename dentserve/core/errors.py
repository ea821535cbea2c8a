"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses. Each subclass carries
the HTTP status it maps to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    hint: str
    http_status: int
    retry_after: float
    upload_id: str
    max_bytes: int
    actual_bytes: int
    content_type: str
    reason: str
    upstream_status: int
    required_roles: list[str]
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
        headers: Optional response headers sent with the error envelope.
    """

    code: str
    message: str
    details: ErrorDetails | dict[str, Any] | None = None
    headers: dict[str, str] | None = None

    status_code: ClassVar[int] = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the caller cannot be authenticated."""

    status_code = 401


class AuthorizationAppError(AppError):
    """Raised when an authenticated caller lacks the required role or ownership."""

    status_code = 403


class NotFoundAppError(AppError):
    """Raised when a referenced record or in-flight upload does not exist."""

    status_code = 404


class PayloadTooLargeAppError(AppError):
    """Raised when an uploaded file exceeds its size limit."""

    status_code = 413


class RateLimitAppError(AppError):
    """Raised when a caller exceeds a rate limit."""

    status_code = 429


class UploadCancelledError(AppError):
    """Raised when the client cancelled an in-flight upload."""

    status_code = 499


class ConfigurationAppError(AppError):
    """Raised when a required server-side setting is missing."""

    status_code = 500


class PersistenceAppError(AppError):
    """Raised when a write that must accompany a completed action fails."""

    status_code = 500


class UpstreamAppError(AppError):
    """Raised when the database platform, storage or a provider call fails."""

    status_code = 502


class UpstreamUnavailableError(UpstreamAppError):
    """Raised when an upstream service cannot be reached at all."""

    status_code = 503
