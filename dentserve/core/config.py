"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_supabase_settings() -> "SupabaseSettings":
    return SupabaseSettings()  # type: ignore[call-arg]


def _build_recaptcha_settings() -> "RecaptchaSettings":
    return RecaptchaSettings()  # type: ignore[call-arg]


def _build_storage_settings() -> "StorageSettings":
    return StorageSettings()  # type: ignore[call-arg]


def _build_email_settings() -> "EmailSettings":
    return EmailSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class SupabaseSettings(BaseSettings):
    """Database platform (Supabase) connection settings.

    The anon key is sent as ``apikey`` on every request; calls made on behalf
    of a user carry that user's bearer token, privileged calls use the
    service-role key.
    """

    url: str = Field(
        "http://localhost:54321",
        description="Project base URL (e.g., https://xyz.supabase.co)",
    )
    anon_key: str | None = Field(
        None,
        description="Public anon key used as apikey header",
    )
    service_role_key: str | None = Field(
        None,
        description="Service-role key for privileged server-side calls",
    )
    timeout_seconds: float = Field(
        15.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        case_sensitive=False,
    )


class RecaptchaSettings(BaseSettings):
    """reCAPTCHA v3 server-side verification settings."""

    secret_key: str | None = Field(
        None,
        description="reCAPTCHA secret key; verification is refused when unset",
    )
    verify_url: str = Field(
        "https://www.google.com/recaptcha/api/siteverify",
        description="Siteverify endpoint",
    )
    timeout_seconds: float = Field(
        10.0,
        description="Siteverify request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="RECAPTCHA_",
        case_sensitive=False,
    )


class StorageSettings(BaseSettings):
    """Image storage backend configuration."""

    backend: str = Field(
        "supabase",
        description="Storage backend: 'supabase' or 'local'",
    )
    bucket: str = Field(
        "images",
        description="Storage bucket name (supabase backend)",
    )
    local_dir: str = Field(
        "uploads",
        description="Directory for stored images (local backend)",
    )
    public_base_url: str = Field(
        "/static",
        description="Public URL prefix for locally stored images",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        case_sensitive=False,
    )


class EmailSettings(BaseSettings):
    """Transactional email provider (Resend) configuration."""

    resend_api_key: str | None = Field(
        None,
        description="Resend API key; email endpoints fail when unset",
    )
    api_base_url: str = Field(
        "https://api.resend.com",
        description="Resend API base URL",
    )
    from_address: str = Field(
        "DentServe <onboarding@resend.dev>",
        description="Default sender address",
    )
    timeout_seconds: float = Field(
        10.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log output: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate log file after this size (0 disables)")
    backup_count: int = Field(5, description="Number of rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Header carrying the correlation id")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode (raw error messages in 500 responses)",
    )
    port: int = Field(
        3001,
        description="Port the server listens on",
    )
    frontend_url: str | None = Field(
        None,
        description="Deployed frontend URL (CORS origin and email links)",
    )
    allowed_origins: str | None = Field(
        None,
        description="Comma-separated list of extra CORS origins",
    )
    max_upload_size_mb: int = Field(
        10,
        description="Hard ceiling for any image upload in megabytes",
    )
    trusted_proxies: str | None = Field(
        None,
        description="Comma-separated proxy addresses whose X-Forwarded-For is honoured",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting on upload and email endpoints",
    )
    upload_rate_limit_requests: int = Field(
        10,
        description="Maximum uploads allowed per window (per user)",
        ge=1,
    )
    upload_rate_limit_window_seconds: int = Field(
        300,
        description="Upload rate limit window size in seconds",
        ge=1,
    )
    email_rate_limit_requests: int = Field(
        10,
        description="Maximum email requests allowed per window (per client IP)",
        ge=1,
    )
    email_rate_limit_window_seconds: int = Field(
        900,
        description="Email rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    dashboard_cache_ttl_seconds: int = Field(
        300,
        description="Lifetime of cached dashboard payloads",
        ge=1,
    )
    dashboard_refresh_cooldown_seconds: float = Field(
        30.0,
        description="Minimum interval between forced dashboard refreshes per user",
    )
    submit_guard_seconds: float = Field(
        5.0,
        description="How long a submission stays pending before the guard releases it",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )

    def cors_origins(self) -> list[str]:
        """Return the de-duplicated list of allowed CORS origins."""
        origins: list[str] = []
        candidates = (self.allowed_origins or "").split(",") + [self.frontend_url or ""]
        for origin in candidates:
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins

    def trusted_proxy_hosts(self) -> set[str]:
        return {host.strip() for host in (self.trusted_proxies or "").split(",") if host.strip()}


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    supabase: SupabaseSettings = Field(default_factory=_build_supabase_settings)
    recaptcha: RecaptchaSettings = Field(default_factory=_build_recaptcha_settings)
    storage: StorageSettings = Field(default_factory=_build_storage_settings)
    email: EmailSettings = Field(default_factory=_build_email_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
