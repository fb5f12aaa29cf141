"""
Dislink configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Storage
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")
    STORAGE_BACKEND: str = os.environ.get("STORAGE_BACKEND", "postgres")  # postgres | memory

    # Auth (tokens are issued by the identity provider, we only verify them)
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = 24

    # Identity provider
    IDENTITY_PROVIDER_URL: str = os.environ.get("IDENTITY_PROVIDER_URL", "")
    IDENTITY_PROVIDER_KEY: str = os.environ.get("IDENTITY_PROVIDER_KEY", "")
    IDENTITY_PROVIDER_TIMEOUT_SECONDS: float = float(os.environ.get("IDENTITY_PROVIDER_TIMEOUT_SECONDS", "10"))

    # Email (Resend)
    RESEND_API_KEY: str = os.environ.get("RESEND_API_KEY", "")
    EMAIL_FROM: str = os.environ.get("EMAIL_FROM", "Dislink <connect@dislink.com>")

    # Reverse geocoding (Nominatim)
    NOMINATIM_URL: str = os.environ.get("NOMINATIM_URL", "https://nominatim.openstreetmap.org")
    GEOCODE_USER_AGENT: str = "Dislink Scan Recorder (https://dislink.com)"
    GEOCODE_TIMEOUT_SECONDS: float = float(os.environ.get("GEOCODE_TIMEOUT_SECONDS", "3"))

    # Rate limiter
    RATE_LIMIT_MAX_KEYS: int = int(os.environ.get("RATE_LIMIT_MAX_KEYS", "10000"))
    RATE_LIMIT_SWEEP_SECONDS: int = 60

    # Needs
    NEED_DURATIONS_HOURS: tuple[int, ...] = (24, 48)
    NEED_MESSAGE_MAX_LENGTH: int = 500

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    @property
    def APP_URL(self) -> str:
        url = os.environ.get("APP_URL")
        if url:
            return url
        return "http://localhost:5173" if self.ENVIRONMENT == "development" else "https://dislink.com"


# Singleton instance
settings = Settings()

# Validate required settings (skip in test mode)
_testing = os.environ.get("TESTING", "").lower() == "true"

if not _testing:
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET environment variable is required")
    if settings.STORAGE_BACKEND == "postgres" and not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL environment variable is required")
    if settings.ENVIRONMENT != "development" and not settings.RESEND_API_KEY:
        raise RuntimeError("RESEND_API_KEY environment variable is required")
