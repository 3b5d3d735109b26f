"""
Environment-backed service settings.

All settings are read once from the process environment. A malformed
FRONTEND_URL is a fatal startup misconfiguration: upgrade links are built
from it on every denial, so it is validated here rather than per call.

Usage:
    from cvplus_payments.config.settings import get_settings

    settings = get_settings()
    settings.frontend_url  # "https://cvplus-webapp.web.app"
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_FRONTEND_URL = "https://cvplus-webapp.web.app"
DEFAULT_APP_BASE_URL = "https://getmycv-ai.web.app"
DEFAULT_SCHEDULING_ADMIN_EMAIL = "admin@cvplus.ai"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or malformed."""
    pass


def _validate_base_url(name: str, value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"{name} must be an absolute http(s) URL, got {value!r}")
    return value.rstrip("/")


@dataclass(frozen=True)
class PaymentsSettings:
    """Resolved service configuration."""

    env: str = "development"
    frontend_url: str = DEFAULT_FRONTEND_URL
    app_base_url: str = DEFAULT_APP_BASE_URL
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    auth_jwt_secret: Optional[str] = None
    auth_jwt_algorithm: str = "HS256"
    auth_jwt_audience: Optional[str] = None
    scheduling_admin_email: str = DEFAULT_SCHEDULING_ADMIN_EMAIL
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "https://cvplus.app"])

    @classmethod
    def from_env(cls) -> "PaymentsSettings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: If FRONTEND_URL or APP_BASE_URL is malformed
        """
        frontend_url = _validate_base_url(
            "FRONTEND_URL", os.getenv("FRONTEND_URL", DEFAULT_FRONTEND_URL)
        )
        app_base_url = _validate_base_url(
            "APP_BASE_URL", os.getenv("APP_BASE_URL", DEFAULT_APP_BASE_URL)
        )
        cors_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,https://cvplus.app").split(",")
            if origin.strip()
        ]

        settings = cls(
            env=os.getenv("ENV", "development"),
            frontend_url=frontend_url,
            app_base_url=app_base_url,
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            auth_jwt_secret=os.getenv("AUTH_JWT_SECRET"),
            auth_jwt_algorithm=os.getenv("AUTH_JWT_ALGORITHM", "HS256"),
            auth_jwt_audience=os.getenv("AUTH_JWT_AUDIENCE") or None,
            scheduling_admin_email=os.getenv(
                "SCHEDULING_ADMIN_EMAIL", DEFAULT_SCHEDULING_ADMIN_EMAIL
            ),
            cors_origins=cors_origins,
        )

        missing = [
            name for name, value in (
                ("STRIPE_SECRET_KEY", settings.stripe_secret_key),
                ("STRIPE_WEBHOOK_SECRET", settings.stripe_webhook_secret),
                ("AUTH_JWT_SECRET", settings.auth_jwt_secret),
            )
            if not value
        ]
        if missing:
            logger.warning(
                "Payments settings incomplete; dependent endpoints will fail",
                extra={"missing": missing},
            )

        return settings


_settings: Optional[PaymentsSettings] = None


def get_settings() -> PaymentsSettings:
    """Get or create the settings singleton."""
    global _settings
    if _settings is None:
        _settings = PaymentsSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests change the environment)."""
    global _settings
    _settings = None
