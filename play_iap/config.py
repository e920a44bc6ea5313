"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Invalid config is rejected at import time.
"""

import logging
import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Settings loaded from PLAY_IAP_* environment variables."""

    # Google OAuth / Android Publisher endpoints
    token_url: str = "https://accounts.google.com/o/oauth2/token"
    publisher_scope: str = "https://www.googleapis.com/auth/androidpublisher"
    api_base_url: str = "https://www.googleapis.com/androidpublisher/v3/applications"

    # Google rejects assertions valid for more than one hour
    assertion_lifetime_seconds: int = 3600

    # None = wait indefinitely
    http_timeout_seconds: float | None = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    service_name: str = "play-iap"
    version: str = "0.1.0"

    model_config = SettingsConfigDict(
        env_prefix="PLAY_IAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate configuration when settings are loaded.

        A bad endpoint or assertion lifetime would otherwise only show up as
        an AuthError on the first verification call.
        """
        errors: list[str] = []

        if not self.token_url.startswith("https://"):
            errors.append(f"TOKEN_URL must be an https URL, got: {self.token_url[:40]}")
        if not self.api_base_url.startswith("https://"):
            errors.append(f"API_BASE_URL must be an https URL, got: {self.api_base_url[:40]}")
        if not 1 <= self.assertion_lifetime_seconds <= 3600:
            errors.append(
                "ASSERTION_LIFETIME_SECONDS must be between 1 and 3600, "
                f"got: {self.assertion_lifetime_seconds}"
            )
        if self.http_timeout_seconds is not None and self.http_timeout_seconds <= 0:
            errors.append(
                f"HTTP_TIMEOUT_SECONDS must be positive, got: {self.http_timeout_seconds}"
            )
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            errors.append(f"LOG_LEVEL must be a logging level name, got: {self.log_level}")
        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
