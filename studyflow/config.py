"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "StudyFlow Progression API"
    api_version: str = "0.1.0"
    api_description: str = "XP, levels, streaks, store and chat quota for StudyFlow"

    # Auth - HS256 secret shared with the identity provider
    jwt_secret: str = ""
    jwt_audience: str | None = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    service_name: str = "studyflow-progression"

    # Observability - Metrics
    metrics_enabled: bool = True

    # Gamification
    daily_message_quota: int = 10
    leaderboard_limit: int = 50
    streak_timezone: str = "UTC"  # IANA name used for calendar-day streaks

    # Startup
    run_migrations_on_startup: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.jwt_secret:
            errors.append("JWT_SECRET is required but empty or missing")

        if self.daily_message_quota < 0:
            errors.append(f"DAILY_MESSAGE_QUOTA cannot be negative: {self.daily_message_quota}")

        try:
            if self.streak_timezone != "UTC":
                ZoneInfo(self.streak_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"STREAK_TIMEZONE is not a known IANA zone: {self.streak_timezone}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
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
