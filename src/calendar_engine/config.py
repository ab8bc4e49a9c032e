"""
Configuration management for Calendar Engine.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from functools import lru_cache
from typing import Literal

from dateutil import tz
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Calendar store
    store_provider: Literal["local", "memory"] = Field(
        default="local",
        description="Calendar store backend (local database or in-memory)"
    )
    database_url: str = Field(
        default="sqlite:///./data/calendar_engine.db",
        description="Database connection URL for the local store"
    )
    default_source: str = Field(
        default="Local",
        description="Source (account) name used by the built-in stores"
    )

    # Date handling
    timezone: str = Field(
        default="",
        description="IANA timezone name; empty uses the process local timezone"
    )
    week_starts_on: Literal["system", "monday", "sunday", "saturday"] = Field(
        default="system",
        description="Default first day of week for quick ranges"
    )

    # Engine behavior
    duplicate_tolerance_minutes: int = Field(
        default=5,
        ge=0,
        description="Default time tolerance for duplicate event detection"
    )
    search_window_days: int = Field(
        default=365,
        ge=1,
        description="Days before and after now searched when no range is given"
    )
    require_calendar_name: bool = Field(
        default=True,
        description="Require an explicit calendar when creating events and reminders"
    )
    max_recurrence_instances: int = Field(
        default=500,
        ge=1,
        description="Maximum occurrences expanded per recurring item and query"
    )

    # API Configuration
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )
    api_reload: bool = Field(
        default=False,
        description="Enable auto-reload in development"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        v = v.strip()
        if v and tz.gettz(v) is None:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def uses_local_store(self) -> bool:
        """Check if the database-backed store is the configured provider."""
        return self.store_provider == "local"

    def get_tzinfo(self):
        """
        Get the timezone used for naive inputs and rendered output.

        Returns:
            tzinfo for the configured IANA zone, or the process local zone
        """
        if self.timezone:
            return tz.gettz(self.timezone)
        return tz.tzlocal()

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        # The in-memory store loses every write on restart
        if not self.uses_local_store:
            errors.append(
                "Production requires the local store. "
                "Set STORE_PROVIDER=local."
            )

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.
    Use this function throughout the application to access settings.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from calendar_engine.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.store_provider)
    """
    return Settings()
