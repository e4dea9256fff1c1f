"""
Configuration shared by every reconciliation job.

Values come from environment variables, then a ``.env`` file in the working
directory, then the defaults below. Service packages subclass ``Settings``
to add their own credentials.
"""

from functools import lru_cache
from typing import Iterable, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")
ENVIRONMENTS = ("development", "staging", "production")
POSTGRES_SCHEMES = ("postgresql://", "postgres://", "postgresql+psycopg://")


def _one_of(name: str, value: str, allowed: Iterable[str]) -> str:
    if value not in allowed:
        raise ValueError(f"{name} must be one of: {', '.join(sorted(allowed))}")
    return value


class Settings(BaseSettings):
    """Database, HTTP, logging and report settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database holding donors, contributions and newsletter subscribers
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection string"
    )

    db_application_name: str = Field(
        default="donor_reconcile",
        description="application_name reported to PostgreSQL"
    )

    # Outbound HTTP (MailerLite)
    http_timeout: float = Field(default=30.0, ge=1.0, le=300.0, description="Request timeout in seconds")
    http_max_retries: int = Field(default=3, ge=0, le=10, description="Retries after a 5xx or connect error")

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    log_format: str = Field(default="text", description="json or text")
    service_name: str = Field(default="donor-reconcile", description="Service name stamped on log events")
    environment: str = Field(default="development", description="development, staging or production")

    # JSON run reports
    reports_dir: Optional[str] = Field(
        default=None,
        description="Directory for JSON run reports (unset = no reports written)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        return _one_of("log_level", v.upper(), LOG_LEVELS)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        return _one_of("log_format", v.lower(), LOG_FORMATS)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        return _one_of("environment", v.lower(), ENVIRONMENTS)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Blank means unset; anything else must be a PostgreSQL URL."""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not v.startswith(POSTGRES_SCHEMES):
            raise ValueError("database_url must be a valid PostgreSQL connection string")
        return v

    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


settings = get_settings
