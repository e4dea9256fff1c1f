"""
Configuration settings for the newsletter jobs.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator

from services.common.settings import Settings


class NewsletterSettings(Settings):
    """Shared settings plus MailerLite credentials."""

    mailerlite_api_key: Optional[str] = Field(
        default=None,
        description="MailerLite API token (unset = subscribers stored locally only)"
    )

    mailerlite_group_id: Optional[str] = Field(
        default=None,
        description="MailerLite group new subscribers are added to"
    )

    mailerlite_base_url: str = Field(
        default="https://connect.mailerlite.com/api",
        description="MailerLite API base URL"
    )

    newsletter_source: str = Field(
        default="footer",
        description="Source recorded for subscribers added from the command line"
    )

    @field_validator("mailerlite_api_key", "mailerlite_group_id")
    @classmethod
    def blank_is_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("mailerlite_base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")


@lru_cache()
def get_settings() -> NewsletterSettings:
    """Get cached settings instance."""
    return NewsletterSettings()


settings = get_settings
