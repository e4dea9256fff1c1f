"""
Configuration settings for the reconciliation jobs.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator

from services.common.settings import Settings

from .matching import PatternMode


class ReconciliationSettings(Settings):
    """Shared settings plus Stripe credentials and linking rules."""

    # Stripe
    stripe_secret_key: Optional[str] = Field(
        default=None,
        description="Stripe secret key used for receipt lookups"
    )

    stripe_api_version: Optional[str] = Field(
        default=None,
        description="Pin a Stripe API version (account default when unset)"
    )

    # Linking
    link_extra_aliases: str = Field(
        default="",
        description="Comma-separated emails always linked alongside the CLI arguments"
    )

    link_pattern: Optional[str] = Field(
        default=None,
        description="Substring whose matching contact emails are also linked"
    )

    link_pattern_mode: PatternMode = Field(
        default=PatternMode.SUBSTRING,
        description="Where link_pattern must occur (substring, local_substring, local_prefix)"
    )

    # Ledger semantics
    settled_payment_status: str = Field(
        default="completed",
        description="payment_status value of a captured payment"
    )

    active_sponsorship_status: str = Field(
        default="active",
        description="Sponsorship status counted in summaries"
    )

    currency_label: str = Field(
        default="PKR",
        description="Currency shown in console output"
    )

    service_name: str = Field(
        default="donor-reconcile",
        description="Service name for logging"
    )

    @field_validator("link_pattern")
    @classmethod
    def blank_pattern_is_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("link_pattern_mode", mode="before")
    @classmethod
    def normalize_pattern_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def extra_aliases(self) -> List[str]:
        """Configured extra aliases as a list, blanks dropped."""
        return [alias.strip() for alias in self.link_extra_aliases.split(",") if alias.strip()]


@lru_cache()
def get_settings() -> ReconciliationSettings:
    """Get cached settings instance."""
    return ReconciliationSettings()


settings = get_settings
