"""
Helper utilities for email handling and amount formatting.
"""

from .email import clean_email, clean_email_list, is_valid_email, split_email
from .money import format_amount, format_compact, format_monthly

__all__ = [
    "clean_email",
    "clean_email_list",
    "is_valid_email",
    "split_email",
    "format_amount",
    "format_compact",
    "format_monthly",
]
