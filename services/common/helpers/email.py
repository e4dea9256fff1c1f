"""
Email address utilities.

Donor emails are matched exactly as stored (case-sensitive), so these helpers
only trim operator input and check shape; they never lower-case or otherwise
canonicalise an address.
"""

import re
from typing import Iterable, List, Tuple

# One "@", non-empty local part, dotted domain, no whitespace
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def clean_email(email: str) -> str:
    """
    Strip surrounding whitespace from an email typed by an operator.

    Examples:
        >>> clean_email("  ali@gmail.com ")
        'ali@gmail.com'
        >>> clean_email("Ali@Gmail.com")
        'Ali@Gmail.com'
    """
    if not email or not isinstance(email, str):
        return ""
    return email.strip()


def is_valid_email(email: str) -> bool:
    """
    Check that a string looks like an email address.

    Examples:
        >>> is_valid_email("ali@gmail.com")
        True
        >>> is_valid_email("ali@localhost")
        False
        >>> is_valid_email("not an email")
        False
    """
    if not email or not isinstance(email, str):
        return False
    return EMAIL_PATTERN.match(email) is not None


def split_email(email: str) -> Tuple[str, str]:
    """
    Split an address into (local part, domain).

    Examples:
        >>> split_email("ibrahimsamad507@gmail.com")
        ('ibrahimsamad507', 'gmail.com')
        >>> split_email("no-at-sign")
        ('no-at-sign', '')
    """
    local, _, domain = email.rpartition("@")
    if not _:
        return email, ""
    return local, domain


def clean_email_list(emails: Iterable[str]) -> List[str]:
    """
    Clean and validate a list of emails, dropping duplicates but keeping order.

    Raises:
        ValueError: If any entry is not a valid email
    """
    cleaned: List[str] = []
    for raw in emails:
        email = clean_email(raw)
        if not is_valid_email(email):
            raise ValueError(f"Invalid email address: '{raw}'")
        if email not in cleaned:
            cleaned.append(email)
    return cleaned
