"""
Error taxonomy shared by the reconciliation and newsletter services.

Batch-level errors (NotFoundError, ConfigurationError, PersistenceError raised
while establishing a batch) abort a run. Record-level errors
(UpstreamUnavailable, ReceiptNotReady, PersistenceError on a single write) are
caught by the agents, reported per record, and the batch continues.
"""

from typing import Iterable, Optional


class ReconciliationError(Exception):
    """Base class for all service errors."""
    pass


class ConfigurationError(ReconciliationError):
    """Raised when a required setting (DSN, API key) is missing."""
    pass


class NotFoundError(ReconciliationError):
    """Raised when a target donor or record does not exist."""
    pass


class DonorNotFound(NotFoundError):
    """Raised when none of the candidate emails belongs to a donor."""

    def __init__(self, candidate_emails: Iterable[str]):
        self.candidate_emails = list(candidate_emails)
        super().__init__(
            f"No donor found for any of: {', '.join(self.candidate_emails) or '(none)'}"
        )


class UpstreamUnavailable(ReconciliationError):
    """
    Raised when a provider call fails.

    ``retryable`` is True for rate limiting and connectivity problems, False
    for failures a retry will not fix (invalid id, bad credentials).
    """

    def __init__(self, message: str, retryable: bool = False, code: Optional[str] = None):
        super().__init__(message)
        self.retryable = retryable
        self.code = code


class ReceiptNotReady(ReconciliationError):
    """The provider answered, but no receipt has been issued yet."""

    def __init__(self, payment_intent_id: str, reason: str = "no settled charge"):
        self.payment_intent_id = payment_intent_id
        self.reason = reason
        super().__init__(f"Receipt not ready for {payment_intent_id}: {reason}")


class PersistenceError(ReconciliationError):
    """Raised when a database read or write fails."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class AlreadySubscribed(ReconciliationError):
    """Raised when a newsletter subscriber with this email already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"{email} is already subscribed to the newsletter")
