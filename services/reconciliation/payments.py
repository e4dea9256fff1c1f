"""
Stripe receipt lookups.

``StripeReceiptProvider`` is the only code that talks to Stripe. It is
constructed per invocation with an explicit API key (passed to every request)
instead of configuring the module-global ``stripe.api_key``.
"""

import time
from typing import Any, Optional

import stripe
import structlog

from services.common.errors import ConfigurationError, ReceiptNotReady, UpstreamUnavailable
from services.common.log_config import log_upstream_call

logger = structlog.get_logger(__name__)

# Stripe failures that a later retry may fix
RETRYABLE_STRIPE_ERRORS = (
    stripe.RateLimitError,
    stripe.APIConnectionError,
)


def _field(obj: Any, name: str) -> Any:
    """Read a field from a StripeObject (a dict subclass) or any plain object."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class StripeReceiptProvider:
    """Fetch receipt URLs for payment intents."""

    def __init__(self, api_key: Optional[str], stripe_version: Optional[str] = None):
        if not api_key:
            raise ConfigurationError("STRIPE_SECRET_KEY is not configured")
        self.api_key = api_key
        self.stripe_version = stripe_version

    def _request_options(self) -> dict:
        options = {"api_key": self.api_key}
        if self.stripe_version:
            options["stripe_version"] = self.stripe_version
        return options

    def _call(self, operation: str, resource_id: str, fn, **params):
        """Run one Stripe call, translating SDK errors to UpstreamUnavailable."""
        started = time.monotonic()
        try:
            obj = fn(resource_id, **self._request_options(), **params)
        except RETRYABLE_STRIPE_ERRORS as e:
            log_upstream_call(
                logger, "stripe", operation, resource_id,
                status_code=e.http_status or 503,
                duration_ms=(time.monotonic() - started) * 1000,
                error=str(e),
            )
            raise UpstreamUnavailable(
                f"Stripe temporarily unavailable: {e}", retryable=True, code=e.code
            ) from e
        except stripe.StripeError as e:
            log_upstream_call(
                logger, "stripe", operation, resource_id,
                status_code=e.http_status or 400,
                duration_ms=(time.monotonic() - started) * 1000,
                error=str(e),
            )
            raise UpstreamUnavailable(
                f"Stripe rejected request: {e}", retryable=False, code=e.code
            ) from e

        log_upstream_call(
            logger, "stripe", operation, resource_id,
            status_code=200,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        return obj

    def fetch_receipt_url(self, payment_intent_id: str) -> str:
        """
        Return the receipt URL of the intent's latest charge.

        Raises:
            ReceiptNotReady: The intent has no charge yet, or the charge has no
                receipt (payment still settling)
            UpstreamUnavailable: The call failed; ``retryable`` says whether a
                later attempt may succeed
        """
        intent = self._call(
            "PaymentIntent.retrieve",
            payment_intent_id,
            stripe.PaymentIntent.retrieve,
            expand=["latest_charge"],
        )

        charge = _field(intent, "latest_charge")
        if charge is None:
            raise ReceiptNotReady(payment_intent_id, reason="no charge yet")

        # Expansion can come back as a bare charge id
        if isinstance(charge, str):
            charge = self._call("Charge.retrieve", charge, stripe.Charge.retrieve)

        receipt_url = _field(charge, "receipt_url")
        if not receipt_url:
            status = _field(charge, "status") or "unknown"
            raise ReceiptNotReady(payment_intent_id, reason=f"charge status {status}, no receipt")

        return receipt_url
