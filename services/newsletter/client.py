"""
MailerLite subscriber client.

Syncing is best-effort: the local subscriber row is the source of truth and
any MailerLite failure is logged and reported as ``None`` so the caller can
mark the subscriber for a later retry.
"""

import time
from typing import Any, Dict, Optional

import httpx
import structlog

from services.common.client import HTTPClient, RetriesExhausted
from services.common.log_config import log_upstream_call

from .settings import NewsletterSettings

logger = structlog.get_logger(__name__)


class MailerLiteClient:
    """Create or update subscribers through the MailerLite REST API."""

    def __init__(self, api_key: str, http_client: HTTPClient, base_url: str = "https://connect.mailerlite.com/api"):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.http = http_client

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def create_or_update(
        self,
        email: str,
        name: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Create or update a subscriber.

        Args:
            email: Subscriber email address
            name: Optional subscriber name
            group_id: Optional group to add the subscriber to

        Returns:
            MailerLite subscriber id, or None if the sync failed
        """
        url = f"{self.base_url}/subscribers"
        payload: Dict[str, Any] = {"email": email, "status": "active"}
        if name:
            payload["fields"] = {"name": name}
        if group_id:
            payload["groups"] = [group_id]

        started = time.monotonic()
        try:
            response = self.http.post(url, json=payload, headers=self._headers())
        except (RetriesExhausted, httpx.HTTPError) as e:
            logger.error("Failed to sync subscriber to MailerLite", email=email, error=str(e))
            return None

        log_upstream_call(
            logger, "mailerlite", "POST", url,
            status_code=response.status_code,
            duration_ms=(time.monotonic() - started) * 1000,
        )

        if response.status_code == 429:
            logger.warning("Rate limited by MailerLite, will retry later", email=email)
            return None
        if response.status_code == 401:
            logger.error("Invalid MailerLite API key, check MAILERLITE_API_KEY", email=email)
            return None
        if response.status_code >= 400:
            logger.error("Failed to sync subscriber to MailerLite", email=email, status_code=response.status_code)
            return None

        try:
            body = response.json()
        except ValueError:
            body = None
        data = body.get("data") if isinstance(body, dict) else None
        subscriber_id = data.get("id") if isinstance(data, dict) else None

        if not subscriber_id:
            logger.error("Unexpected MailerLite response format", email=email, response_text=response.text[:500])
            return None

        logger.info("Subscriber synced to MailerLite", email=email, mailerlite_id=subscriber_id)
        return str(subscriber_id)


def get_mailerlite_client(
    config: NewsletterSettings,
    http_client: Optional[HTTPClient] = None,
) -> Optional[MailerLiteClient]:
    """
    Build a MailerLite client, or return None when no API key is configured.

    The caller owns ``http_client`` and closes it; one is created from the
    timeout/retry settings if not given.
    """
    if not config.mailerlite_api_key:
        logger.warning("MAILERLITE_API_KEY not configured, subscribers will be stored locally only")
        return None

    if http_client is None:
        http_client = HTTPClient(max_retries=config.http_max_retries, timeout=config.http_timeout)

    return MailerLiteClient(
        config.mailerlite_api_key,
        http_client,
        base_url=config.mailerlite_base_url,
    )
