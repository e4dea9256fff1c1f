"""
Retrying HTTP client built on httpx.

Used for REST integrations without an official SDK (MailerLite). Server
errors and connection failures are retried with exponential backoff and
jitter; any other response, 4xx included, goes straight back to the caller.
"""

import random
import time
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from .errors import UpstreamUnavailable

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({500, 502, 503, 504})

RETRYABLE_EXCEPTIONS = (
    httpx.ConnectTimeout,
    httpx.ConnectError,
    httpx.ReadTimeout,
)


class RetriesExhausted(UpstreamUnavailable):
    """Every attempt failed with a retryable error; a later run may succeed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, retryable=True)
        self.status_code = status_code


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait in between."""
    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 60.0

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, attempt: int) -> float:
        """
        Seconds to wait after the 0-based ``attempt`` failed.

        Doubles per attempt up to ``max_delay``, plus 0-20% jitter.
        """
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return delay + random.uniform(0, 0.2 * delay)


class HTTPClient:
    """
    httpx.Client wrapper applying a RetryPolicy to every request.

    Use it as a context manager so the connection pool is closed when the
    job owning it ends. Extra keyword arguments (``transport``, ``headers``)
    go to ``httpx.Client``.
    """

    def __init__(
        self,
        max_retries: int = 3,
        timeout: float = 30.0,
        base_delay: float = 0.5,
        max_delay: float = 60.0,
        **client_kwargs
    ):
        self.policy = RetryPolicy(max_retries, base_delay, max_delay)
        client_kwargs.setdefault("timeout", timeout)
        self._client = httpx.Client(**client_kwargs)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self._client.close()

    def _wait(self, attempt: int, method: str, url: str, **context) -> None:
        delay = self.policy.delay(attempt)
        logger.warning(
            "Retrying HTTP request",
            method=method,
            url=url,
            attempt=attempt + 1,
            retry_after=round(delay, 2),
            **context
        )
        time.sleep(delay)

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send a request, retrying server errors and connection failures.

        Raises:
            RetriesExhausted: The last allowed attempt also failed
            httpx.HTTPError: A transport error that is not worth retrying
        """
        failure = ""
        status_code: Optional[int] = None

        for attempt in range(self.policy.attempts):
            logger.debug("Sending HTTP request", method=method, url=url, attempt=attempt + 1)
            try:
                response = self._client.request(method, url, **kwargs)
            except RETRYABLE_EXCEPTIONS as exc:
                failure, status_code = f"{type(exc).__name__}: {exc}", None
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    if response.status_code >= 400:
                        logger.warning(
                            "HTTP request rejected",
                            method=method,
                            url=url,
                            status_code=response.status_code,
                            body=response.text[:500]
                        )
                    return response
                failure, status_code = f"HTTP {response.status_code}", response.status_code

            if attempt + 1 < self.policy.attempts:
                self._wait(attempt, method, url, failure=failure)

        logger.error(
            "HTTP request failed on every attempt",
            method=method,
            url=url,
            attempts=self.policy.attempts,
            failure=failure
        )
        raise RetriesExhausted(
            f"Gave up after {self.policy.attempts} attempt(s): {failure}", status_code=status_code
        )

    def get(self, url: str, **kwargs) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> httpx.Response:
        return self.request("POST", url, **kwargs)
