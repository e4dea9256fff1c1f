"""
Tests for the HTTP client with retries and backoff.

Requests are served by ``httpx.MockTransport``; no network access.
"""

import json
from unittest.mock import patch

import httpx
import pytest

from ..client import RETRYABLE_STATUS_CODES, HTTPClient, RetriesExhausted, RetryPolicy
from ..errors import UpstreamUnavailable


def _transport(responses):
    """MockTransport replaying ``responses`` (status code, exception or Response) in order."""
    calls = []
    queue = list(responses)

    def handler(request):
        calls.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, int):
            return httpx.Response(item, json={"status": item})
        return item

    return httpx.MockTransport(handler), calls


class TestRetryPolicy:
    """Test exponential backoff calculation."""

    def test_doubles_per_attempt(self):
        policy = RetryPolicy(base_delay=1.0)
        assert 1.0 <= policy.delay(0) <= 1.2
        assert 2.0 <= policy.delay(1) <= 2.4
        assert 8.0 <= policy.delay(3) <= 9.6

    def test_capped_at_max_delay(self):
        assert RetryPolicy(base_delay=1.0, max_delay=5.0).delay(20) <= 6.0

    def test_attempts_include_first_try(self):
        assert RetryPolicy(max_retries=0).attempts == 1


class TestHTTPClientRetries:
    """Test retry behaviour of HTTPClient.request."""

    @patch("time.sleep")
    def test_retries_server_errors_then_succeeds(self, mock_sleep):
        transport, calls = _transport([503, 502, 200])

        with HTTPClient(max_retries=3, transport=transport) as client:
            response = client.get("https://api.example.com/ping")

        assert response.status_code == 200
        assert len(calls) == 3
        assert mock_sleep.call_count == 2

    @patch("time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        transport, calls = _transport([500, 500, 500])

        with HTTPClient(max_retries=2, transport=transport) as client:
            with pytest.raises(RetriesExhausted) as exc_info:
                client.get("https://api.example.com/ping")

        assert exc_info.value.status_code == 500
        assert exc_info.value.retryable
        assert isinstance(exc_info.value, UpstreamUnavailable)
        assert len(calls) == 3

    @patch("time.sleep")
    def test_retries_connect_errors(self, mock_sleep):
        transport, calls = _transport([httpx.ConnectError("refused"), 200])

        with HTTPClient(max_retries=1, transport=transport) as client:
            assert client.get("https://api.example.com/ping").status_code == 200

        assert len(calls) == 2

    @patch("time.sleep")
    def test_connect_errors_exhausted(self, mock_sleep):
        transport, _ = _transport([httpx.ConnectTimeout("slow")] * 2)

        with HTTPClient(max_retries=1, transport=transport) as client:
            with pytest.raises(RetriesExhausted, match="Gave up after 2 attempt"):
                client.get("https://api.example.com/ping")

    @pytest.mark.parametrize("status_code", [400, 401, 404, 429])
    def test_client_errors_returned_without_retry(self, status_code):
        transport, calls = _transport([status_code])

        with HTTPClient(max_retries=3, transport=transport) as client:
            response = client.post("https://api.example.com/items", json={})

        assert response.status_code == status_code
        assert len(calls) == 1

    def test_429_is_not_a_retryable_status(self):
        assert 429 not in RETRYABLE_STATUS_CODES


class TestRequestBody:

    def test_json_body_and_headers_sent(self):
        transport, calls = _transport([httpx.Response(201, json={"data": {"id": "42"}})])

        with HTTPClient(transport=transport) as client:
            response = client.post("https://api.example.com/items", json={"name": "x"}, headers={"X-Test": "1"})

        assert response.json() == {"data": {"id": "42"}}
        assert calls[0].headers["X-Test"] == "1"
        assert json.loads(calls[0].content) == {"name": "x"}


class TestHTTPClientConfiguration:

    @patch("httpx.Client")
    def test_timeout_and_kwargs_passed_through(self, mock_client_class):
        HTTPClient(timeout=12.0, headers={"User-Agent": "donor-reconcile"})
        mock_client_class.assert_called_once_with(timeout=12.0, headers={"User-Agent": "donor-reconcile"})
