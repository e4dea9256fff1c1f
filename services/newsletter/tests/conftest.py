"""
Pytest fixtures for newsletter tests.

Subscribers live in an in-memory SQLite database; MailerLite is served by
``httpx.MockTransport``.
"""

import itertools
import json
from datetime import datetime, timedelta
from typing import Optional

import httpx
import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from services.common.client import HTTPClient

from ..client import MailerLiteClient

SCHEMA = """
    CREATE TABLE newsletter_subscribers (
        id VARCHAR PRIMARY KEY,
        email VARCHAR NOT NULL UNIQUE,
        source VARCHAR,
        is_active BOOLEAN DEFAULT TRUE,
        mailerlite_id VARCHAR,
        mailerlite_synced BOOLEAN DEFAULT FALSE,
        mailerlite_synced_at TIMESTAMP,
        mailerlite_error VARCHAR,
        created_at TIMESTAMP
    )
"""

BASE_URL = "https://mailerlite.test/api"


class FakeMailerLite:
    """Records requests and answers from a queue (status code or Response)."""

    def __init__(self):
        self.requests = []
        self.responses = []

    def reply(self, *responses):
        self.responses.extend(responses)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if self.responses else 200
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        if item < 300:
            email = json.loads(request.content)["email"]
            return httpx.Response(item, json={"data": {"id": f"ml-{email}"}})
        return httpx.Response(item, json={"message": "nope"})

    def payloads(self):
        return [json.loads(request.content) for request in self.requests]


class SubscriberSeeder:

    def __init__(self, engine: Engine):
        self.engine = engine
        self._clock = itertools.count(1)

    def subscriber(self, email: str, synced: Optional[bool] = False, error: Optional[str] = None,
                   mailerlite_id: Optional[str] = None) -> str:
        subscriber_id = f"sub-{email}"
        created_at = datetime(2025, 1, 1, 10) + timedelta(minutes=next(self._clock))
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO newsletter_subscribers
                        (id, email, source, is_active, mailerlite_id, mailerlite_synced, mailerlite_error, created_at)
                    VALUES (:id, :email, 'footer', :active, :mailerlite_id, :synced, :error, :created_at)
                """),
                {
                    "id": subscriber_id,
                    "email": email,
                    "active": True,
                    "mailerlite_id": mailerlite_id,
                    "synced": synced,
                    "error": error,
                    "created_at": created_at.strftime("%Y-%m-%d %H:%M:%S"),
                },
            )
        return subscriber_id

    def fetch(self, email: str) -> dict:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT * FROM newsletter_subscribers WHERE email = :email"), {"email": email}
            ).fetchone()
        return dict(row._mapping) if row else None


@pytest.fixture
def engine() -> Engine:
    """In-memory SQLite engine with the subscribers table."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as conn:
        conn.execute(text(SCHEMA))
    yield engine
    engine.dispose()


@pytest.fixture
def seed(engine: Engine) -> SubscriberSeeder:
    return SubscriberSeeder(engine)


@pytest.fixture
def mailerlite() -> FakeMailerLite:
    return FakeMailerLite()


@pytest.fixture
def ml_client(mailerlite: FakeMailerLite) -> MailerLiteClient:
    http = HTTPClient(max_retries=0, transport=httpx.MockTransport(mailerlite.handler))
    yield MailerLiteClient("ml_test_key", http, base_url=BASE_URL)
    http.close()
