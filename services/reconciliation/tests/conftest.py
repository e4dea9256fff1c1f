"""
Pytest fixtures for reconciliation tests.

Unit tests run against an in-memory SQLite database holding the same tables
as production. ``PRAGMA case_sensitive_like`` is switched on so LIKE behaves
as on PostgreSQL.

Integration tests require DATABASE_URL and are skipped without it.
"""

import itertools
import os
from datetime import datetime, timedelta
from typing import Optional

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

SCHEMA = [
    """
    CREATE TABLE donors (
        id VARCHAR PRIMARY KEY,
        email VARCHAR NOT NULL UNIQUE,
        full_name VARCHAR,
        created_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE donations (
        id VARCHAR PRIMARY KEY,
        donor_id VARCHAR REFERENCES donors(id),
        donor_name VARCHAR,
        email VARCHAR,
        amount INTEGER NOT NULL,
        category VARCHAR,
        is_anonymous BOOLEAN DEFAULT FALSE,
        payment_method VARCHAR,
        created_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE sponsorships (
        id VARCHAR PRIMARY KEY,
        child_id VARCHAR,
        donor_id VARCHAR REFERENCES donors(id),
        sponsor_name VARCHAR,
        sponsor_email VARCHAR,
        monthly_amount INTEGER NOT NULL,
        status VARCHAR,
        payment_method VARCHAR,
        payment_status VARCHAR,
        stripe_payment_intent_id VARCHAR,
        stripe_receipt_url VARCHAR,
        local_receipt_number VARCHAR,
        created_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE event_donations (
        id VARCHAR PRIMARY KEY,
        event_id VARCHAR,
        donor_id VARCHAR REFERENCES donors(id),
        donor_name VARCHAR,
        donor_email VARCHAR,
        amount INTEGER NOT NULL,
        payment_method VARCHAR,
        payment_status VARCHAR,
        stripe_payment_intent_id VARCHAR,
        stripe_receipt_url VARCHAR,
        local_receipt_number VARCHAR,
        created_at TIMESTAMP
    )
    """,
]


def get_database_url() -> Optional[str]:
    """Get database URL from environment (a local .env is honoured)."""
    load_dotenv()
    return os.environ.get("DATABASE_URL")


def create_schema(engine: Engine, temporary: bool = False) -> None:
    """Create the ledger tables (as TEMP tables on PostgreSQL if asked)."""
    with engine.begin() as conn:
        for ddl in SCHEMA:
            if temporary:
                ddl = ddl.replace("CREATE TABLE", "CREATE TEMP TABLE").replace(" REFERENCES donors(id)", "")
            conn.execute(text(ddl))


class LedgerSeeder:
    """Insert donors and contributions with sensible defaults."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def _timestamp(self) -> str:
        # Strictly increasing so ORDER BY created_at is deterministic
        return (datetime(2025, 1, 1, 10) + timedelta(minutes=next(self._clock))).strftime("%Y-%m-%d %H:%M:%S")

    def _insert(self, table: str, values: dict) -> str:
        columns = ", ".join(values)
        params = ", ".join(f":{name}" for name in values)
        with self.engine.begin() as conn:
            conn.execute(text(f"INSERT INTO {table} ({columns}) VALUES ({params})"), values)
        return values["id"]

    def donor(self, email: str, full_name: Optional[str] = None, id: Optional[str] = None) -> str:
        return self._insert("donors", {
            "id": id or self._next_id("donor-"),
            "email": email,
            "full_name": full_name,
            "created_at": self._timestamp(),
        })

    def donation(self, email: Optional[str], amount: int, donor_id: Optional[str] = None,
                 name: Optional[str] = None, id: Optional[str] = None) -> str:
        return self._insert("donations", {
            "id": id or self._next_id("don-"),
            "donor_id": donor_id,
            "donor_name": name,
            "email": email,
            "amount": amount,
            "category": "general",
            "payment_method": "card",
            "created_at": self._timestamp(),
        })

    def sponsorship(self, email: Optional[str], monthly_amount: int, donor_id: Optional[str] = None,
                    name: Optional[str] = None, status: str = "active",
                    payment_status: Optional[str] = "completed",
                    payment_intent_id: Optional[str] = None,
                    receipt_url: Optional[str] = None,
                    local_receipt_number: Optional[str] = None,
                    id: Optional[str] = None) -> str:
        return self._insert("sponsorships", {
            "id": id or self._next_id("sp-"),
            "child_id": "child-1",
            "donor_id": donor_id,
            "sponsor_name": name,
            "sponsor_email": email,
            "monthly_amount": monthly_amount,
            "status": status,
            "payment_method": "stripe",
            "payment_status": payment_status,
            "stripe_payment_intent_id": payment_intent_id,
            "stripe_receipt_url": receipt_url,
            "local_receipt_number": local_receipt_number,
            "created_at": self._timestamp(),
        })

    def event_donation(self, email: Optional[str], amount: int, donor_id: Optional[str] = None,
                       name: Optional[str] = None, payment_status: Optional[str] = "completed",
                       payment_intent_id: Optional[str] = None,
                       receipt_url: Optional[str] = None,
                       local_receipt_number: Optional[str] = None,
                       id: Optional[str] = None) -> str:
        return self._insert("event_donations", {
            "id": id or self._next_id("ev-"),
            "event_id": "event-1",
            "donor_id": donor_id,
            "donor_name": name,
            "donor_email": email,
            "amount": amount,
            "payment_method": "stripe",
            "payment_status": payment_status,
            "stripe_payment_intent_id": payment_intent_id,
            "stripe_receipt_url": receipt_url,
            "local_receipt_number": local_receipt_number,
            "created_at": self._timestamp(),
        })

    def fetch(self, table: str, record_id: str) -> dict:
        with self.engine.connect() as conn:
            row = conn.execute(text(f"SELECT * FROM {table} WHERE id = :id"), {"id": record_id}).fetchone()
        return dict(row._mapping)

    def donor_ids(self, table: str) -> dict:
        """Map record id -> donor_id for every row of a table."""
        with self.engine.connect() as conn:
            rows = conn.execute(text(f"SELECT id, donor_id FROM {table}")).fetchall()
        return {row.id: row.donor_id for row in rows}


@pytest.fixture
def engine() -> Engine:
    """In-memory SQLite engine with the ledger schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _case_sensitive_like(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA case_sensitive_like = ON")

    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seed(engine: Engine) -> LedgerSeeder:
    return LedgerSeeder(engine)


@pytest.fixture(scope="module")
def pg_engine() -> Engine:
    """
    PostgreSQL engine whose ledger tables are session TEMP tables.

    A single pooled connection keeps the temp tables visible to every
    checkout; they shadow any real tables and vanish on dispose.
    """
    from services.common.db import normalize_dsn

    url = get_database_url()
    if not url:
        pytest.skip("requires PostgreSQL integration DB (set DATABASE_URL)")

    engine = create_engine(normalize_dsn(url), poolclass=StaticPool)
    create_schema(engine, temporary=True)
    yield engine
    engine.dispose()
