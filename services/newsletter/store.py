"""
Newsletter subscriber persistence.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from services.common.errors import PersistenceError

logger = structlog.get_logger(__name__)

_COLUMNS = (
    "id, email, source, is_active, mailerlite_id, mailerlite_synced, "
    "mailerlite_synced_at, mailerlite_error, created_at"
)


@dataclass
class Subscriber:
    """A newsletter subscriber and its MailerLite sync state."""
    id: str
    email: str
    source: Optional[str] = None
    is_active: bool = True
    mailerlite_id: Optional[str] = None
    mailerlite_synced: bool = False
    mailerlite_synced_at: Optional[datetime] = None
    mailerlite_error: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Any) -> "Subscriber":
        data = row._mapping
        return cls(
            id=data["id"],
            email=data["email"],
            source=data["source"],
            is_active=bool(data["is_active"]),
            mailerlite_id=data["mailerlite_id"],
            mailerlite_synced=bool(data["mailerlite_synced"]),
            mailerlite_synced_at=data["mailerlite_synced_at"],
            mailerlite_error=data["mailerlite_error"],
            created_at=data["created_at"],
        )


def get_subscriber(conn: Connection, email: str) -> Optional[Subscriber]:
    """Return the subscriber with this exact email, or None."""
    try:
        row = conn.execute(
            text(f"SELECT {_COLUMNS} FROM newsletter_subscribers WHERE email = :email"),
            {"email": email},
        ).fetchone()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Subscriber lookup failed: {e}") from e
    return Subscriber.from_row(row) if row else None


def create_subscriber(conn: Connection, email: str, source: str) -> Subscriber:
    """Insert an active, not yet synced subscriber."""
    try:
        row = conn.execute(
            text(f"""
                INSERT INTO newsletter_subscribers (id, email, source, is_active, mailerlite_synced, created_at)
                VALUES (:id, :email, :source, :is_active, :synced, CURRENT_TIMESTAMP)
                RETURNING {_COLUMNS}
            """),
            {
                "id": str(uuid.uuid4()),
                "email": email,
                "source": source,
                "is_active": True,
                "synced": False,
            },
        ).fetchone()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Subscriber insert failed: {e}") from e

    logger.info("Subscriber stored", subscriber_id=row._mapping["id"], email=email, source=source)
    return Subscriber.from_row(row)


def update_sync_status(
    conn: Connection,
    subscriber_id: str,
    mailerlite_id: Optional[str],
    synced: bool,
    error: Optional[str] = None,
) -> None:
    """Record the outcome of a MailerLite sync attempt."""
    synced_at = "CURRENT_TIMESTAMP" if synced else "NULL"
    try:
        conn.execute(
            text(f"""
                UPDATE newsletter_subscribers
                SET mailerlite_id = :mailerlite_id,
                    mailerlite_synced = :synced,
                    mailerlite_synced_at = {synced_at},
                    mailerlite_error = :error
                WHERE id = :id
            """),
            {
                "id": subscriber_id,
                "mailerlite_id": mailerlite_id,
                "synced": synced,
                "error": error,
            },
        )
    except SQLAlchemyError as e:
        raise PersistenceError(f"Subscriber sync status update failed: {e}") from e


def list_unsynced(conn: Connection) -> List[Subscriber]:
    """Subscribers not yet synced to MailerLite, oldest first."""
    try:
        rows = conn.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM newsletter_subscribers
                WHERE mailerlite_synced IS NULL OR mailerlite_synced = :synced
                ORDER BY created_at
            """),
            {"synced": False},
        ).fetchall()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Unsynced subscriber lookup failed: {e}") from e
    return [Subscriber.from_row(row) for row in rows]
