"""
Newsletter subscription and MailerLite sync.

Storing the subscriber is the critical path; the MailerLite sync that
follows may fail without undoing it. Unsynced subscribers are picked up by
``retry_unsynced``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.engine import Engine

from services.common.errors import AlreadySubscribed, ConfigurationError
from services.common.log_config import log_job_outcomes

from . import store
from .client import MailerLiteClient
from .store import Subscriber

logger = structlog.get_logger(__name__)

SYNC_FAILED = "Failed to sync to MailerLite"
NOT_CONFIGURED = "MailerLite not configured"


@dataclass
class SubscribeResult:
    """A stored subscriber and whether it reached MailerLite."""
    subscriber: Subscriber
    synced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscriber_id": self.subscriber.id,
            "email": self.subscriber.email,
            "source": self.subscriber.source,
            "synced": self.synced,
            "mailerlite_id": self.subscriber.mailerlite_id,
        }


@dataclass
class RetryResult:
    """Outcome of one retry pass over unsynced subscribers."""
    synced: List[Subscriber] = field(default_factory=list)
    failed: List[Subscriber] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def attempted(self) -> int:
        return len(self.synced) + len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "attempted": self.attempted,
            "synced": [s.email for s in self.synced],
            "failed": [s.email for s in self.failed],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def _sync_one(
    engine: Engine,
    client: MailerLiteClient,
    subscriber: Subscriber,
    group_id: Optional[str],
    record_failure: bool = True,
) -> bool:
    mailerlite_id = client.create_or_update(subscriber.email, group_id=group_id)

    if mailerlite_id is None:
        if record_failure:
            with engine.begin() as conn:
                store.update_sync_status(conn, subscriber.id, None, False, SYNC_FAILED)
            subscriber.mailerlite_error = SYNC_FAILED
        return False

    with engine.begin() as conn:
        store.update_sync_status(conn, subscriber.id, mailerlite_id, True)
    subscriber.mailerlite_id = mailerlite_id
    subscriber.mailerlite_synced = True
    subscriber.mailerlite_error = None
    return True


def subscribe(
    engine: Engine,
    client: Optional[MailerLiteClient],
    email: str,
    source: str = "footer",
    group_id: Optional[str] = None,
) -> SubscribeResult:
    """
    Store a new subscriber, then try to sync it to MailerLite.

    Raises:
        AlreadySubscribed: If the email is already stored
        PersistenceError: If the subscriber cannot be stored
    """
    with engine.begin() as conn:
        if store.get_subscriber(conn, email) is not None:
            raise AlreadySubscribed(email)
        subscriber = store.create_subscriber(conn, email, source)

    if client is None:
        with engine.begin() as conn:
            store.update_sync_status(conn, subscriber.id, None, False, NOT_CONFIGURED)
        subscriber.mailerlite_error = NOT_CONFIGURED
        logger.info("Subscriber stored locally only", email=email)
        return SubscribeResult(subscriber=subscriber, synced=False)

    synced = _sync_one(engine, client, subscriber, group_id)
    if not synced:
        logger.info("MailerLite sync failed, will retry later", email=email)
    return SubscribeResult(subscriber=subscriber, synced=synced)


def retry_unsynced(
    engine: Engine,
    client: Optional[MailerLiteClient],
    group_id: Optional[str] = None,
) -> RetryResult:
    """
    Retry the MailerLite sync of every unsynced subscriber.

    Raises:
        ConfigurationError: If no MailerLite client is available
        PersistenceError: If unsynced subscribers cannot be listed
    """
    if client is None:
        raise ConfigurationError("MAILERLITE_API_KEY is not configured")

    result = RetryResult(started_at=datetime.now(timezone.utc))

    with engine.connect() as conn:
        unsynced = store.list_unsynced(conn)

    if unsynced:
        logger.info("Retrying failed MailerLite syncs", count=len(unsynced))

    for subscriber in unsynced:
        if _sync_one(engine, client, subscriber, group_id, record_failure=False):
            result.synced.append(subscriber)
        else:
            logger.info("Retry failed", email=subscriber.email)
            result.failed.append(subscriber)

    result.finished_at = datetime.now(timezone.utc)
    log_job_outcomes(
        logger,
        f"newsletter_retry_{int(result.started_at.timestamp())}",
        {"synced": len(result.synced)},
        failed=len(result.failed),
    )
    return result
