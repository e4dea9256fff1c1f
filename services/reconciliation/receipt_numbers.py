"""
Local receipt number generation.

Fills in ``local_receipt_number`` for contributions created before numbers
were assigned at intake. Formats:

- Sponsorships: ``AGH-YYYYMMDD-NNNN`` (date of creation, 4 random digits)
- Event donations: ``EVT-<epoch milliseconds>-<8 hex chars>``

Writes are conditional on the column still being NULL, so existing numbers
are never replaced.
"""

import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import structlog
from sqlalchemy.engine import Engine

from services.common.errors import PersistenceError
from services.common.log_config import log_job_outcomes

from . import ledger
from .models import LOCAL_RECEIPT_TABLES, ContributionKind, ContributionRecord, LedgerTable, RecordOutcome

logger = structlog.get_logger(__name__)


def _as_datetime(value: Union[datetime, str, None], default: datetime) -> datetime:
    """created_at may arrive as a datetime or an ISO string depending on the driver."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return default
    return default


def sponsorship_receipt_number(created_at: datetime, rng: Optional[random.Random] = None) -> str:
    """
    Build a sponsorship receipt number.

    Examples:
        >>> sponsorship_receipt_number(datetime(2025, 3, 7))[:13]
        'AGH-20250307-'
    """
    rng = rng or random
    return f"AGH-{created_at:%Y%m%d}-{rng.randrange(10000):04d}"


def event_receipt_number(now: datetime, token: Optional[str] = None) -> str:
    """
    Build an event donation receipt number.

    Examples:
        >>> event_receipt_number(datetime(2025, 1, 1), token="1a2b3c4d")[-9:]
        '-1a2b3c4d'
    """
    token = token or uuid.uuid4().hex[:8]
    return f"EVT-{int(now.timestamp() * 1000)}-{token}"


def make_receipt_number(record: ContributionRecord, now: datetime) -> str:
    """Receipt number for a record, in its variant's format."""
    if record.kind == ContributionKind.SPONSORSHIP:
        return sponsorship_receipt_number(_as_datetime(record.created_at, now))
    if record.kind == ContributionKind.EVENT_DONATION:
        return event_receipt_number(now)
    raise ValueError(f"{record.kind.value} records carry no local receipt number")


@dataclass
class ReceiptNumberResult:
    """Result of a receipt numbering run."""
    outcomes: List[RecordOutcome] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def generated(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == "generated")

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == "already_numbered")

    @property
    def errors(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == "error")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "generated": self.generated,
            "already_numbered": self.skipped,
            "errors": self.errors,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def generate_receipt_numbers(
    engine: Engine,
    tables: Sequence[LedgerTable] = LOCAL_RECEIPT_TABLES,
    clock: Callable[[], datetime] = datetime.now,
) -> ReceiptNumberResult:
    """
    Assign local receipt numbers to every record that lacks one.

    Raises:
        PersistenceError: If candidates cannot be enumerated
    """
    result = ReceiptNumberResult(started_at=datetime.now(timezone.utc))

    with engine.connect() as conn:
        candidates = [
            (table, record)
            for table in tables
            for record in ledger.select_missing_local_receipts(conn, table)
        ]

    for table, record in candidates:
        number = make_receipt_number(record, clock())
        try:
            with engine.begin() as conn:
                written = ledger.set_local_receipt_number(conn, table, record.id, number)
        except PersistenceError as e:
            logger.error("Receipt number write failed", record_id=record.id, table=table.table, error=str(e))
            result.outcomes.append(RecordOutcome(record, "error", detail=str(e), retryable=e.retryable))
            continue

        if written:
            record.local_receipt_number = number
            result.outcomes.append(RecordOutcome(record, "generated", detail=number))
        else:
            result.outcomes.append(RecordOutcome(record, "already_numbered"))

    result.finished_at = datetime.now(timezone.utc)
    log_job_outcomes(
        logger,
        f"receipt_numbers_{int(result.started_at.timestamp())}",
        {"generated": result.generated, "already_numbered": result.skipped},
        failed=result.errors,
    )
    return result
