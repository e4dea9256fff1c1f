"""
Receipt Backfill Agent.

Finds settled contributions that have a Stripe payment intent but no stored
receipt URL, asks Stripe for the receipt, and writes it back.

Processing is sequential: one provider call and one conditional write per
record. A failure on one record is recorded and the batch moves on; only
failing to enumerate candidates aborts the run.

Per-record outcomes:
- "updated": receipt URL written
- "not_ready": Stripe has no receipt yet (payment settling), try again later
- "already_filled": another run wrote the URL between selection and write
- "error": upstream or persistence failure
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

import structlog
from sqlalchemy.engine import Engine

from services.common.errors import PersistenceError, ReceiptNotReady, UpstreamUnavailable
from services.common.log_config import log_job_outcomes

from . import ledger
from .models import RECEIPT_TABLES, ContributionRecord, LedgerTable, RecordOutcome

logger = structlog.get_logger(__name__)

UPDATED = "updated"
NOT_READY = "not_ready"
ALREADY_FILLED = "already_filled"
ERROR = "error"


class ReceiptProvider(Protocol):
    def fetch_receipt_url(self, payment_intent_id: str) -> str:
        ...


@dataclass
class BackfillResult:
    """Result of one backfill run with per-record outcomes."""
    outcomes: List[RecordOutcome] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def _count(self, outcome: str) -> int:
        return sum(1 for o in self.outcomes if o.outcome == outcome)

    @property
    def candidates(self) -> int:
        return len(self.outcomes)

    @property
    def updated(self) -> int:
        return self._count(UPDATED)

    @property
    def not_ready(self) -> int:
        return self._count(NOT_READY)

    @property
    def already_filled(self) -> int:
        return self._count(ALREADY_FILLED)

    @property
    def errors(self) -> int:
        return self._count(ERROR)

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "candidates": self.candidates,
            "updated": self.updated,
            "not_ready": self.not_ready,
            "already_filled": self.already_filled,
            "errors": self.errors,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
        }


def _backfill_record(
    engine: Engine,
    provider: ReceiptProvider,
    table: LedgerTable,
    record: ContributionRecord,
) -> RecordOutcome:
    """Fetch and store the receipt for one record. Never raises."""
    log = logger.bind(
        record_id=record.id,
        table=table.table,
        payment_intent_id=record.payment_intent_id,
    )

    try:
        receipt_url = provider.fetch_receipt_url(record.payment_intent_id)
    except ReceiptNotReady as e:
        log.info("Receipt not available yet", reason=e.reason)
        return RecordOutcome(record, NOT_READY, detail=e.reason, retryable=True)
    except UpstreamUnavailable as e:
        log.error("Receipt lookup failed", error=str(e), retryable=e.retryable)
        return RecordOutcome(record, ERROR, detail=str(e), retryable=e.retryable)
    except Exception as e:
        log.error("Receipt lookup raised unexpectedly", error=str(e), error_type=type(e).__name__)
        return RecordOutcome(record, ERROR, detail=f"{type(e).__name__}: {e}")

    try:
        with engine.begin() as conn:
            written = ledger.set_receipt_url(conn, table, record.id, receipt_url)
    except PersistenceError as e:
        log.error("Receipt write failed", error=str(e))
        return RecordOutcome(record, ERROR, detail=str(e), retryable=e.retryable)

    if not written:
        log.info("Receipt already stored by another run")
        return RecordOutcome(record, ALREADY_FILLED)

    record.receipt_url = receipt_url
    log.info("Receipt URL stored")
    return RecordOutcome(record, UPDATED, detail=receipt_url)


def backfill_receipts(
    engine: Engine,
    provider: ReceiptProvider,
    tables: Sequence[LedgerTable] = RECEIPT_TABLES,
    settled_status: str = "completed",
) -> BackfillResult:
    """
    Backfill missing Stripe receipt URLs.

    Args:
        engine: SQLAlchemy engine for the ledger database
        provider: Receipt source (``StripeReceiptProvider`` in production)
        tables: Variants to process; each must store upstream receipts
        settled_status: payment_status value marking a captured payment

    Returns:
        BackfillResult with one outcome per candidate record

    Raises:
        PersistenceError: If candidates cannot be enumerated
    """
    result = BackfillResult(started_at=datetime.now(timezone.utc))

    with engine.connect() as conn:
        candidates = [
            (table, record)
            for table in tables
            for record in ledger.select_missing_receipts(conn, table, settled_status)
        ]

    logger.info("Found records missing receipt URLs", candidates=len(candidates))

    for table, record in candidates:
        result.outcomes.append(_backfill_record(engine, provider, table, record))

    result.finished_at = datetime.now(timezone.utc)
    log_job_outcomes(
        logger,
        f"backfill_{int(result.started_at.timestamp())}",
        {"updated": result.updated, "already_filled": result.already_filled, "not_ready": result.not_ready},
        failed=result.errors,
        duration_ms=result.duration_seconds * 1000,
    )
    return result
