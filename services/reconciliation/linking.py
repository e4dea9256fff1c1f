"""
Identity Linking Agent.

Associates unlinked contributions with a donor identity. Linking is monotonic
and idempotent: only rows whose donor_id is NULL are updated, so a second run
with the same inputs updates nothing and a linked row is never re-pointed at
another donor.

All variant updates for one invocation run in a single transaction; the
target donor is resolved inside that transaction before anything is written.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from services.common.log_config import log_job_outcomes

from . import ledger
from .directory import resolve_donor
from .matching import EmailMatcher
from .models import LEDGER_TABLES, ContributionKind, ContributionRecord, Donor, LedgerTable

logger = structlog.get_logger(__name__)


@dataclass
class LinkResult:
    """Records linked by one invocation, for operator review."""
    donor: Optional[Donor] = None
    linked: List[ContributionRecord] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def total_linked(self) -> int:
        return len(self.linked)

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def linked_of(self, kind: ContributionKind) -> List[ContributionRecord]:
        return [record for record in self.linked if record.kind == kind]

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(self.linked_of(kind)) for kind in ContributionKind}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "donor": {
                "id": self.donor.id,
                "email": self.donor.email,
                "full_name": self.donor.full_name,
            } if self.donor else None,
            "total_linked": self.total_linked,
            "counts": self.counts(),
            "linked": [record.to_dict() for record in self.linked],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
        }


def link_aliases(
    engine: Engine,
    candidate_emails: Sequence[str],
    matcher: EmailMatcher,
    tables: Sequence[LedgerTable] = LEDGER_TABLES,
) -> LinkResult:
    """
    Link every unlinked record matching ``matcher`` to the donor owning one of
    ``candidate_emails``.

    Args:
        engine: SQLAlchemy engine for the ledger database
        candidate_emails: Addresses that identify the target donor
        matcher: Which contact emails to link
        tables: Contribution variants to process

    Returns:
        LinkResult listing every updated record

    Raises:
        DonorNotFound: If no candidate email belongs to a donor (no writes)
        PersistenceError: If an update fails (the transaction is rolled back)
    """
    result = LinkResult(started_at=datetime.now(timezone.utc))

    logger.info(
        "Starting identity linking",
        candidate_emails=list(candidate_emails),
        matcher=matcher.describe(),
    )

    with engine.begin() as conn:
        donor = resolve_donor(conn, candidate_emails)
        result.donor = donor
        logger.info("Resolved target donor", donor_id=donor.id, donor_email=donor.email)

        for table in tables:
            linked = ledger.link_matching(conn, table, donor.id, matcher)
            result.linked.extend(linked)

    result.finished_at = datetime.now(timezone.utc)
    log_job_outcomes(
        logger,
        f"link_{donor.id}_{int(result.started_at.timestamp())}",
        result.counts(),
        duration_ms=result.duration_seconds * 1000,
    )
    return result


def link_all_by_email(engine: Engine, tables: Sequence[LedgerTable] = LEDGER_TABLES) -> LinkResult:
    """
    Link every unlinked record to the donor whose email equals its contact email.

    Returns:
        LinkResult (without a single target donor) listing every updated record
    """
    result = LinkResult(started_at=datetime.now(timezone.utc))
    logger.info("Starting exact-email linking for all donors")

    with engine.begin() as conn:
        for table in tables:
            result.linked.extend(ledger.link_by_donor_email(conn, table))

    result.finished_at = datetime.now(timezone.utc)
    log_job_outcomes(
        logger,
        f"link_all_{int(result.started_at.timestamp())}",
        result.counts(),
        duration_ms=result.duration_seconds * 1000,
    )
    return result
