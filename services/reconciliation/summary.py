"""
Summary Reporter: per-donor contribution totals.

Read-only. Totals are integer sums of whole currency units:

- donation_total: every Donation row, whatever its status
- event_donation_total: every EventDonation row, whatever its status
- active_sponsorship_total: monthly amounts of Sponsorships with status "active"
- grand_total: the sum of the three

Donations are counted regardless of status while sponsorships are filtered
to active ones; that asymmetry is kept as the dashboards have always shown it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from sqlalchemy.engine import Engine

from services.common.errors import DonorNotFound

from . import ledger
from .directory import get_donor_by_email, list_linked_donors
from .models import DONATIONS, EVENT_DONATIONS, SPONSORSHIPS, ContributionRecord, Donor

ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class DonorSummary:
    """Contribution totals for one donor."""
    donor: Donor
    donation_count: int = 0
    donation_total: int = 0
    sponsorship_count: int = 0
    active_sponsorship_count: int = 0
    active_sponsorship_total: int = 0
    event_donation_count: int = 0
    event_donation_total: int = 0

    @property
    def one_time_total(self) -> int:
        """Donations plus event donations."""
        return self.donation_total + self.event_donation_total

    @property
    def grand_total(self) -> int:
        return self.donation_total + self.active_sponsorship_total + self.event_donation_total

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "donor_id": self.donor.id,
            "email": self.donor.email,
            "full_name": self.donor.full_name,
            "donation_count": self.donation_count,
            "donation_total": self.donation_total,
            "sponsorship_count": self.sponsorship_count,
            "active_sponsorship_count": self.active_sponsorship_count,
            "active_sponsorship_total": self.active_sponsorship_total,
            "event_donation_count": self.event_donation_count,
            "event_donation_total": self.event_donation_total,
            "one_time_total": self.one_time_total,
            "grand_total": self.grand_total,
        }


def summarize(
    donor: Donor,
    donations: Sequence[ContributionRecord],
    sponsorships: Sequence[ContributionRecord],
    event_donations: Sequence[ContributionRecord],
    active_status: str = ACTIVE_STATUS,
) -> DonorSummary:
    """Aggregate a donor's records into totals. Pure function."""
    active = [s for s in sponsorships if s.status == active_status]
    return DonorSummary(
        donor=donor,
        donation_count=len(donations),
        donation_total=sum(int(d.amount) for d in donations),
        sponsorship_count=len(sponsorships),
        active_sponsorship_count=len(active),
        active_sponsorship_total=sum(int(s.amount) for s in active),
        event_donation_count=len(event_donations),
        event_donation_total=sum(int(e.amount) for e in event_donations),
    )


@dataclass
class DonorLedger:
    """A donor with every record they own, newest first per variant."""
    donor: Donor
    donations: List[ContributionRecord] = field(default_factory=list)
    sponsorships: List[ContributionRecord] = field(default_factory=list)
    event_donations: List[ContributionRecord] = field(default_factory=list)

    def summary(self, active_status: str = ACTIVE_STATUS) -> DonorSummary:
        return summarize(self.donor, self.donations, self.sponsorships, self.event_donations, active_status)


def load_donor_ledger(engine: Engine, email: str) -> DonorLedger:
    """
    Load a donor and all of their linked records.

    Raises:
        DonorNotFound: If no donor has this email
    """
    with engine.connect() as conn:
        donor = get_donor_by_email(conn, email)
        if donor is None:
            raise DonorNotFound([email])
        return DonorLedger(
            donor=donor,
            donations=ledger.list_for_donor(conn, DONATIONS, donor.id),
            sponsorships=ledger.list_for_donor(conn, SPONSORSHIPS, donor.id),
            event_donations=ledger.list_for_donor(conn, EVENT_DONATIONS, donor.id),
        )


def build_donor_summary(engine: Engine, email: str, active_status: str = ACTIVE_STATUS) -> DonorSummary:
    """Summary for the donor owning ``email``."""
    return load_donor_ledger(engine, email).summary(active_status)


def summarize_linked_donors(engine: Engine, active_status: str = ACTIVE_STATUS) -> List[DonorSummary]:
    """Summaries for every donor with at least one linked record, newest donor first."""
    summaries = []
    with engine.connect() as conn:
        for donor in list_linked_donors(conn):
            summaries.append(summarize(
                donor,
                ledger.list_for_donor(conn, DONATIONS, donor.id),
                ledger.list_for_donor(conn, SPONSORSHIPS, donor.id),
                ledger.list_for_donor(conn, EVENT_DONATIONS, donor.id),
                active_status,
            ))
    return summaries


@dataclass(frozen=True)
class ReceiptCoverage:
    """Which of a donor's active sponsorships have a Stripe receipt."""
    donor: Donor
    sponsorships: tuple = ()

    @property
    def with_receipts(self) -> int:
        return sum(1 for s in self.sponsorships if s.receipt_url)

    @property
    def total(self) -> int:
        return len(self.sponsorships)

    @property
    def missing(self) -> List[ContributionRecord]:
        return [s for s in self.sponsorships if not s.receipt_url]


def receipt_coverage(engine: Engine, email: str, active_status: str = ACTIVE_STATUS) -> ReceiptCoverage:
    """
    Receipt coverage of a donor's active sponsorships.

    Raises:
        DonorNotFound: If no donor has this email
    """
    donor_ledger = load_donor_ledger(engine, email)
    active = tuple(s for s in donor_ledger.sponsorships if s.status == active_status)
    return ReceiptCoverage(donor=donor_ledger.donor, sponsorships=active)
