"""
Domain types for donors and the contribution ledger.

The three contribution variants live in separate tables with different column
names. ``LedgerTable`` describes each table once so the ledger queries can be
written generically; column names only ever come from these constants.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ContributionKind(str, Enum):
    """The three contribution variants."""
    DONATION = "donation"
    SPONSORSHIP = "sponsorship"
    EVENT_DONATION = "event_donation"


@dataclass(frozen=True)
class LedgerTable:
    """Column mapping for one contribution table."""
    kind: ContributionKind
    table: str
    email_column: str
    name_column: str
    amount_column: str
    status_column: Optional[str] = None
    payment_status_column: Optional[str] = None
    intent_column: Optional[str] = None
    receipt_url_column: Optional[str] = None
    local_receipt_column: Optional[str] = None
    extra_columns: tuple = ()

    @property
    def has_upstream_receipts(self) -> bool:
        """True when rows carry a Stripe payment intent and receipt URL."""
        return bool(self.intent_column and self.receipt_url_column and self.payment_status_column)

    @property
    def select_columns(self) -> str:
        """Column list selecting every field ``ContributionRecord`` knows about."""
        columns = [
            "id",
            "donor_id",
            f"{self.email_column} AS email",
            f"{self.name_column} AS name",
            f"{self.amount_column} AS amount",
            f"{self.status_column} AS status" if self.status_column else "NULL AS status",
            f"{self.payment_status_column} AS payment_status" if self.payment_status_column else "NULL AS payment_status",
            f"{self.intent_column} AS payment_intent_id" if self.intent_column else "NULL AS payment_intent_id",
            f"{self.receipt_url_column} AS receipt_url" if self.receipt_url_column else "NULL AS receipt_url",
            f"{self.local_receipt_column} AS local_receipt_number" if self.local_receipt_column else "NULL AS local_receipt_number",
            "created_at",
        ]
        columns.extend(self.extra_columns)
        return ", ".join(columns)


DONATIONS = LedgerTable(
    kind=ContributionKind.DONATION,
    table="donations",
    email_column="email",
    name_column="donor_name",
    amount_column="amount",
    extra_columns=("category",),
)

SPONSORSHIPS = LedgerTable(
    kind=ContributionKind.SPONSORSHIP,
    table="sponsorships",
    email_column="sponsor_email",
    name_column="sponsor_name",
    amount_column="monthly_amount",
    status_column="status",
    payment_status_column="payment_status",
    intent_column="stripe_payment_intent_id",
    receipt_url_column="stripe_receipt_url",
    local_receipt_column="local_receipt_number",
    extra_columns=("child_id",),
)

EVENT_DONATIONS = LedgerTable(
    kind=ContributionKind.EVENT_DONATION,
    table="event_donations",
    email_column="donor_email",
    name_column="donor_name",
    amount_column="amount",
    payment_status_column="payment_status",
    intent_column="stripe_payment_intent_id",
    receipt_url_column="stripe_receipt_url",
    local_receipt_column="local_receipt_number",
    extra_columns=("event_id",),
)

# Every variant, in the order linking processes them
LEDGER_TABLES = (DONATIONS, SPONSORSHIPS, EVENT_DONATIONS)

# Variants that store an upstream transaction id and receipt URL
RECEIPT_TABLES = tuple(t for t in LEDGER_TABLES if t.has_upstream_receipts)

# Variants that carry a locally generated receipt number
LOCAL_RECEIPT_TABLES = tuple(t for t in LEDGER_TABLES if t.local_receipt_column)

TABLES_BY_KIND = {t.kind: t for t in LEDGER_TABLES}


def _row_mapping(row: Any) -> Mapping[str, Any]:
    """Return a column -> value mapping for a SQLAlchemy row or a plain dict."""
    if hasattr(row, "_mapping"):
        return row._mapping
    return row


@dataclass
class Donor:
    """A known donor identity."""
    id: str
    email: str
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Any) -> "Donor":
        data = _row_mapping(row)
        return cls(
            id=data["id"],
            email=data["email"],
            full_name=data.get("full_name"),
            created_at=data.get("created_at"),
        )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


@dataclass
class ContributionRecord:
    """
    One row of the contribution ledger.

    ``donor_id`` is None while the record is unlinked. ``receipt_url`` is the
    provider-issued receipt; ``local_receipt_number`` is generated locally and
    unrelated to it.
    """
    id: str
    kind: ContributionKind
    amount: int = 0
    email: Optional[str] = None
    name: Optional[str] = None
    donor_id: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    payment_intent_id: Optional[str] = None
    receipt_url: Optional[str] = None
    local_receipt_number: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_linked(self) -> bool:
        return self.donor_id is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        created_at = self.created_at
        return {
            "id": self.id,
            "kind": self.kind.value,
            "amount": self.amount,
            "email": self.email,
            "name": self.name,
            "donor_id": self.donor_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_intent_id": self.payment_intent_id,
            "receipt_url": self.receipt_url,
            "local_receipt_number": self.local_receipt_number,
            "created_at": created_at.isoformat() if isinstance(created_at, datetime) else created_at,
        }


@dataclass
class Donation(ContributionRecord):
    """One-time donation."""
    category: Optional[str] = None


@dataclass
class Sponsorship(ContributionRecord):
    """Recurring monthly child sponsorship; ``amount`` is the monthly amount."""
    child_id: Optional[str] = None

    @property
    def monthly_amount(self) -> int:
        return self.amount


@dataclass
class EventDonation(ContributionRecord):
    """Donation made towards a specific event."""
    event_id: Optional[str] = None


_RECORD_CLASSES = {
    ContributionKind.DONATION: Donation,
    ContributionKind.SPONSORSHIP: Sponsorship,
    ContributionKind.EVENT_DONATION: EventDonation,
}


def record_from_row(table: LedgerTable, row: Any) -> ContributionRecord:
    """
    Build the typed record for a row selected with ``table.select_columns``.

    Amounts are coerced to int; a NULL amount counts as 0.
    """
    data = _row_mapping(row)
    record_cls = _RECORD_CLASSES[table.kind]
    extras = {column: data.get(column) for column in table.extra_columns}

    return record_cls(
        id=data["id"],
        kind=table.kind,
        amount=int(data.get("amount") or 0),
        email=data.get("email"),
        name=data.get("name"),
        donor_id=data.get("donor_id"),
        status=data.get("status"),
        payment_status=data.get("payment_status"),
        payment_intent_id=data.get("payment_intent_id"),
        receipt_url=data.get("receipt_url"),
        local_receipt_number=data.get("local_receipt_number"),
        created_at=data.get("created_at"),
        **extras,
    )


@dataclass
class RecordOutcome:
    """What happened to one record during a batch job."""
    record: ContributionRecord
    outcome: str
    detail: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record.id,
            "kind": self.record.kind.value,
            "name": self.record.name,
            "outcome": self.outcome,
            "detail": self.detail,
            "retryable": self.retryable,
        }
