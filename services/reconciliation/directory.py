"""
Donor Directory: resolve email addresses to donor identities.

Emails are compared exactly as stored. Aliases are not deduplicated here;
callers pass the candidate addresses they know belong to one person.
"""

from typing import Any, List, Mapping, Optional, Sequence

import structlog
from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from services.common.errors import DonorNotFound, PersistenceError

from .models import LEDGER_TABLES, Donor

logger = structlog.get_logger(__name__)

_DONOR_COLUMNS = "id, email, full_name, created_at"


def _fetch(
    conn: Connection,
    operation: str,
    query: TextClause,
    params: Optional[Mapping[str, Any]] = None,
) -> List[Row]:
    """Run a donors query, re-raising SQLAlchemy failures as PersistenceError."""
    try:
        return conn.execute(query, params or {}).fetchall()
    except SQLAlchemyError as e:
        logger.error(
            "Donor lookup failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise PersistenceError(f"{operation} on donors failed: {e}") from e


def get_donor_by_email(conn: Connection, email: str) -> Optional[Donor]:
    """Return the donor whose email equals ``email``, or None."""
    rows = _fetch(
        conn,
        "get_donor_by_email",
        text(f"SELECT {_DONOR_COLUMNS} FROM donors WHERE email = :email"),
        {"email": email},
    )
    return Donor.from_row(rows[0]) if rows else None


def get_donor(conn: Connection, donor_id: str) -> Optional[Donor]:
    """Return the donor with primary key ``donor_id``, or None."""
    rows = _fetch(
        conn,
        "get_donor",
        text(f"SELECT {_DONOR_COLUMNS} FROM donors WHERE id = :donor_id"),
        {"donor_id": donor_id},
    )
    return Donor.from_row(rows[0]) if rows else None


def resolve_donor(conn: Connection, candidate_emails: Sequence[str]) -> Donor:
    """
    Resolve the target donor from one or more known addresses.

    Candidates are tried in the order given, so the first address that
    belongs to a donor wins when several do.

    Args:
        conn: Active database connection
        candidate_emails: Addresses known to belong to the donor

    Returns:
        The resolved Donor

    Raises:
        ValueError: If no candidate emails are given
        DonorNotFound: If none of the candidates belongs to a donor
        PersistenceError: If the lookup query fails
    """
    if not candidate_emails:
        raise ValueError("At least one candidate email is required")

    query = text(
        f"SELECT {_DONOR_COLUMNS} FROM donors WHERE email IN :emails"
    ).bindparams(bindparam("emails", expanding=True))
    rows = _fetch(conn, "resolve_donor", query, {"emails": list(candidate_emails)})

    by_email = {}
    for row in rows:
        donor = Donor.from_row(row)
        by_email[donor.email] = donor

    for email in candidate_emails:
        if email in by_email:
            return by_email[email]

    raise DonorNotFound(candidate_emails)


def list_linked_donors(conn: Connection) -> List[Donor]:
    """Donors that own at least one linked contribution, newest first."""
    exists_clauses = " OR ".join(
        f"EXISTS (SELECT 1 FROM {table.table} c WHERE c.donor_id = donors.id)"
        for table in LEDGER_TABLES
    )
    rows = _fetch(conn, "list_linked_donors", text(f"""
        SELECT {_DONOR_COLUMNS}
        FROM donors
        WHERE {exists_clauses}
        ORDER BY created_at DESC
    """))
    return [Donor.from_row(row) for row in rows]
