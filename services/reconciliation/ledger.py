"""
Contribution Ledger access.

Every query is a parameterized ``text()`` statement built from the fixed
``LedgerTable`` descriptors. Writes follow two rules:

- ``donor_id`` is only ever set where it is currently NULL
- receipt URLs and local receipt numbers are only ever set where NULL

so re-running any job, or running two copies at once, converges instead of
overwriting.
"""

import time
from contextlib import contextmanager
from typing import Iterator, List

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from services.common.errors import PersistenceError
from services.common.log_config import log_ledger_write

from .matching import EmailMatcher
from .models import ContributionRecord, LedgerTable, record_from_row

logger = structlog.get_logger(__name__)


@contextmanager
def _translate_errors(operation: str, table: LedgerTable) -> Iterator[None]:
    """Re-raise SQLAlchemy failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(
            "Ledger operation failed",
            operation=operation,
            table=table.table,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise PersistenceError(f"{operation} on {table.table} failed: {e}") from e


def list_for_donor(conn: Connection, table: LedgerTable, donor_id: str) -> List[ContributionRecord]:
    """All records of one variant owned by ``donor_id``, newest first."""
    with _translate_errors("SELECT", table):
        rows = conn.execute(
            text(f"""
                SELECT {table.select_columns}
                FROM {table.table}
                WHERE donor_id = :donor_id
                ORDER BY created_at DESC
            """),
            {"donor_id": donor_id},
        ).fetchall()
    return [record_from_row(table, row) for row in rows]


def link_matching(
    conn: Connection,
    table: LedgerTable,
    donor_id: str,
    matcher: EmailMatcher,
) -> List[ContributionRecord]:
    """
    Link every unlinked record whose contact email satisfies ``matcher``.

    Rows that already carry a donor_id are never touched, whichever donor
    they point at.

    Returns:
        The records that were updated (with their new donor_id)
    """
    predicate, params, binds = matcher.to_sql(table.email_column)
    statement = text(f"""
        UPDATE {table.table}
        SET donor_id = :donor_id
        WHERE donor_id IS NULL
          AND {table.email_column} IS NOT NULL
          AND {predicate}
        RETURNING {table.select_columns}
    """)
    if binds:
        statement = statement.bindparams(*binds)

    started = time.monotonic()
    with _translate_errors("UPDATE", table):
        rows = conn.execute(statement, {"donor_id": donor_id, **params}).fetchall()

    log_ledger_write(
        logger,
        table.table,
        len(rows),
        duration_ms=(time.monotonic() - started) * 1000,
        donor_id=donor_id,
    )
    return [record_from_row(table, row) for row in rows]


def link_by_donor_email(conn: Connection, table: LedgerTable) -> List[ContributionRecord]:
    """
    Link every unlinked record to the donor whose email equals its contact email.

    Returns:
        The records that were updated
    """
    column = table.email_column
    statement = text(f"""
        UPDATE {table.table}
        SET donor_id = (
            SELECT donors.id FROM donors WHERE donors.email = {table.table}.{column}
        )
        WHERE donor_id IS NULL
          AND {column} IS NOT NULL
          AND EXISTS (
            SELECT 1 FROM donors WHERE donors.email = {table.table}.{column}
          )
        RETURNING {table.select_columns}
    """)

    started = time.monotonic()
    with _translate_errors("UPDATE", table):
        rows = conn.execute(statement).fetchall()

    log_ledger_write(
        logger,
        table.table,
        len(rows),
        duration_ms=(time.monotonic() - started) * 1000,
    )
    return [record_from_row(table, row) for row in rows]


def select_missing_receipts(
    conn: Connection,
    table: LedgerTable,
    settled_status: str = "completed",
) -> List[ContributionRecord]:
    """
    Records with an upstream payment intent, a settled payment and no receipt URL.

    Raises:
        ValueError: If the variant does not store upstream receipts
    """
    if not table.has_upstream_receipts:
        raise ValueError(f"{table.table} does not store upstream receipts")

    with _translate_errors("SELECT", table):
        rows = conn.execute(
            text(f"""
                SELECT {table.select_columns}
                FROM {table.table}
                WHERE {table.intent_column} IS NOT NULL
                  AND {table.receipt_url_column} IS NULL
                  AND {table.payment_status_column} = :settled_status
                ORDER BY created_at
            """),
            {"settled_status": settled_status},
        ).fetchall()
    return [record_from_row(table, row) for row in rows]


def set_receipt_url(conn: Connection, table: LedgerTable, record_id: str, receipt_url: str) -> bool:
    """
    Store a receipt URL if the record still has none.

    Returns:
        True if this call wrote the URL, False if one was already present
    """
    with _translate_errors("UPDATE", table):
        row = conn.execute(
            text(f"""
                UPDATE {table.table}
                SET {table.receipt_url_column} = :receipt_url
                WHERE id = :id
                  AND {table.receipt_url_column} IS NULL
                RETURNING id
            """),
            {"id": record_id, "receipt_url": receipt_url},
        ).fetchone()
    return row is not None


def select_missing_local_receipts(conn: Connection, table: LedgerTable) -> List[ContributionRecord]:
    """Records of a variant that have no locally generated receipt number."""
    if not table.local_receipt_column:
        raise ValueError(f"{table.table} has no local receipt number column")

    with _translate_errors("SELECT", table):
        rows = conn.execute(text(f"""
            SELECT {table.select_columns}
            FROM {table.table}
            WHERE {table.local_receipt_column} IS NULL
            ORDER BY created_at
        """)).fetchall()
    return [record_from_row(table, row) for row in rows]


def set_local_receipt_number(conn: Connection, table: LedgerTable, record_id: str, number: str) -> bool:
    """
    Store a local receipt number if the record still has none.

    Returns:
        True if this call wrote the number, False if one was already present
    """
    with _translate_errors("UPDATE", table):
        row = conn.execute(
            text(f"""
                UPDATE {table.table}
                SET {table.local_receipt_column} = :number
                WHERE id = :id
                  AND {table.local_receipt_column} IS NULL
                RETURNING id
            """),
            {"id": record_id, "number": number},
        ).fetchone()
    return row is not None
