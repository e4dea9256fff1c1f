"""
Command line entry points for the reconciliation jobs.

Every command takes email addresses as positional arguments only; the
database, Stripe key and linking rules come from the environment.

Example: python -m services.reconciliation link-donor ali@gmail.com ali.khan@yahoo.com
"""

import sys
from typing import Callable, Dict, Optional, Sequence

from services.common.cli import JobOutcome, create_parser, dispatch, emit, run_job
from services.common.db import engine_scope
from services.common.helpers.email import clean_email_list

from . import __version__
from .backfill import backfill_receipts
from .linking import link_aliases, link_all_by_email
from .matching import EmailMatcher
from .payments import StripeReceiptProvider
from .receipt_numbers import generate_receipt_numbers
from .report import (
    render_backfill,
    render_donor_summary,
    render_link_all,
    render_link_result,
    render_receipt_coverage,
    render_receipt_numbers,
)
from .settings import ReconciliationSettings, settings
from .summary import build_donor_summary, receipt_coverage, summarize_linked_donors


def _open_engine(config: ReconciliationSettings):
    return engine_scope(config.database_url, application_name=config.db_application_name)


def _run(job: str, args, action: Callable[[ReconciliationSettings], JobOutcome]) -> int:
    return run_job(job, args, action, settings, version=__version__)


def link_donor_main(argv: Optional[Sequence[str]] = None) -> int:
    """Link unlinked contributions to the donor owning one of the given emails."""
    parser = create_parser(
        "link-donor",
        "Link unlinked donations, sponsorships and event donations to a donor.",
        __version__,
        epilog="""
The first EMAIL that belongs to a donor selects the target. Records whose
contact email is one of the given addresses or LINK_EXTRA_ALIASES, or matches
LINK_PATTERN, are linked if they have no donor yet.

Examples:
  link-donor ali@gmail.com
  link-donor ibrahimsamad507@gmail.com ibrahimsamad@yahoo.com
        """,
    )
    parser.add_argument("emails", nargs="+", metavar="EMAIL", help="Addresses belonging to the donor")
    args = parser.parse_args(argv)

    def action(config: ReconciliationSettings) -> JobOutcome:
        emails = clean_email_list(args.emails)
        matcher = EmailMatcher.build(
            aliases=[*emails, *config.extra_aliases()],
            pattern=config.link_pattern,
            pattern_mode=config.link_pattern_mode,
        )
        print(f"Matching {matcher.describe()}")

        with _open_engine(config) as engine:
            result = link_aliases(engine, emails, matcher)

        emit(render_link_result(result, config.currency_label))
        return result.to_dict(), 0

    return _run("link_donor", args, action)


def link_all_donors_main(argv: Optional[Sequence[str]] = None) -> int:
    """Link every unlinked contribution to the donor with the same email."""
    parser = create_parser(
        "link-all-donors",
        "Link every unlinked contribution whose contact email equals a donor's email.",
        __version__,
    )
    args = parser.parse_args(argv)

    def action(config: ReconciliationSettings) -> JobOutcome:
        with _open_engine(config) as engine:
            result = link_all_by_email(engine)
            summaries = summarize_linked_donors(engine, config.active_sponsorship_status)

        emit(render_link_all(result, summaries, config.currency_label))
        payload = result.to_dict()
        payload["donors"] = [summary.to_dict() for summary in summaries]
        return payload, 0

    return _run("link_all_donors", args, action)


def backfill_receipts_main(argv: Optional[Sequence[str]] = None) -> int:
    """Fetch missing Stripe receipt URLs for settled payments."""
    parser = create_parser(
        "backfill-receipts",
        "Fill in missing Stripe receipt URLs for settled sponsorships and event donations.",
        __version__,
    )
    args = parser.parse_args(argv)

    def action(config: ReconciliationSettings) -> JobOutcome:
        provider = StripeReceiptProvider(config.stripe_secret_key, config.stripe_api_version)

        with _open_engine(config) as engine:
            result = backfill_receipts(engine, provider, settled_status=config.settled_payment_status)

        emit(render_backfill(result))
        return result.to_dict(), result.errors

    return _run("backfill_receipts", args, action)


def donor_summary_main(argv: Optional[Sequence[str]] = None) -> int:
    """Print a donor's contribution totals."""
    parser = create_parser(
        "donor-summary",
        "Show a donor's donations, sponsorships and totals.",
        __version__,
    )
    parser.add_argument("email", metavar="EMAIL", help="Donor email")
    args = parser.parse_args(argv)

    def action(config: ReconciliationSettings) -> JobOutcome:
        email = clean_email_list([args.email])[0]
        with _open_engine(config) as engine:
            summary = build_donor_summary(engine, email, config.active_sponsorship_status)

        emit(render_donor_summary(summary, config.currency_label))
        return summary.to_dict(), 0

    return _run("donor_summary", args, action)


def check_receipts_main(argv: Optional[Sequence[str]] = None) -> int:
    """Show which of a donor's active sponsorships have a Stripe receipt."""
    parser = create_parser(
        "check-receipts",
        "Check Stripe receipt coverage of a donor's active sponsorships.",
        __version__,
    )
    parser.add_argument("email", metavar="EMAIL", help="Donor email")
    args = parser.parse_args(argv)

    def action(config: ReconciliationSettings) -> JobOutcome:
        email = clean_email_list([args.email])[0]
        with _open_engine(config) as engine:
            coverage = receipt_coverage(engine, email, config.active_sponsorship_status)

        emit(render_receipt_coverage(coverage, config.currency_label))
        payload = {
            "donor_id": coverage.donor.id,
            "with_receipts": coverage.with_receipts,
            "total": coverage.total,
            "missing": [record.id for record in coverage.missing],
        }
        return payload, 0

    return _run("check_receipts", args, action)


def generate_receipt_numbers_main(argv: Optional[Sequence[str]] = None) -> int:
    """Assign local receipt numbers to records that have none."""
    parser = create_parser(
        "generate-receipt-numbers",
        "Assign local receipt numbers to sponsorships and event donations missing one.",
        __version__,
    )
    args = parser.parse_args(argv)

    def action(config: ReconciliationSettings) -> JobOutcome:
        with _open_engine(config) as engine:
            result = generate_receipt_numbers(engine)

        emit(render_receipt_numbers(result))
        return result.to_dict(), result.errors

    return _run("generate_receipt_numbers", args, action)


COMMANDS: Dict[str, Callable[[Optional[Sequence[str]]], int]] = {
    "link-donor": link_donor_main,
    "link-all-donors": link_all_donors_main,
    "backfill-receipts": backfill_receipts_main,
    "donor-summary": donor_summary_main,
    "check-receipts": check_receipts_main,
    "generate-receipt-numbers": generate_receipt_numbers_main,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Dispatch ``python -m services.reconciliation <command> [args]``."""
    return dispatch("python -m services.reconciliation", "Donor reconciliation jobs", COMMANDS, argv)


if __name__ == "__main__":
    sys.exit(main())
