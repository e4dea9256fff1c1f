"""
Console output for the reconciliation jobs.

Each ``render_*`` function returns the lines printed to stdout after a job.
"""

from typing import List, Sequence

from services.common.helpers.money import DEFAULT_CURRENCY, format_amount, format_compact, format_monthly

from .backfill import BackfillResult
from .linking import LinkResult
from .models import ContributionKind, ContributionRecord
from .receipt_numbers import ReceiptNumberResult
from .summary import DonorSummary, ReceiptCoverage

_KIND_LABELS = {
    ContributionKind.DONATION: "Donations",
    ContributionKind.SPONSORSHIP: "Sponsorships",
    ContributionKind.EVENT_DONATION: "Event donations",
}


def _record_line(record: ContributionRecord, currency: str) -> str:
    if record.kind == ContributionKind.SPONSORSHIP:
        amount = format_monthly(record.amount, currency)
    else:
        amount = format_amount(record.amount, currency)
    who = record.name or "(no name)"
    return f"  - {who} <{record.email}>: {amount}"


def render_link_result(result: LinkResult, currency: str = DEFAULT_CURRENCY) -> List[str]:
    """Lines describing one link-donor run."""
    lines = []
    if result.donor:
        lines.append(f"Donor: {result.donor.display_name} <{result.donor.email}> ({result.donor.id})")

    if not result.linked:
        lines.append("No unlinked records matched; nothing to do.")
        return lines

    lines.append(f"Linked {result.total_linked} record(s):")
    for kind in ContributionKind:
        records = result.linked_of(kind)
        if not records:
            continue
        lines.append(f"{_KIND_LABELS[kind]}: {len(records)}")
        lines.extend(_record_line(record, currency) for record in records)
    return lines


def render_donor_summary(summary: DonorSummary, currency: str = DEFAULT_CURRENCY) -> List[str]:
    """Lines for a donor's contribution totals."""
    return [
        f"Donor: {summary.donor.display_name} <{summary.donor.email}>",
        f"Donations: {summary.donation_count} totalling {format_amount(summary.donation_total, currency)}",
        f"Active sponsorships: {summary.active_sponsorship_count} of {summary.sponsorship_count}, "
        f"{format_monthly(summary.active_sponsorship_total, currency)}",
        f"Event donations: {summary.event_donation_count} totalling "
        f"{format_amount(summary.event_donation_total, currency)}",
        f"Total: {format_amount(summary.grand_total, currency)} ({format_compact(summary.grand_total)})",
    ]


def render_link_all(
    result: LinkResult,
    summaries: Sequence[DonorSummary],
    currency: str = DEFAULT_CURRENCY,
) -> List[str]:
    """Lines for a link-all-donors run followed by per-donor stats."""
    counts = result.counts()
    lines = [
        f"Linked {result.total_linked} record(s) by exact email: "
        + ", ".join(f"{_KIND_LABELS[kind]} {counts[kind.value]}" for kind in ContributionKind),
        f"Donors with linked contributions: {len(summaries)}",
    ]
    for summary in summaries:
        lines.append(
            f"  - {summary.donor.display_name} <{summary.donor.email}>: "
            f"{summary.donation_count} donation(s), "
            f"{summary.active_sponsorship_count} active sponsorship(s), "
            f"{summary.event_donation_count} event donation(s), "
            f"total {format_amount(summary.grand_total, currency)}"
        )
    return lines


def render_backfill(result: BackfillResult) -> List[str]:
    """Lines for a receipt backfill run, listing every record not updated."""
    lines = [
        f"Records missing receipts: {result.candidates}",
        f"Updated: {result.updated}  Not ready: {result.not_ready}  "
        f"Already filled: {result.already_filled}  Errors: {result.errors}",
    ]
    for outcome in result.outcomes:
        if outcome.outcome == "updated":
            continue
        line = (
            f"  - [{outcome.outcome}] {outcome.record.kind.value} {outcome.record.id} "
            f"({outcome.record.payment_intent_id})"
        )
        if outcome.detail:
            line += f": {outcome.detail}"
        lines.append(line)
    return lines


def render_receipt_coverage(coverage: ReceiptCoverage, currency: str = DEFAULT_CURRENCY) -> List[str]:
    """Lines showing which active sponsorships have a Stripe receipt."""
    lines = [f"Donor: {coverage.donor.display_name} <{coverage.donor.email}>"]
    for sponsorship in coverage.sponsorships:
        mark = "receipt" if sponsorship.receipt_url else "missing"
        lines.append(
            f"  - [{mark}] {sponsorship.id} {format_monthly(sponsorship.amount, currency)} "
            f"payment={sponsorship.payment_status or 'unknown'}"
        )
    lines.append(f"Receipts: {coverage.with_receipts}/{coverage.total}")
    return lines


def render_receipt_numbers(result: ReceiptNumberResult) -> List[str]:
    lines = [
        f"Generated: {result.generated}  Already numbered: {result.skipped}  Errors: {result.errors}",
    ]
    for outcome in result.outcomes:
        if outcome.outcome == "generated":
            lines.append(f"  - {outcome.record.kind.value} {outcome.record.id}: {outcome.detail}")
        elif outcome.outcome == "error":
            lines.append(f"  - [error] {outcome.record.kind.value} {outcome.record.id}: {outcome.detail}")
    return lines

