"""
Tests for console rendering of job results.
"""

from ..backfill import BackfillResult
from ..linking import LinkResult
from ..models import ContributionKind, Donor, RecordOutcome, Sponsorship, Donation
from ..receipt_numbers import ReceiptNumberResult
from ..report import (
    render_backfill,
    render_donor_summary,
    render_link_all,
    render_link_result,
    render_receipt_coverage,
    render_receipt_numbers,
)
from ..summary import ReceiptCoverage, summarize

DONOR = Donor(id="d1", email="ibrahimsamad507@gmail.com", full_name="Ibrahim Samad")


def _sponsorship(record_id="sp-1", amount=5000, **kwargs):
    kwargs.setdefault("status", "active")
    return Sponsorship(id=record_id, kind=ContributionKind.SPONSORSHIP, amount=amount,
                       email="ibrahimsamad@yahoo.com", name="Ibrahim", **kwargs)


class TestRenderLinkResult:

    def test_lists_linked_records_by_kind(self):
        result = LinkResult(donor=DONOR, linked=[
            _sponsorship(),
            Donation(id="don-1", kind=ContributionKind.DONATION, amount=12500, email="ibrahimsamad@yahoo.com"),
        ])

        lines = render_link_result(result)

        assert lines[0] == "Donor: Ibrahim Samad <ibrahimsamad507@gmail.com> (d1)"
        assert "Linked 2 record(s):" in lines
        assert "Sponsorships: 1" in lines
        assert "  - Ibrahim <ibrahimsamad@yahoo.com>: PKR 5,000/month" in lines
        assert "  - (no name) <ibrahimsamad@yahoo.com>: PKR 12,500" in lines

    def test_nothing_linked(self):
        lines = render_link_result(LinkResult(donor=DONOR))
        assert lines[-1] == "No unlinked records matched; nothing to do."


class TestRenderDonorSummary:

    def test_totals_lines(self):
        summary = summarize(DONOR, [], [_sponsorship(), _sponsorship("sp-2", 3000, status="cancelled")], [])

        lines = render_donor_summary(summary, currency="PKR")

        assert "Active sponsorships: 1 of 2, PKR 5,000/month" in lines
        assert lines[-1] == "Total: PKR 5,000 (5K)"

    def test_link_all_lines(self):
        result = LinkResult(linked=[_sponsorship()])
        summary = summarize(DONOR, [], [_sponsorship()], [])

        lines = render_link_all(result, [summary])

        assert lines[0] == "Linked 1 record(s) by exact email: Donations 0, Sponsorships 1, Event donations 0"
        assert lines[1] == "Donors with linked contributions: 1"


class TestRenderBackfill:

    def test_lists_records_not_updated(self):
        ok = _sponsorship("sp-ok", payment_intent_id="pi_ok")
        late = _sponsorship("sp-late", payment_intent_id="pi_late")
        result = BackfillResult(outcomes=[
            RecordOutcome(ok, "updated", detail="https://r/1"),
            RecordOutcome(late, "not_ready", detail="no charge yet", retryable=True),
        ])

        lines = render_backfill(result)

        assert lines[0] == "Records missing receipts: 2"
        assert lines[1] == "Updated: 1  Not ready: 1  Already filled: 0  Errors: 0"
        assert lines[2] == "  - [not_ready] sponsorship sp-late (pi_late): no charge yet"
        assert len(lines) == 3

    def test_detail_kept_verbatim(self):
        record = _sponsorship("sp-err", payment_intent_id="pi_err")
        result = BackfillResult(outcomes=[
            RecordOutcome(record, "error", detail="Stripe said: "),
            RecordOutcome(_sponsorship("sp-bare", payment_intent_id="pi_bare"), "already_filled"),
        ])

        lines = render_backfill(result)

        assert lines[2] == "  - [error] sponsorship sp-err (pi_err): Stripe said: "
        assert lines[3] == "  - [already_filled] sponsorship sp-bare (pi_bare)"


class TestRenderReceiptCoverage:

    def test_marks_missing_receipts(self):
        coverage = ReceiptCoverage(donor=DONOR, sponsorships=(
            _sponsorship("sp-1", receipt_url="https://r/1", payment_status="completed"),
            _sponsorship("sp-2", payment_status="pending"),
        ))

        lines = render_receipt_coverage(coverage)

        assert "  - [receipt] sp-1 PKR 5,000/month payment=completed" in lines
        assert "  - [missing] sp-2 PKR 5,000/month payment=pending" in lines
        assert lines[-1] == "Receipts: 1/2"


class TestRenderReceiptNumbers:

    def test_generated_and_errors_listed(self):
        result = ReceiptNumberResult(outcomes=[
            RecordOutcome(_sponsorship("sp-1"), "generated", detail="AGH-20250101-0001"),
            RecordOutcome(_sponsorship("sp-2"), "already_numbered"),
        ])

        lines = render_receipt_numbers(result)

        assert lines[0] == "Generated: 1  Already numbered: 1  Errors: 0"
        assert lines[1] == "  - sponsorship sp-1: AGH-20250101-0001"
