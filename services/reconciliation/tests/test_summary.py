"""
Tests for the summary reporter.
"""

import pytest

from services.common.errors import DonorNotFound

from ..models import ContributionKind, Donation, Donor, EventDonation, Sponsorship
from ..summary import build_donor_summary, receipt_coverage, summarize, summarize_linked_donors


@pytest.fixture
def donor():
    return Donor(id="d1", email="ali@gmail.com", full_name="Ali Khan")


def _sponsorship(amount, status="active"):
    return Sponsorship(id=f"sp-{amount}-{status}", kind=ContributionKind.SPONSORSHIP, amount=amount, status=status)


class TestSummarize:
    """Test the pure aggregation."""

    def test_no_records_gives_zero_totals(self, donor):
        summary = summarize(donor, [], [], [])

        assert summary.grand_total == 0
        assert summary.donation_count == 0
        assert summary.active_sponsorship_total == 0

    def test_only_active_sponsorships_count(self, donor):
        summary = summarize(donor, [], [_sponsorship(5000), _sponsorship(3000, status="cancelled")], [])

        assert summary.sponsorship_count == 2
        assert summary.active_sponsorship_count == 1
        assert summary.active_sponsorship_total == 5000
        assert summary.grand_total == 5000

    def test_completed_sponsorship_is_not_active(self, donor):
        summary = summarize(donor, [], [_sponsorship(5000), _sponsorship(3000, status="completed")], [])

        assert summary.active_sponsorship_count == 1
        assert summary.active_sponsorship_total == 5000
        assert summary.grand_total == 5000

    def test_donations_count_regardless_of_status(self, donor):
        donations = [
            Donation(id="a", kind=ContributionKind.DONATION, amount=1000, status="pending"),
            Donation(id="b", kind=ContributionKind.DONATION, amount=2500),
        ]
        events = [EventDonation(id="e", kind=ContributionKind.EVENT_DONATION, amount=700, payment_status="failed")]

        summary = summarize(donor, donations, [], events)

        assert summary.donation_total == 3500
        assert summary.event_donation_total == 700
        assert summary.one_time_total == 4200

    def test_grand_total_is_sum_of_parts(self, donor):
        summary = summarize(
            donor,
            [Donation(id="a", kind=ContributionKind.DONATION, amount=12500)],
            [_sponsorship(5000), _sponsorship(2000)],
            [EventDonation(id="e", kind=ContributionKind.EVENT_DONATION, amount=300)],
        )

        assert summary.grand_total == (
            summary.donation_total + summary.active_sponsorship_total + summary.event_donation_total
        )
        assert summary.grand_total == 19800

    def test_custom_active_status(self, donor):
        summary = summarize(donor, [], [_sponsorship(5000, status="ACTIVE")], [], active_status="ACTIVE")
        assert summary.active_sponsorship_total == 5000

    def test_to_dict(self, donor):
        data = summarize(donor, [], [_sponsorship(5000)], []).to_dict()

        assert data["donor_id"] == "d1"
        assert data["active_sponsorship_total"] == 5000
        assert data["grand_total"] == 5000


class TestBuildDonorSummary:
    """Test summaries read from the database."""

    def test_reads_only_linked_records(self, engine, seed):
        seed.donor("ali@gmail.com", "Ali Khan", id="d1")
        seed.sponsorship("ali@gmail.com", 5000, donor_id="d1")
        seed.sponsorship("ali@gmail.com", 3000, donor_id="d1", status="cancelled")
        seed.donation("ali@gmail.com", 10000, donor_id="d1")
        seed.donation("ali@gmail.com", 999)  # not linked yet
        seed.event_donation("ali@gmail.com", 2500, donor_id="d1", payment_status="pending")

        summary = build_donor_summary(engine, "ali@gmail.com")

        assert summary.active_sponsorship_total == 5000
        assert summary.donation_total == 10000
        assert summary.event_donation_total == 2500
        assert summary.grand_total == 17500

    def test_unknown_email_raises(self, engine):
        with pytest.raises(DonorNotFound):
            build_donor_summary(engine, "nobody@example.com")

    def test_summarize_linked_donors(self, engine, seed):
        seed.donor("a@example.com", id="d1")
        seed.donor("b@example.com", id="d2")
        seed.donation("a@example.com", 1000, donor_id="d1")

        summaries = summarize_linked_donors(engine)

        assert [s.donor.id for s in summaries] == ["d1"]
        assert summaries[0].grand_total == 1000


class TestReceiptCoverage:

    def test_counts_active_sponsorships_with_receipts(self, engine, seed):
        seed.donor("ali@gmail.com", id="d1")
        seed.sponsorship("ali@gmail.com", 5000, donor_id="d1", receipt_url="https://r/1")
        missing = seed.sponsorship("ali@gmail.com", 3000, donor_id="d1")
        seed.sponsorship("ali@gmail.com", 2000, donor_id="d1", status="cancelled")

        coverage = receipt_coverage(engine, "ali@gmail.com")

        assert coverage.total == 2
        assert coverage.with_receipts == 1
        assert [s.id for s in coverage.missing] == [missing]
