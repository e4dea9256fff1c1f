"""
Donor reconciliation jobs.

Links contributions to donor identities, backfills Stripe receipt URLs,
assigns local receipt numbers and reports per-donor totals.
"""

__version__ = "0.1.0"
