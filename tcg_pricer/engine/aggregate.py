"""
Card Pricer - Collection Total

Sums price × count over the priced records of a run. Records that failed
to price are skipped and counted, not treated as zero-value and not
allowed to abort the total.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

import structlog

from tcg_pricer.models.record import Record

logger = structlog.get_logger(__name__)


class TotalSummary(NamedTuple):
    """Aggregate over one run's output records."""
    total: float
    priced_count: int
    skipped_count: int


def summarize_total(records: Iterable[Record]) -> TotalSummary:
    """
    Total value of all priced records, plus how many were skipped.

    count defaults to 1 when a record has none.
    """
    total = 0.0
    priced = 0
    skipped = 0
    for record in records:
        if record.price is None:
            skipped += 1
            continue
        total += record.price * record.effective_count
        priced += 1

    if skipped:
        logger.warning(
            "total_skipped_unpriced_records",
            skipped_count=skipped,
            priced_count=priced,
        )
    return TotalSummary(total=total, priced_count=priced, skipped_count=skipped)


def calculate_total(records: Iterable[Record]) -> float:
    """Sum of price × count over priced records. Unpriced records are skipped."""
    return summarize_total(records).total
