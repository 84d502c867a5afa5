"""
Post-merge integrity check.

Last line of defense before a dataset is written: every record must state
a totalCost equal to its breakdown sum (0 for a record without one).
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List

from usage_sync.storage.models import COST_TOLERANCE, DailyRecord
from .reconciler import breakdown_cost

logger = logging.getLogger(__name__)

MAX_REPORTED_MISMATCHES = 10


@dataclass(frozen=True)
class CostMismatch:
    """A record whose totalCost disagrees with its breakdown sum."""
    date: str
    total_cost: float
    breakdown_sum: float

    @property
    def delta(self) -> float:
        return self.breakdown_sum - self.total_cost

    def describe(self) -> str:
        return (
            f"{self.date}: totalCost={self.total_cost:.6f} vs model sum="
            f"{self.breakdown_sum:.6f} (delta={self.delta:.6f})"
        )


class ReconciliationError(Exception):
    """Raised when a dataset still contains unreconciled records."""

    def __init__(self, label: str, mismatches: List[CostMismatch]):
        self.label = label
        self.mismatches = mismatches
        lines = [f"{label}: {len(mismatches)} unreconciled daily total(s)"]
        lines.extend(f"  {m.describe()}" for m in mismatches[:MAX_REPORTED_MISMATCHES])
        if len(mismatches) > MAX_REPORTED_MISMATCHES:
            lines.append(f"  ...and {len(mismatches) - MAX_REPORTED_MISMATCHES} more.")
        super().__init__("\n".join(lines))


def find_mismatches(
    records: Iterable[DailyRecord],
    tolerance: float = COST_TOLERANCE,
) -> List[CostMismatch]:
    mismatches = []
    for record in records:
        total = breakdown_cost(record)
        if abs(total - record.total_cost) > tolerance:
            mismatches.append(CostMismatch(record.date, record.total_cost, total))
    return mismatches


def validate_reconciled(
    label: str,
    records: Iterable[DailyRecord],
    tolerance: float = COST_TOLERANCE,
) -> None:
    """Abort if any record's cost disagrees with its model breakdown.

    Args:
        label: Dataset name used in the error report
        records: Records about to be written
        tolerance: Allowed absolute difference

    Raises:
        ReconciliationError: If at least one record is mismatched
    """
    mismatches = find_mismatches(records, tolerance)
    if not mismatches:
        return

    logger.error(
        "%s: detected %d unreconciled daily total(s), aborting write",
        label, len(mismatches),
    )
    for mismatch in mismatches[:MAX_REPORTED_MISMATCHES]:
        logger.error("  %s", mismatch.describe())
    if len(mismatches) > MAX_REPORTED_MISMATCHES:
        logger.error("  ...and %d more.", len(mismatches) - MAX_REPORTED_MISMATCHES)

    raise ReconciliationError(label, mismatches)
