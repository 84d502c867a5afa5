"""
Cost reconciliation for daily records.

The per-model breakdown is the authoritative source of a day's cost. A
record whose stated totalCost drifts from the breakdown sum is corrected
in place and the correction is recorded on the run context.
"""

import logging
from typing import Optional

from usage_sync.storage.models import (
    COST_TOLERANCE,
    DailyRecord,
    ReconciliationRecord,
)
from .context import RunContext

logger = logging.getLogger(__name__)

COST_PRECISION = 8


def breakdown_cost(record: DailyRecord) -> float:
    """Sum of the breakdown costs of a record."""
    return sum(breakdown.cost for breakdown in record.model_breakdowns)


def reconcile_record(
    record: DailyRecord,
    context: str,
    run: RunContext,
    audit: Optional[bool] = None,
) -> DailyRecord:
    """Make ``record.total_cost`` agree with its model breakdowns.

    Records without breakdowns are returned untouched. Otherwise the
    breakdown costs are summed and rounded to 8 decimal digits; if the
    stated total differs by more than the tolerance it is overwritten.

    Args:
        record: Record to reconcile (mutated in place)
        context: Where the record came from, e.g. "existing:codex"
        run: Run context collecting audit entries
        audit: Force or suppress the audit entry. Defaults to the run
            context's policy for ``context``.

    Returns:
        The same record instance
    """
    if not record.model_breakdowns:
        return record

    recomputed = round(breakdown_cost(record), COST_PRECISION)
    current = record.total_cost
    if abs(recomputed - current) <= COST_TOLERANCE:
        return record

    should_audit = run.should_audit(context) if audit is None else audit
    if should_audit:
        run.reconciliations.append(ReconciliationRecord(
            context=context,
            date=record.date,
            before=current,
            after=recomputed,
            delta=recomputed - current,
        ))
    logger.debug(
        "%s %s: totalCost %.6f -> %.6f", context, record.date, current, recomputed
    )
    record.total_cost = recomputed
    return record
