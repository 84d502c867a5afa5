"""
Selection between stored and recomputed aggregate totals.

Stored totals may have been entered or adjusted by hand, so they are only
replaced automatically when they are obviously stale (all zero, or behind
the daily data). Any other disagreement keeps the stored values unless
the operator confirms the change.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from usage_sync.storage.models import DailyRecord, Totals
from .conflicts import Asker, is_yes

logger = logging.getLogger(__name__)

SOURCE_COMPUTED = "computed"
SOURCE_STORED = "stored"


@dataclass(frozen=True)
class TotalsDecision:
    """Totals to write and where they came from."""
    totals: Totals
    source: str
    changed: bool


def format_totals(totals: Totals) -> str:
    return (
        f"input:{totals.input_tokens:,} | output:{totals.output_tokens:,} | "
        f"total:{totals.total_tokens:,} | cost:{totals.total_cost:.4f}"
    )


def select_totals(
    label: str,
    records: Iterable[DailyRecord],
    stored: Optional[Totals],
    interactive: bool = False,
    dry_run: bool = False,
    asker: Optional[Asker] = None,
) -> TotalsDecision:
    """Decide whether a dataset keeps its stored totals.

    Args:
        label: Dataset name for log messages
        records: Final daily records of the dataset
        stored: Totals read from disk, if any
        interactive: Whether the operator may be asked
        dry_run: Report only; stored totals are kept for this run
        asker: Prompt callback, required when ``interactive`` is set

    Returns:
        TotalsDecision with source "computed" or "stored"

    Raises:
        ValueError: If interactive prompting is needed and no asker is given
    """
    computed = Totals.from_records(records)

    if stored is None or stored.matches(computed):
        return TotalsDecision(computed, SOURCE_COMPUTED, changed=False)

    computed_is_higher = (
        computed.total_tokens > stored.total_tokens
        or computed.total_cost > stored.total_cost
    )
    if stored.is_zero() or computed_is_higher:
        if dry_run:
            logger.info("[DRY RUN] Would update %s totals to computed values.", label)
            return TotalsDecision(stored, SOURCE_STORED, changed=False)
        return TotalsDecision(computed, SOURCE_COMPUTED, changed=True)

    message = (
        f"{label} totals mismatch: stored {format_totals(stored)} "
        f"vs computed {format_totals(computed)}"
    )

    if dry_run:
        logger.info("[DRY RUN] %s. Keeping stored totals.", message)
        return TotalsDecision(stored, SOURCE_STORED, changed=False)

    if not interactive:
        logger.warning("%s. Keeping stored totals.", message)
        return TotalsDecision(stored, SOURCE_STORED, changed=False)

    if asker is None:
        raise ValueError("an asker is required for interactive totals selection")

    if is_yes(asker(f"{message}\n   Update totals to computed values? (y/N) ")):
        logger.info("%s: totals updated to computed values.", label)
        return TotalsDecision(computed, SOURCE_COMPUTED, changed=True)

    logger.info("%s: totals left as stored values.", label)
    return TotalsDecision(stored, SOURCE_STORED, changed=False)
