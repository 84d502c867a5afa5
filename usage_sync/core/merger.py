"""
Date-keyed merge of incoming daily records into a provider dataset.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from usage_sync.storage.models import DailyRecord, MergeConflict


@dataclass
class MergeStats:
    """Classification of every incoming date."""
    added: List[str] = field(default_factory=list)
    replaced: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    conflicts: List[MergeConflict] = field(default_factory=list)


def is_replacement_better(existing: DailyRecord, incoming: DailyRecord) -> bool:
    """Whether ``incoming`` carries more complete data than ``existing``.

    Compared in order: total tokens, total cost, number of model
    breakdowns. Each step only decides on a strict difference; a full tie
    keeps the existing record.
    """
    if incoming.total_tokens != existing.total_tokens:
        return incoming.total_tokens > existing.total_tokens
    if incoming.total_cost != existing.total_cost:
        return incoming.total_cost > existing.total_cost
    if len(incoming.model_breakdowns) != len(existing.model_breakdowns):
        return len(incoming.model_breakdowns) > len(existing.model_breakdowns)
    return False


def is_lower_token_conflict(existing: DailyRecord, incoming: DailyRecord) -> bool:
    """A lower token count usually means a truncated or regressed import."""
    return incoming.total_tokens < existing.total_tokens


def merge_records(
    incoming: Iterable[DailyRecord],
    existing_by_date: Dict[str, DailyRecord],
) -> MergeStats:
    """Merge ``incoming`` into ``existing_by_date`` in place.

    Conflicting records are not written; they are returned in
    ``MergeStats.conflicts`` for the conflict resolver.
    """
    stats = MergeStats()

    for record in incoming:
        existing = existing_by_date.get(record.date)
        if existing is None:
            existing_by_date[record.date] = record
            stats.added.append(record.date)
        elif is_replacement_better(existing, record):
            existing_by_date[record.date] = record
            stats.replaced.append(record.date)
        elif is_lower_token_conflict(existing, record):
            stats.conflicts.append(MergeConflict(record.date, existing, record))
        else:
            stats.unchanged.append(record.date)

    return stats
