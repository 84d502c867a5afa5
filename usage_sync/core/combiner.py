"""
Cross-provider combined view.

The combined dataset is derived, never edited: it is rebuilt from the
provider datasets on every run.
"""

from typing import Dict, Iterable, List

from usage_sync.storage.models import DailyRecord, ProviderDataset
from .context import RunContext
from .reconciler import reconcile_record

COMBINED_CONTEXT = "combined"


def add_record(target: DailyRecord, record: DailyRecord) -> None:
    """Accumulate ``record`` into ``target`` field by field."""
    target.input_tokens += record.input_tokens
    target.output_tokens += record.output_tokens
    target.cache_creation_tokens += record.cache_creation_tokens
    target.cache_read_tokens += record.cache_read_tokens
    target.total_tokens += record.total_tokens
    target.total_cost += record.total_cost
    target.models_used.extend(record.models_used)
    target.model_breakdowns.extend(record.model_breakdowns)


def combine_datasets(
    datasets: Iterable[ProviderDataset],
    run: RunContext,
) -> Dict[str, DailyRecord]:
    """Sum every provider's records per date.

    A provider with no record for a date contributes zero. Each combined
    record is reconciled like any other record entering the system.

    Returns:
        Combined records keyed by date, in ascending date order
    """
    datasets = list(datasets)
    dates = sorted({date for dataset in datasets for date in dataset.records})

    combined: Dict[str, DailyRecord] = {}
    for date in dates:
        record = DailyRecord(date=date)
        for dataset in datasets:
            contribution = dataset.records.get(date)
            if contribution is not None:
                add_record(record, contribution)
        combined[date] = reconcile_record(record, COMBINED_CONTEXT, run)
    return combined


def combined_records(combined: Dict[str, DailyRecord]) -> List[DailyRecord]:
    return [combined[date] for date in sorted(combined)]
