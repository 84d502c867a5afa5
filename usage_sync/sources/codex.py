"""
Conversion of Codex usage reports.

The Codex reporter emits its own daily shape: human-readable dates
("Sep 12, 2025"), cached input and reasoning tokens as separate fields,
a single USD cost per day and a per-model token map without costs. This
module maps that shape onto DailyRecord, spreading the day's cost across
models by token share.
"""

import re
from typing import Any, Dict, List

from usage_sync.core.context import RunContext
from usage_sync.core.normalizer import to_number
from usage_sync.core.reconciler import reconcile_record
from usage_sync.storage.models import DailyRecord, ModelBreakdown

IMPORT_CONTEXT = "import:codex"

_MONTHS = {
    "Jan": "01", "Feb": "02", "Mar": "03", "Apr": "04", "May": "05", "Jun": "06",
    "Jul": "07", "Aug": "08", "Sep": "09", "Oct": "10", "Nov": "11", "Dec": "12",
}
_DATE_PATTERN = re.compile(r"^(\w{3})\s+(\d{1,2}),\s+(\d{4})$")


def is_codex_report(raw: Any) -> bool:
    """Whether ``raw`` looks like a Codex report rather than a daily dataset."""
    if not isinstance(raw, dict):
        return False
    daily = raw.get("daily")
    if not isinstance(daily, list) or not isinstance(raw.get("totals"), dict):
        return False
    return all(
        isinstance(entry, dict)
        and isinstance(entry.get("date"), str)
        and isinstance(entry.get("models"), dict)
        for entry in daily
    )


def normalize_codex_date(value: str) -> str:
    """Convert "Sep 12, 2025" to "2025-09-12"; other strings pass through."""
    match = _DATE_PATTERN.match(value)
    if not match:
        return value
    month_name, day, year = match.groups()
    month = _MONTHS.get(month_name)
    if month is None:
        return value
    return f"{year}-{month}-{int(day):02d}"


def _tokens(data: Dict[str, Any], key: str) -> int:
    return int(to_number(data.get(key)))


def convert_codex_record(entry: Dict[str, Any], run: RunContext) -> DailyRecord:
    """Map one Codex daily entry onto a reconciled DailyRecord."""
    models = entry.get("models")
    if not isinstance(models, dict):
        models = {}
    cost_usd = float(to_number(entry.get("costUSD")))

    breakdowns: List[ModelBreakdown] = []
    for model_name, data in models.items():
        data = data if isinstance(data, dict) else {}
        breakdowns.append(ModelBreakdown(
            model_name=model_name,
            input_tokens=_tokens(data, "inputTokens"),
            output_tokens=_tokens(data, "outputTokens") + _tokens(data, "reasoningOutputTokens"),
            cache_read_tokens=_tokens(data, "cachedInputTokens"),
        ))

    total_tokens = _tokens(entry, "totalTokens")
    denominator = total_tokens or 1
    for breakdown in breakdowns:
        model_tokens = breakdown.input_tokens + breakdown.output_tokens + breakdown.cache_read_tokens
        breakdown.cost = (model_tokens / denominator) * cost_usd

    date = entry.get("date")
    record = DailyRecord(
        date=normalize_codex_date(date) if isinstance(date, str) else "",
        input_tokens=_tokens(entry, "inputTokens"),
        output_tokens=_tokens(entry, "outputTokens") + _tokens(entry, "reasoningOutputTokens"),
        cache_read_tokens=_tokens(entry, "cachedInputTokens"),
        total_tokens=total_tokens,
        total_cost=cost_usd,
        models_used=list(models),
        model_breakdowns=breakdowns,
    )
    return reconcile_record(record, IMPORT_CONTEXT, run)


def convert_codex_report(raw: Dict[str, Any], run: RunContext) -> List[DailyRecord]:
    return [convert_codex_record(entry, run) for entry in raw.get("daily", [])]
