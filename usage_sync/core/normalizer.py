"""
Decoding of untrusted usage JSON.

Turns arbitrary parsed JSON into typed records. Nothing here raises for a
malformed shape: missing or non-finite numbers become 0, non-list fields
become empty lists, and every defaulted field is reported as a DecodeIssue
alongside the decoded value.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from usage_sync.storage.models import DailyRecord, ModelBreakdown, Totals
from .context import DecodeIssue, RunContext
from .reconciler import reconcile_record

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TOKEN_FIELDS = (
    ("inputTokens", "input_tokens"),
    ("outputTokens", "output_tokens"),
    ("cacheCreationTokens", "cache_creation_tokens"),
    ("cacheReadTokens", "cache_read_tokens"),
)


@dataclass
class Decoded(Generic[T]):
    """A decoded value together with the fields that had to be defaulted."""
    value: T
    issues: List[DecodeIssue] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.issues


@dataclass
class NormalizedDataset:
    """A decoded ``{daily, totals}`` section."""
    daily: List[DailyRecord]
    totals: Optional[Totals]


def to_number(value: Any) -> float:
    """Return ``value`` if it is a finite number, otherwise 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return value


class _Reader:
    """Field reader that records a DecodeIssue for every defaulted field."""

    def __init__(self, context: str, path: str, raw: Any):
        self.context = context
        self.path = path
        self.issues: List[DecodeIssue] = []
        if isinstance(raw, dict):
            self.raw: Dict[str, Any] = raw
        else:
            self.raw = {}
            self.issue(path, "expected an object")

    def issue(self, path: str, reason: str) -> None:
        self.issues.append(DecodeIssue(self.context, path, reason))

    def number(self, key: str) -> float:
        value = self.raw.get(key)
        number = to_number(value)
        if number == 0 and value != 0:
            reason = "missing" if key not in self.raw else "not a finite number"
            self.issue(f"{self.path}.{key}", reason)
        return number

    def tokens(self, key: str) -> int:
        return int(self.number(key))

    def string(self, key: str) -> str:
        value = self.raw.get(key)
        if isinstance(value, str):
            return value
        if value is None:
            self.issue(f"{self.path}.{key}", "missing")
            return ""
        return str(value)

    def array(self, key: str) -> List[Any]:
        value = self.raw.get(key)
        if isinstance(value, list):
            return value
        if key in self.raw:
            self.issue(f"{self.path}.{key}", "not an array")
        return []


def decode_totals(raw: Any, context: str = "dataset") -> Decoded[Totals]:
    reader = _Reader(context, "totals", raw)
    totals = Totals(
        input_tokens=reader.tokens("inputTokens"),
        output_tokens=reader.tokens("outputTokens"),
        cache_creation_tokens=reader.tokens("cacheCreationTokens"),
        cache_read_tokens=reader.tokens("cacheReadTokens"),
        total_tokens=reader.tokens("totalTokens"),
        total_cost=float(reader.number("totalCost")),
    )
    return Decoded(totals, reader.issues)


def _decode_breakdown(raw: Any, context: str, path: str) -> Decoded[ModelBreakdown]:
    reader = _Reader(context, path, raw)
    model_name = reader.raw.get("modelName")
    if not isinstance(model_name, str):
        reader.issue(f"{path}.modelName", "not a string")
        model_name = ""
    breakdown = ModelBreakdown(model_name=model_name, cost=float(reader.number("cost")))
    for wire_name, attr in _TOKEN_FIELDS:
        setattr(breakdown, attr, reader.tokens(wire_name))
    return Decoded(breakdown, reader.issues)


def decode_daily_record(raw: Any, context: str = "dataset") -> Decoded[DailyRecord]:
    """Decode one daily record without reconciling it.

    A missing date decodes to the empty string; callers treat that as
    invalid, this function does not reject it.
    """
    reader = _Reader(context, "daily", raw)
    date = reader.string("date")
    if date:
        reader.path = f"daily[{date}]"

    issues = reader.issues
    breakdowns = []
    for index, item in enumerate(reader.array("modelBreakdowns")):
        decoded = _decode_breakdown(item, context, f"{reader.path}.modelBreakdowns[{index}]")
        breakdowns.append(decoded.value)
        issues.extend(decoded.issues)

    models_used = [m for m in reader.array("modelsUsed") if isinstance(m, str)]

    record = DailyRecord(
        date=date,
        total_tokens=reader.tokens("totalTokens"),
        total_cost=float(reader.number("totalCost")),
        models_used=models_used,
        model_breakdowns=breakdowns,
    )
    for wire_name, attr in _TOKEN_FIELDS:
        setattr(record, attr, reader.tokens(wire_name))
    return Decoded(record, issues)


def decode_dataset(raw: Any, context: str, run: RunContext) -> Decoded[NormalizedDataset]:
    """Decode a ``{daily, totals}`` section, reconciling every record.

    Args:
        raw: Parsed JSON for the section (any shape)
        context: Audit label, e.g. "existing:claudeCode" or "import:claudeCode"
        run: Run context collecting reconciliations and decode issues

    Returns:
        Decoded dataset; totals are None when the section has none
    """
    section = raw if isinstance(raw, dict) else {}
    issues: List[DecodeIssue] = []
    if raw is not None and not isinstance(raw, dict):
        issues.append(DecodeIssue(context, "", "expected an object"))

    daily_raw = section.get("daily")
    if not isinstance(daily_raw, list):
        if daily_raw is not None:
            issues.append(DecodeIssue(context, "daily", "not an array"))
        daily_raw = []

    daily = []
    for item in daily_raw:
        decoded = decode_daily_record(item, context)
        issues.extend(decoded.issues)
        daily.append(reconcile_record(decoded.value, context, run))

    totals = None
    if isinstance(section.get("totals"), dict):
        decoded_totals = decode_totals(section["totals"], context)
        issues.extend(decoded_totals.issues)
        totals = decoded_totals.value

    run.decode_issues.extend(issues)
    return Decoded(NormalizedDataset(daily=daily, totals=totals), issues)


def dated_records(records: List[DailyRecord], context: str, run: RunContext) -> List[DailyRecord]:
    """Drop records whose date decoded to the empty string.

    Records are keyed by date, so an undated record cannot be merged. Each
    dropped record is reported as a DecodeIssue on the run context.
    """
    kept = []
    for index, record in enumerate(records):
        if record.date:
            kept.append(record)
        else:
            run.decode_issues.append(DecodeIssue(context, f"daily[{index}]", "missing date, record dropped"))
    dropped = len(records) - len(kept)
    if dropped:
        logger.warning("%s: dropped %d record(s) without a date", context, dropped)
    return kept
