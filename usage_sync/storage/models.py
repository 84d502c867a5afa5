"""
Data models for storage layer.

Defines daily usage records, totals and the per-provider dataset that is
persisted to the usage JSON document.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

COST_TOLERANCE = 1e-4


@dataclass
class ModelBreakdown:
    """Token and cost usage of a single model within one day."""
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modelName": self.model_name,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cacheCreationTokens": self.cache_creation_tokens,
            "cacheReadTokens": self.cache_read_tokens,
            "cost": self.cost,
        }


@dataclass
class DailyRecord:
    """One provider's aggregated usage for one calendar day.

    Records are keyed by ISO date within a provider dataset. ``total_cost``
    is expected to equal the sum of ``model_breakdowns`` costs once the
    record has been reconciled.
    """
    date: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    models_used: List[str] = field(default_factory=list)
    model_breakdowns: List[ModelBreakdown] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cacheCreationTokens": self.cache_creation_tokens,
            "cacheReadTokens": self.cache_read_tokens,
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
            "modelsUsed": list(self.models_used),
            "modelBreakdowns": [b.to_dict() for b in self.model_breakdowns],
        }


@dataclass(frozen=True)
class Totals:
    """Aggregate of the numeric daily fields across a dataset."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0

    @classmethod
    def zero(cls) -> "Totals":
        return cls()

    @classmethod
    def from_records(cls, records: Iterable[DailyRecord]) -> "Totals":
        """Elementwise sum of the numeric fields of ``records``."""
        input_tokens = output_tokens = cache_creation = cache_read = total = 0
        cost = 0.0
        for record in records:
            input_tokens += record.input_tokens
            output_tokens += record.output_tokens
            cache_creation += record.cache_creation_tokens
            cache_read += record.cache_read_tokens
            total += record.total_tokens
            cost += record.total_cost
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_creation_tokens=cache_creation,
            cache_read_tokens=cache_read,
            total_tokens=total,
            total_cost=cost,
        )

    def is_zero(self) -> bool:
        """The all-zero sentinel written by ``init``."""
        return self.total_tokens == 0 and self.total_cost == 0

    def matches(self, other: "Totals", tolerance: float = COST_TOLERANCE) -> bool:
        """Token fields must match exactly, cost within ``tolerance``."""
        return (
            self.input_tokens == other.input_tokens
            and self.output_tokens == other.output_tokens
            and self.cache_creation_tokens == other.cache_creation_tokens
            and self.cache_read_tokens == other.cache_read_tokens
            and self.total_tokens == other.total_tokens
            and abs(self.total_cost - other.total_cost) < tolerance
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cacheCreationTokens": self.cache_creation_tokens,
            "cacheReadTokens": self.cache_read_tokens,
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
        }


@dataclass
class ProviderDataset:
    """Date-keyed daily records of one provider plus its stored totals."""
    name: str
    records: Dict[str, DailyRecord] = field(default_factory=dict)
    totals: Optional[Totals] = None

    def sorted_records(self) -> List[DailyRecord]:
        return [self.records[date] for date in sorted(self.records)]


@dataclass(frozen=True)
class ReconciliationRecord:
    """Audit entry for a corrected ``totalCost``.

    Reported to the operator only, never written to the dataset file.
    """
    context: str
    date: str
    before: float
    after: float
    delta: float
    field: str = "totalCost"


@dataclass(frozen=True)
class MergeConflict:
    """An incoming record that would lower the recorded token count."""
    date: str
    existing: DailyRecord
    incoming: DailyRecord
