"""
Per-run audit state.

A RunContext is created once per merge run and passed explicitly to every
step that decodes, reconciles or combines records.
"""

from dataclasses import dataclass, field
from typing import List

from usage_sync.storage.models import ReconciliationRecord


@dataclass(frozen=True)
class DecodeIssue:
    """A field that had to be defaulted while decoding untrusted JSON."""
    context: str
    path: str
    reason: str


@dataclass
class RunContext:
    """Audit trail of a single run.

    Attributes:
        reconciliations: Every totalCost correction made by the reconciler
        decode_issues: Every field the normalizer had to default
        audit_imports: Also audit corrections made to freshly imported data
    """
    reconciliations: List[ReconciliationRecord] = field(default_factory=list)
    decode_issues: List[DecodeIssue] = field(default_factory=list)
    audit_imports: bool = False

    def should_audit(self, context: str) -> bool:
        """Imported data routinely drifts, so it is only audited on request."""
        if context.startswith("import"):
            return self.audit_imports
        return True
