"""
Unit tests for cost reconciliation.
"""

import pytest

from usage_sync.core.context import RunContext
from usage_sync.core.reconciler import breakdown_cost, reconcile_record
from usage_sync.storage.models import DailyRecord, ModelBreakdown


def make_record(total_cost, costs, date="2025-01-01"):
    return DailyRecord(
        date=date,
        total_tokens=100,
        total_cost=total_cost,
        model_breakdowns=[ModelBreakdown(model_name=f"m{i}", cost=c) for i, c in enumerate(costs)],
    )


class TestReconcileRecord:
    """Test totalCost correction against model breakdowns."""

    def test_drift_is_corrected_and_audited(self):
        """A stated total off by more than the tolerance is overwritten."""
        run = RunContext()
        record = make_record(1.19, [0.60, 0.60])

        reconcile_record(record, "sync:claudeCode", run)

        assert record.total_cost == pytest.approx(1.20)
        assert len(run.reconciliations) == 1
        entry = run.reconciliations[0]
        assert entry.context == "sync:claudeCode"
        assert entry.date == "2025-01-01"
        assert entry.field == "totalCost"
        assert entry.before == 1.19
        assert entry.after == pytest.approx(1.20)
        assert entry.delta == pytest.approx(0.01)

    def test_within_tolerance_is_untouched(self):
        """Differences within 1e-4 are left alone."""
        run = RunContext()
        record = make_record(1.00005, [1.0])

        reconcile_record(record, "existing:codex", run)

        assert record.total_cost == 1.00005
        assert run.reconciliations == []

    def test_empty_breakdowns_pass_through(self):
        """Records without breakdowns are not reconciled."""
        run = RunContext()
        record = make_record(5.0, [])

        reconcile_record(record, "existing:codex", run)

        assert record.total_cost == 5.0
        assert run.reconciliations == []

    def test_reconciliation_is_idempotent(self):
        """Reconciling an already reconciled record is a no-op."""
        run = RunContext()
        record = make_record(3.0, [1.25, 0.5])

        reconcile_record(record, "existing:claudeCode", run)
        corrected = record.total_cost
        reconcile_record(record, "existing:claudeCode", run)

        assert record.total_cost == corrected
        assert len(run.reconciliations) == 1

    def test_sum_is_rounded_to_eight_digits(self):
        """The recomputed total is rounded to 8 decimal digits."""
        run = RunContext()
        record = make_record(0.0, [0.1, 0.2])

        reconcile_record(record, "existing:claudeCode", run)

        assert record.total_cost == 0.3


class TestImportAuditing:
    """Test suppression of audit entries for imported data."""

    def test_import_context_is_corrected_but_not_audited(self):
        """Imported drift is fixed silently by default."""
        run = RunContext()
        record = make_record(2.0, [1.0])

        reconcile_record(record, "import:codex", run)

        assert record.total_cost == 1.0
        assert run.reconciliations == []

    def test_audit_imports_flag(self):
        """The run context can opt in to auditing imports."""
        run = RunContext(audit_imports=True)
        record = make_record(2.0, [1.0])

        reconcile_record(record, "import:codex", run)

        assert len(run.reconciliations) == 1

    def test_explicit_audit_overrides_policy(self):
        """The caller can force or suppress the audit entry."""
        run = RunContext()
        reconcile_record(make_record(2.0, [1.0]), "import:codex", run, audit=True)
        reconcile_record(make_record(2.0, [1.0]), "existing:codex", run, audit=False)

        assert [r.context for r in run.reconciliations] == ["import:codex"]


def test_breakdown_cost():
    """breakdown_cost sums every breakdown."""
    assert breakdown_cost(make_record(0, [0.5, 0.25, 0.25])) == 1.0
