"""
Merge run orchestration.

A run moves through these states:
1. Load - decode and reconcile the existing document
2. Merge - per provider, merge incoming records and resolve conflicts
3. Combine - rebuild the cross-provider dataset
4. Validate - abort on any unreconciled record
5. Select totals - per provider dataset and for the combined dataset
6. Write - serialize only if the output differs (skipped in dry-run)

Validation failure raises ReconciliationError before anything is written.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from usage_sync.sources.providers import PROVIDERS, Provider
from usage_sync.storage.models import DailyRecord, ProviderDataset, Totals
from usage_sync.storage.repository import UsageRepository
from .combiner import combine_datasets, combined_records
from .conflicts import Asker, ConflictPolicy, resolve_conflicts, strategy_for_policy
from .context import RunContext
from .merger import merge_records
from .normalizer import dated_records, decode_dataset, decode_totals
from .totals import TotalsDecision, select_totals
from .validator import validate_reconciled

logger = logging.getLogger(__name__)

COMBINED_LABEL = "Combined"


class RunOutcome(Enum):
    """Terminal state of a successful run."""
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    DRY_RUN = "dry_run"


@dataclass(frozen=True)
class RunOptions:
    """Options supplied by the caller for one run."""
    base_path: str
    output_path: Optional[str] = None
    dry_run: bool = False
    accept_lower: bool = False
    interactive: bool = False

    @property
    def target_path(self) -> str:
        return self.output_path or self.base_path


@dataclass
class UsageDocument:
    """Provider datasets and the stored combined totals of a document."""
    datasets: Dict[str, ProviderDataset]
    stored_totals: Optional[Totals] = None


@dataclass
class ProviderReport:
    """What a run did to one provider's dataset."""
    provider: str
    label: str
    added: List[str] = field(default_factory=list)
    replaced: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    conflicts_resolved: List[str] = field(default_factory=list)
    conflicts_kept: List[str] = field(default_factory=list)


@dataclass
class RunReport:
    """Structured result of a run for the caller to print or assert on."""
    run: RunContext
    outcome: RunOutcome
    document: Dict[str, Any]
    providers: List[ProviderReport] = field(default_factory=list)
    totals: Dict[str, TotalsDecision] = field(default_factory=dict)

    def count(self, attribute: str) -> int:
        return sum(len(getattr(report, attribute)) for report in self.providers)


def load_document(raw: Any, run: RunContext) -> UsageDocument:
    """Decode an existing document; every record is reconciled on entry."""
    raw = raw if isinstance(raw, dict) else {}
    datasets = {}
    for key in PROVIDERS:
        context = f"existing:{key}"
        decoded = decode_dataset(raw.get(key), context, run)
        if not decoded.clean:
            logger.warning(
                "%s: %d field(s) in the stored document were defaulted",
                context, len(decoded.issues),
            )
        section = decoded.value
        records = {record.date: record for record in dated_records(section.daily, context, run)}
        datasets[key] = ProviderDataset(name=key, records=records, totals=section.totals)

    stored_totals = None
    if isinstance(raw.get("totals"), dict):
        stored_totals = decode_totals(raw["totals"], "existing:totals").value
    return UsageDocument(datasets=datasets, stored_totals=stored_totals)


def merge_provider(
    document: UsageDocument,
    provider: Provider,
    incoming: List[DailyRecord],
    policy: ConflictPolicy,
    asker: Optional[Asker] = None,
) -> ProviderReport:
    """Merge one provider's incoming records and resolve its conflicts."""
    dataset = document.datasets[provider.key]
    stats = merge_records(incoming, dataset.records)
    strategy = strategy_for_policy(policy, asker)
    outcome = resolve_conflicts(provider.label, stats, dataset.records, strategy)

    logger.info(
        "%s: Added %d, Replaced %d, Unchanged %d",
        provider.label, len(stats.added), len(stats.replaced), len(stats.unchanged),
    )
    if outcome.resolved or outcome.skipped:
        logger.info(
            "%s: Conflicts resolved %d, kept %d",
            provider.label, len(outcome.resolved), len(outcome.skipped),
        )

    return ProviderReport(
        provider=provider.key,
        label=provider.label,
        added=stats.added,
        replaced=stats.replaced,
        unchanged=stats.unchanged,
        conflicts_resolved=outcome.resolved,
        conflicts_kept=outcome.skipped,
    )


def build_payload(
    document: UsageDocument,
    run: RunContext,
    interactive: bool = False,
    dry_run: bool = False,
    asker: Optional[Asker] = None,
) -> Tuple[Dict[str, Any], Dict[str, TotalsDecision]]:
    """Combine, validate and select totals; return the document to write.

    Raises:
        ReconciliationError: If any dataset holds an unreconciled record
    """
    combined = combined_records(combine_datasets(document.datasets.values(), run))

    validate_reconciled(f"{COMBINED_LABEL} dataset", combined)
    for key, dataset in document.datasets.items():
        validate_reconciled(f"{PROVIDERS[key].label} dataset", dataset.sorted_records())

    payload: Dict[str, Any] = {}
    decisions: Dict[str, TotalsDecision] = {}

    if combined:
        decision = select_totals(
            COMBINED_LABEL, combined, document.stored_totals,
            interactive=interactive, dry_run=dry_run, asker=asker,
        )
        decisions[COMBINED_LABEL] = decision
        payload["totals"] = decision.totals.to_dict()

    for key, dataset in document.datasets.items():
        records = dataset.sorted_records()
        if not records:
            continue
        decision = select_totals(
            PROVIDERS[key].label, records, dataset.totals,
            interactive=interactive, dry_run=dry_run, asker=asker,
        )
        decisions[key] = decision
        payload[key] = {
            "daily": [record.to_dict() for record in records],
            "totals": decision.totals.to_dict(),
        }

    return payload, decisions


def run_merge(
    options: RunOptions,
    imports: Dict[str, List[DailyRecord]],
    repository: Optional[UsageRepository] = None,
    asker: Optional[Asker] = None,
    run: Optional[RunContext] = None,
) -> RunReport:
    """Merge decoded provider records into the document at ``options.base_path``.

    Args:
        options: Paths and run policy
        imports: Provider key -> decoded records for that provider. A
            provider missing from the mapping contributes no new data.
        repository: Repository of the output document (defaults to
            ``options.target_path``)
        asker: Prompt callback for interactive runs
        run: Run context; a fresh one is created when omitted

    Returns:
        RunReport with per-provider stats, totals decisions and audit trail

    Raises:
        ReconciliationError: If validation fails; nothing is written
    """
    if run is None:
        run = RunContext()
    base = UsageRepository(options.base_path)
    output = repository or UsageRepository(options.target_path)

    document = load_document(base.load(), run)
    interactive = options.interactive and not options.dry_run
    policy = ConflictPolicy(
        interactive=interactive,
        dry_run=options.dry_run,
        accept_lower=options.accept_lower,
    )

    reports = []
    for key, records in imports.items():
        reports.append(merge_provider(document, PROVIDERS[key], records, policy, asker))

    payload, decisions = build_payload(
        document, run, interactive=interactive, dry_run=options.dry_run, asker=asker,
    )

    for issue in run.decode_issues:
        logger.debug("%s: defaulted %s (%s)", issue.context, issue.path or "<root>", issue.reason)

    if options.dry_run:
        outcome = RunOutcome.DRY_RUN
        logger.info("[DRY RUN] No files were written")
    elif output.write_if_changed(payload):
        outcome = RunOutcome.WRITTEN
        logger.info("Successfully wrote merged data to %s", output.path)
    else:
        outcome = RunOutcome.UNCHANGED
        logger.info("No changes.")

    return RunReport(
        run=run,
        outcome=outcome,
        document=payload,
        providers=reports,
        totals=decisions,
    )
