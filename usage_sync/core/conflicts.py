"""
Resolution of data-loss conflicts.

A conflict is an incoming record that would lower a day's recorded token
count. Conflicts are never dropped silently: each one is either resolved
(the incoming record replaces the existing one) or kept and reported.

Strategies:
1. DryRunPreview - reports what would happen, never mutates
2. AutoAccept - operator asked to accept lower values
3. AutoKeep - non-interactive default, keeps existing data
4. Interactive - asks once per conflict
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from usage_sync.storage.models import DailyRecord, MergeConflict
from .merger import MergeStats

logger = logging.getLogger(__name__)

YES_PATTERN = re.compile(r"^(y|yes)$", re.IGNORECASE)

Asker = Callable[[str], str]


class Resolution(Enum):
    """Outcome for a single conflict."""
    REPLACE = "replace"
    KEEP = "keep"


@dataclass(frozen=True)
class ConflictPolicy:
    """Run options that select a resolution strategy."""
    interactive: bool = False
    dry_run: bool = False
    accept_lower: bool = False


@dataclass
class ConflictOutcome:
    """Dates resolved in favor of the incoming record vs. kept as-is."""
    resolved: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def is_yes(answer: Optional[str]) -> bool:
    return bool(YES_PATTERN.match((answer or "").strip()))


def describe_conflict(label: str, conflict: MergeConflict) -> str:
    return (
        f"{label} {conflict.date}: existing {conflict.existing.total_tokens:,} tokens, "
        f"incoming {conflict.incoming.total_tokens:,} tokens"
    )


class ConflictResolutionStrategy:
    """Decides the fate of each conflict.

    ``applies_changes`` is False for strategies that only report.
    """
    applies_changes = True

    def decide(self, label: str, conflict: MergeConflict) -> Resolution:
        raise NotImplementedError


class AutoAccept(ConflictResolutionStrategy):
    """Always take the incoming, lower-token record."""

    def decide(self, label: str, conflict: MergeConflict) -> Resolution:
        logger.warning("Conflict override (accept-lower) - %s", describe_conflict(label, conflict))
        return Resolution.REPLACE


class AutoKeep(ConflictResolutionStrategy):
    """Keep the existing record and report the conflict."""

    def decide(self, label: str, conflict: MergeConflict) -> Resolution:
        logger.warning("Conflict detected - %s (kept existing)", describe_conflict(label, conflict))
        return Resolution.KEEP


class Interactive(ConflictResolutionStrategy):
    """Ask the operator once per conflict; only y/yes replaces."""

    def __init__(self, asker: Asker):
        self.asker = asker

    def decide(self, label: str, conflict: MergeConflict) -> Resolution:
        answer = self.asker(
            f"{describe_conflict(label, conflict)}\n   Replace existing entry? (y/N) "
        )
        if is_yes(answer):
            logger.info("Conflict resolved - replaced %s", conflict.date)
            return Resolution.REPLACE
        logger.info("Conflict kept - retained existing data for %s", conflict.date)
        return Resolution.KEEP


class DryRunPreview(ConflictResolutionStrategy):
    """Report the decision that would be taken without applying it."""
    applies_changes = False

    def __init__(self, accept_lower: bool = False):
        self.accept_lower = accept_lower

    def decide(self, label: str, conflict: MergeConflict) -> Resolution:
        if self.accept_lower:
            logger.info("[DRY RUN] Would replace %s", describe_conflict(label, conflict))
            return Resolution.REPLACE
        logger.info(
            "[DRY RUN] Conflict detected - %s (kept existing)", describe_conflict(label, conflict)
        )
        return Resolution.KEEP


def strategy_for_policy(
    policy: ConflictPolicy,
    asker: Optional[Asker] = None,
) -> ConflictResolutionStrategy:
    """Pick the strategy for a policy.

    Precedence: dry-run, then accept-lower, then non-interactive keep,
    then interactive prompting.

    Raises:
        ValueError: If the policy is interactive but no asker is given
    """
    if policy.dry_run:
        return DryRunPreview(accept_lower=policy.accept_lower)
    if policy.accept_lower:
        return AutoAccept()
    if not policy.interactive:
        return AutoKeep()
    if asker is None:
        raise ValueError("an asker is required for interactive conflict resolution")
    return Interactive(asker)


def resolve_conflicts(
    label: str,
    stats: MergeStats,
    target: Dict[str, DailyRecord],
    strategy: ConflictResolutionStrategy,
) -> ConflictOutcome:
    """Apply ``strategy`` to every conflict in ``stats``, in order.

    Resolved dates are folded into ``stats.replaced``; ``stats.conflicts``
    is left holding only the conflicts that were kept.

    Args:
        label: Provider label for log messages
        stats: Result of the merge that produced the conflicts
        target: Date-keyed records of the provider (mutated unless dry-run)
        strategy: How to decide each conflict

    Returns:
        Resolved and skipped dates
    """
    outcome = ConflictOutcome()
    if not stats.conflicts:
        return outcome

    remaining = []
    for conflict in stats.conflicts:
        if strategy.decide(label, conflict) is Resolution.REPLACE:
            if strategy.applies_changes:
                target[conflict.date] = conflict.incoming
            outcome.resolved.append(conflict.date)
        else:
            outcome.skipped.append(conflict.date)
            remaining.append(conflict)

    stats.replaced.extend(outcome.resolved)
    stats.conflicts = remaining
    return outcome
