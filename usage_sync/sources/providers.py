"""
Provider registry.

Maps provider names and their aliases to dataset keys and decodes raw
provider JSON into records.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from usage_sync.core.context import RunContext
from usage_sync.core.normalizer import dated_records, decode_dataset
from usage_sync.storage.models import DailyRecord
from .codex import convert_codex_report, is_codex_report

logger = logging.getLogger(__name__)

CLAUDE_CODE = "claudeCode"
CODEX = "codex"


@dataclass(frozen=True)
class Provider:
    """A usage source with its own dataset section."""
    key: str
    label: str


PROVIDERS: Dict[str, Provider] = {
    CLAUDE_CODE: Provider(CLAUDE_CODE, "Claude Code"),
    CODEX: Provider(CODEX, "Codex"),
}

PROVIDER_ALIASES: Dict[str, str] = {
    "claude": CLAUDE_CODE,
    "claudecode": CLAUDE_CODE,
    "anthropic": CLAUDE_CODE,
    "ccusage": CLAUDE_CODE,
    "codex": CODEX,
    "openai": CODEX,
}


def resolve_provider(name: str) -> Optional[Provider]:
    """Look up a provider by key or alias, case-insensitively."""
    key = PROVIDER_ALIASES.get(name.strip().lower())
    return PROVIDERS.get(key) if key else None


def decode_import(
    provider: Provider,
    raw: Any,
    context: str,
    run: RunContext,
) -> List[DailyRecord]:
    """Decode one provider's raw report into reconciled records.

    Codex-shaped reports go through the Codex converter; anything else is
    treated as a ``{daily, totals}`` dataset and normalized. Records
    without a date are dropped.
    """
    if provider.key == CODEX and is_codex_report(raw):
        return dated_records(convert_codex_report(raw, run), context, run)

    decoded = decode_dataset(raw, context, run)
    if not decoded.clean:
        logger.warning(
            "%s: %d field(s) in the %s report were defaulted",
            context, len(decoded.issues), provider.label,
        )
    return dated_records(decoded.value.daily, context, run)
