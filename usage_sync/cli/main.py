"""
CLI interface for usage-sync.

Provides command-line access to merging provider usage reports into the
usage JSON document.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from usage_sync.config.loader import SyncConfig, load_sync_config
from usage_sync.core.context import RunContext
from usage_sync.core.pipeline import RunOptions, RunOutcome, RunReport, run_merge
from usage_sync.core.validator import ReconciliationError
from usage_sync.logging_config import setup_logging
from usage_sync.sources.fetcher import fetch_reports
from usage_sync.sources.providers import CLAUDE_CODE, CODEX, PROVIDERS, decode_import, resolve_provider
from usage_sync.storage.models import DailyRecord
from usage_sync.storage.repository import UsageRepository, blank_document, resolve_init_target

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Merge AI usage reports into a single usage document."""
    if ctx.invoked_subcommand is None:
        console.print("usage-sync - Use --help to see available commands")


@app.command()
def init(
    target: Optional[str] = typer.Argument(
        None,
        help="Target directory or file path (default: public/data/cc.json)"
    ),
    out: Optional[str] = typer.Option(
        None,
        "--out",
        "-o",
        help="Explicit output file path (overrides target)"
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing file"
    )
):
    """Create an empty usage document."""
    setup_logging()
    path = Path(out) if out else resolve_init_target(target)
    repository = UsageRepository(str(path))

    if repository.exists():
        if not force:
            console.print(f"[red]File already exists:[/] {escape(str(path))}")
            console.print("Use --force to overwrite, or choose a different path")
            sys.exit(EXIT_CODE_FAIL)
        logger.warning("Overwriting existing file: %s", path)

    repository.write(blank_document(PROVIDERS))
    console.print(f"[green]✓[/] Initialized blank usage document at {escape(str(path))}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def sync(
    file: str = typer.Argument(..., help="JSON file containing usage data to merge"),
    provider: str = typer.Argument(..., help="Provider type: 'claude' or 'codex'"),
    base: Optional[str] = typer.Option(None, "--base", help="Usage document to merge into"),
    out: Optional[str] = typer.Option(None, "--out", help="Output file path (default: same as base)"),
    accept_lower: bool = typer.Option(
        False,
        "--accept-lower",
        help="Replace entries even if the token count decreases"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "--dry",
        help="Preview changes without writing files"
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log decoding details"),
):
    """
    Merge usage data from a JSON file into the usage document.

    Conflicts (incoming data with fewer tokens than recorded) are asked
    about interactively when attached to a terminal.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    settings = _load_config(config)

    resolved = resolve_provider(provider)
    if resolved is None:
        console.print(f"[red]Invalid provider:[/] '{escape(provider)}'")
        console.print("\nValid providers: 'claude' or 'codex'")
        sys.exit(EXIT_CODE_FAIL)

    input_path = Path(file)
    if not input_path.is_file():
        console.print(f"[red]Input file not found:[/] {escape(str(input_path))}")
        sys.exit(EXIT_CODE_FAIL)

    try:
        raw = json.loads(input_path.read_text(encoding="utf-8"))
    except ValueError as e:
        console.print(f"[red]Invalid JSON in {escape(str(input_path))}:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    run = RunContext(audit_imports=settings.audit_imports)
    records = decode_import(resolved, raw, f"sync:{resolved.key}", run)

    options = _run_options(
        settings, base, out, dry_run, accept_lower,
        interactive=sys.stdout.isatty() and not dry_run,
    )
    _execute(options, {resolved.key: records}, run)


@app.command()
def auto(
    base: Optional[str] = typer.Option(None, "--base", help="Usage document to merge into"),
    out: Optional[str] = typer.Option(None, "--out", help="Output file path (default: same as base)"),
    claude_cmd: Optional[str] = typer.Option(
        None,
        "--claude-cmd",
        help="Command printing the Claude Code usage report as JSON"
    ),
    codex_cmd: Optional[str] = typer.Option(
        None,
        "--codex-cmd",
        help="Command printing the Codex usage report as JSON"
    ),
    accept_lower: bool = typer.Option(
        False,
        "--accept-lower",
        help="Replace entries even if the token count decreases"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "--dry",
        help="Preview changes without writing files"
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log decoding details"),
):
    """
    Fetch the latest usage reports from all providers and merge them.

    Both providers are fetched concurrently; a provider whose fetch fails
    is skipped and its existing data is kept.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    settings = _load_config(config)

    commands = settings.commands.by_provider()
    if claude_cmd:
        commands[CLAUDE_CODE] = claude_cmd
    if codex_cmd:
        commands[CODEX] = codex_cmd

    reports = asyncio.run(fetch_reports(
        {PROVIDERS[key].label: command for key, command in commands.items()}
    ))

    run = RunContext(audit_imports=settings.audit_imports)
    imports: Dict[str, List[DailyRecord]] = {}
    for key, provider in PROVIDERS.items():
        raw = reports.get(provider.label)
        if raw is None:
            logger.warning("Failed to fetch %s data - continuing with existing data", provider.label)
            continue
        imports[key] = decode_import(provider, raw, f"import:{key}", run)

    options = _run_options(settings, base, out, dry_run, accept_lower, interactive=False)
    _execute(options, imports, run)


def _load_config(path: Optional[str]) -> SyncConfig:
    try:
        return load_sync_config(path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)


def _run_options(
    settings: SyncConfig,
    base: Optional[str],
    out: Optional[str],
    dry_run: bool,
    accept_lower: bool,
    interactive: bool,
) -> RunOptions:
    return RunOptions(
        base_path=base or settings.base_path,
        output_path=out or (None if base else settings.target_path),
        dry_run=dry_run,
        accept_lower=accept_lower or settings.accept_lower,
        interactive=interactive,
    )


def _ask(question: str) -> str:
    """Prompt on the console; the answer is interpreted by the caller."""
    return console.input(f"[yellow]⚠[/]  {escape(question)}")


def _execute(options: RunOptions, imports: Dict[str, List[DailyRecord]], run: RunContext) -> None:
    try:
        report = run_merge(options, imports, asker=_ask, run=run)
    except ReconciliationError as e:
        console.print("[red]Cost reconciliation failed. Nothing was written.[/]")
        console.print(escape(str(e)))
        sys.exit(EXIT_CODE_FAIL)
    except ValueError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    _display_report(report)
    sys.exit(EXIT_CODE_PASS)


def _display_report(report: RunReport) -> None:
    """Display what the run changed."""
    dry_run = report.outcome is RunOutcome.DRY_RUN

    if dry_run:
        for key in PROVIDERS:
            section = report.document.get(key)
            if section:
                console.print(f"[dim]\\[DRY RUN] {PROVIDERS[key].label} entries: {len(section['daily'])}[/]")

    if report.run.reconciliations:
        heading = "Detected cost discrepancies" if dry_run else "Reconciled daily totals"
        console.print(f"\n[bold]{heading}:[/bold]")
        for record in report.run.reconciliations:
            console.print(
                f"  {escape(record.context)} [yellow]{escape(record.date)}[/] - "
                f"[dim]{record.before:.6f}[/] -> [green]{record.after:.6f}[/] ({record.delta:+.6f})"
            )

    if dry_run:
        console.print("\n[dim]Run without --dry-run to apply changes[/]")
        return

    table = Table(title="Summary")
    table.add_column("Provider")
    table.add_column("Added", justify="right")
    table.add_column("Replaced", justify="right")
    table.add_column("Unchanged", justify="right")
    table.add_column("Conflicts resolved", justify="right")
    table.add_column("Conflicts kept", justify="right")
    for provider in report.providers:
        table.add_row(
            provider.label,
            str(len(provider.added)),
            str(len(provider.replaced)),
            str(len(provider.unchanged)),
            str(len(provider.conflicts_resolved)),
            str(len(provider.conflicts_kept)),
        )
    console.print()
    console.print(table)

    summary = [
        ("Added", report.count("added"), "green"),
        ("Replaced", report.count("replaced"), "yellow"),
        ("Unchanged", report.count("unchanged"), "dim"),
        ("Reconciled", len(report.run.reconciliations), "cyan"),
    ]
    printed = [item for item in summary if item[1] > 0]
    if printed:
        for label, count, style in printed:
            console.print(f"  {label}: [{style}]{count}[/]")
    else:
        console.print("  [dim]No changes.[/]")

    resolved = report.count("conflicts_resolved")
    kept = report.count("conflicts_kept")
    if resolved or kept:
        console.print(f"  Conflicts: [green]{resolved} resolved[/], [yellow]{kept} kept[/]")

    if "totals" in report.document:
        totals = report.document["totals"]
        console.print(
            f"  Total: [green]${totals['totalCost']:,.2f}[/] ({totals['totalTokens']:,} tokens)"
        )


if __name__ == "__main__":
    app()
