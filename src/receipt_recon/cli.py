"""
Command-line interface for the receipt reconciliation engine.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, NoReturn, Optional
import asyncio
import logging
import os
import sys

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ReconConfig, generate_default_config, load_config
from .integrations.fuzzy_match_client import HttpFuzzyMatcher
from .matching.engine import ReconciliationEngine
from .models.ledger import MatchSuggestion
from .parsers.csv_importer import ReceiptImporter, StatementImporter, summarize_rows
from .reports.excel_generator import ExcelReportGenerator
from .reports.statistics import ReconciliationSummary
from .reports.unified import StatusFilter
from .storage.json_store import JsonWorkingSetStore
from .utils.exceptions import ConsistencyConflict, ReconciliationError
from .utils.logging_config import parse_level, setup_logging

console = Console()


def ledger_options(func: Callable) -> Callable:
    """Add the options shared by every command that opens a ledger."""
    options = [
        click.option(
            "-c",
            "--config",
            "config_path",
            type=click.Path(exists=True, path_type=Path),
            help="Path to configuration file (YAML)",
        ),
        click.option(
            "--store",
            type=click.Path(file_okay=False, path_type=Path),
            default=None,
            help="Directory holding saved ledgers (overrides storage.directory)",
        ),
        click.option("--ledger", default="default", show_default=True, help="Ledger key"),
        click.option("-v", "--verbose", is_flag=True, help="Enable verbose output"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _open_engine(
    config_path: Optional[Path],
    store_dir: Optional[Path],
    ledger: str,
    verbose: bool,
    with_suggestions: bool = False,
) -> ReconciliationEngine:
    """Load configuration and the stored working set into an engine."""
    recon_config = load_config(config_path)
    level = logging.DEBUG if verbose else parse_level(recon_config.logging.level)
    log_file = Path(recon_config.logging.file) if recon_config.logging.file else None
    setup_logging(level, log_file=log_file, log_format=recon_config.logging.format)

    store = JsonWorkingSetStore(
        store_dir or Path(recon_config.storage.directory),
        quota_bytes=recon_config.storage.quota_bytes,
    )
    working_set = store.load(ledger)

    fuzzy_matcher = _build_fuzzy_matcher(recon_config) if with_suggestions else None
    return ReconciliationEngine(
        recon_config,
        working_set=working_set,
        fuzzy_matcher=fuzzy_matcher,
        store=store,
        ledger_key=ledger,
    )


def _build_fuzzy_matcher(config: ReconConfig) -> Optional[HttpFuzzyMatcher]:
    settings = config.suggestions
    if not settings.endpoint:
        return None
    return HttpFuzzyMatcher(
        endpoint=settings.endpoint,
        api_key=os.environ.get(settings.api_key_env),
        timeout=settings.timeout_seconds,
        min_confidence=settings.min_confidence,
    )


def _fail(e: Exception, verbose: bool) -> NoReturn:
    console.print(f"[red]Error: {e}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def main():
    """Bank transaction to receipt reconciliation tool."""
    pass


@main.command("import-statement")
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@ledger_options
def import_statement(statement_file: Path, config_path, store, ledger, verbose):
    """
    Append transactions from a structured statement CSV.

    STATEMENT_FILE: CSV with date, description, signed amount and currency columns
    """
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
        transactions = StatementImporter(engine.config.input.statement).parse_file(statement_file)
        count = engine.ingest_statement(transactions)
    except ReconciliationError as e:
        _fail(e, verbose)

    summary = summarize_rows(transactions)
    console.print(
        f"[green]Imported {count} transactions "
        f"({summary['date_range']['start']} to {summary['date_range']['end']})[/green]"
    )


@main.command("import-receipts")
@click.argument("receipts_file", type=click.Path(exists=True, path_type=Path))
@ledger_options
def import_receipts(receipts_file: Path, config_path, store, ledger, verbose):
    """
    Add receipts from a structured receipts CSV.

    RECEIPTS_FILE: CSV with date, vendor, amount, currency and category columns
    """
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
        receipts = ReceiptImporter(engine.config.input.receipts).parse_file(receipts_file)
        count = engine.add_receipts(receipts)
    except ReconciliationError as e:
        _fail(e, verbose)

    console.print(f"[green]Imported {count} receipts[/green]")


@main.command()
@click.option("--date-window", type=click.IntRange(min=0), default=None, help="Override date window in days")
@ledger_options
def match(date_window: Optional[int], config_path, store, ledger, verbose):
    """Run the deterministic amount/currency/date matching pass."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
        if date_window is not None:
            engine.matcher.date_window_days = date_window
        count = engine.run_deterministic()
    except ReconciliationError as e:
        _fail(e, verbose)

    console.print(f"[green]{count} new exact matches[/green]")
    _display_summary(engine.statistics())


@main.command()
@click.option(
    "--rerun-deterministic/--no-rerun-deterministic",
    default=None,
    help="Run the deterministic pass before asking for suggestions",
)
@click.option("--review/--no-review", default=True, help="Review suggestions interactively")
@ledger_options
def suggest(rerun_deterministic: Optional[bool], review: bool, config_path, store, ledger, verbose):
    """Ask the fuzzy-match service for suggestions and review them."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose, with_suggestions=True)
        with console.status("Requesting suggestions..."):
            report = asyncio.run(
                engine.request_suggestions(
                    rerun_deterministic=rerun_deterministic,
                    timeout=engine.config.suggestions.timeout_seconds,
                )
            )
    except ReconciliationError as e:
        _fail(e, verbose)

    console.print(report.message)
    if not report.suggestions:
        return

    _display_suggestions(engine, report.suggestions)
    if review:
        _review_suggestions(engine)


@main.command()
@click.argument("transaction_id")
@click.argument("receipt_id")
@ledger_options
def link(transaction_id: str, receipt_id: str, config_path, store, ledger, verbose):
    """Manually link TRANSACTION_ID to RECEIPT_ID."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
        engine.link(transaction_id, receipt_id)
    except ReconciliationError as e:
        _fail(e, verbose)
    console.print(f"[green]Linked {transaction_id} -> {receipt_id}[/green]")


@main.command()
@click.argument("transaction_id")
@ledger_options
def unlink(transaction_id: str, config_path, store, ledger, verbose):
    """Remove the match on TRANSACTION_ID."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
        engine.unlink(transaction_id)
    except ReconciliationError as e:
        _fail(e, verbose)
    console.print(f"[green]Unlinked {transaction_id}[/green]")


@main.command()
@click.argument("transaction_id")
@ledger_options
def ignore(transaction_id: str, config_path, store, ledger, verbose):
    """Exclude TRANSACTION_ID from matching and coverage."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
        engine.ignore_transaction(transaction_id)
    except ReconciliationError as e:
        _fail(e, verbose)
    console.print(f"[green]Ignoring {transaction_id}[/green]")


@main.command()
@click.argument("transaction_id")
@ledger_options
def restore(transaction_id: str, config_path, store, ledger, verbose):
    """Return an ignored TRANSACTION_ID to the unmatched pool."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
        engine.restore_transaction(transaction_id)
    except ReconciliationError as e:
        _fail(e, verbose)
    console.print(f"[green]Restored {transaction_id}[/green]")


@main.command()
@ledger_options
def stats(config_path, store, ledger, verbose):
    """Show reconciliation coverage and variance."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose)
    except ReconciliationError as e:
        _fail(e, verbose)
    _display_summary(engine.statistics())


@main.command()
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option(
    "--filter",
    "status_filter",
    type=click.Choice([f.value for f in StatusFilter]),
    default=StatusFilter.ALL.value,
    show_default=True,
)
@ledger_options
def report(output: Optional[Path], status_filter: str, config_path, store, ledger, verbose):
    """Write an Excel reconciliation report."""
    try:
        engine = _open_engine(config_path, store, ledger, verbose)

        if output is None:
            now = datetime.now()
            output = Path(
                engine.config.output.excel.filename_template.format(
                    date=now.strftime("%Y%m%d"), time=now.strftime("%H%M%S")
                )
            )

        report_path = ExcelReportGenerator(engine.config).generate_report(
            summary=engine.statistics(),
            rows=engine.unified_report(StatusFilter(status_filter)),
            history=engine.working_set.history,
            output_path=output,
        )
    except ReconciliationError as e:
        _fail(e, verbose)

    console.print(f"\n[green]Report generated: {report_path}[/green]")


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _display_summary(summary: ReconciliationSummary) -> None:
    """Display reconciliation summary in console."""
    currency = summary.reporting_currency
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Transactions", str(summary.total_transactions))
    table.add_row("Ignored", str(summary.ignored_count))
    table.add_row("Matched", str(summary.matched_count))
    for origin, count in summary.matches_by_origin.items():
        table.add_row(f"  {origin.value.title()}", str(count))
    table.add_row("Missing Receipts", str(summary.missing_receipts))
    table.add_row("Receipts Not In Bank", str(summary.unmatched_receipts))
    table.add_row("Count Coverage", f"{summary.count_coverage:.1%}")
    table.add_row("Value Coverage", f"{summary.value_coverage:.1%}")
    table.add_row("Matched Value", f"{summary.matched_expense_value:,.2f} {currency}")
    table.add_row("Unmatched Value", f"{summary.unmatched_expense_value:,.2f} {currency}")
    table.add_row("Total Variance", f"{summary.total_amount_variance:,.2f} {currency}")

    console.print(table)


def _display_suggestions(engine: ReconciliationEngine, suggestions: list[MatchSuggestion]) -> None:
    table = Table(title="Suggested Matches")
    table.add_column("#", justify="right")
    table.add_column("Transaction")
    table.add_column("Receipt")
    table.add_column("Confidence", justify="right")
    table.add_column("Reasoning")

    for i, suggestion in enumerate(suggestions, start=1):
        table.add_row(
            str(i),
            _describe_transaction(engine, suggestion.transaction_id),
            _describe_receipt(engine, suggestion.receipt_id),
            f"{suggestion.confidence:.0%}",
            suggestion.rationale,
        )

    console.print(table)


def _review_suggestions(engine: ReconciliationEngine) -> None:
    """Ask the operator to accept, dismiss or skip each pending suggestion."""
    for suggestion in list(engine.pending_suggestions):
        if suggestion not in engine.pending_suggestions:
            continue  # Removed by an earlier acceptance
        console.print(
            f"\n{_describe_transaction(engine, suggestion.transaction_id)}  <->  "
            f"{_describe_receipt(engine, suggestion.receipt_id)}"
        )
        choice = click.prompt(
            "Accept, dismiss or skip?",
            type=click.Choice(["a", "d", "s"]),
            default="s",
        )
        if choice == "a":
            try:
                engine.accept(suggestion)
                console.print("[green]Accepted[/green]")
            except ConsistencyConflict as e:
                console.print(f"[yellow]Skipped stale suggestion: {e}[/yellow]")
        elif choice == "d":
            engine.dismiss(suggestion)


def _describe_transaction(engine: ReconciliationEngine, transaction_id: str) -> str:
    txn = engine.working_set.find_transaction(transaction_id)
    if txn is None:
        return transaction_id
    return f"{txn.date} {txn.description} {txn.amount}"


def _describe_receipt(engine: ReconciliationEngine, receipt_id: str) -> str:
    receipt = engine.working_set.find_receipt(receipt_id)
    if receipt is None:
        return receipt_id
    return f"{receipt.date} {receipt.vendor} {receipt.amount}"


if __name__ == "__main__":
    main()
