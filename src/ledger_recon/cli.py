"""
Command-line interface for the ledger vs. bank statement reconciliation tool.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import load_config, generate_default_config, ReconConfig
from .models.divergence import Divergence
from .models.job import JobParameters, JobSummary, ReconciliationJob, SourceFile, SourceFormat
from .models.transaction import ParseResult
from .models.validation import ValidationResult, ValidationStatus, ValidationSummary
from .parsers.chart_parser import ChartOfAccountsLoader
from .parsers.ledger_text_parser import LedgerTextParser
from .pipeline.orchestrator import (
    ReconciliationOrchestrator,
    apply_sign_hint,
    resolve_statement_format,
    statement_parser,
)
from .pipeline.sinks import InMemorySink
from .reports.excel_generator import ExcelReportSink
from .utils.logging_config import setup_logging
from .validation.account_validator import AccountValidator
from .validation.stores import InMemoryChartOfAccounts, InMemoryRuleStore

console = Console()

PREVIEW_ROWS = 20
STATEMENT_FORMAT_CHOICES = ["csv", "ofx", "pdf"]


@click.group()
@click.version_option(version=__version__)
def main():
    """Ledger vs. bank statement reconciliation and account validation tool."""
    pass


@main.command()
@click.argument("ledger_files", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option(
    "-s",
    "--statement",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Bank statement file (CSV, OFX or PDF)",
)
@click.option(
    "--statement-format",
    type=click.Choice(STATEMENT_FORMAT_CHOICES, case_sensitive=False),
    default=None,
    help="Declared statement format (detected from extension/content when omitted)",
)
@click.option("--chart", type=click.Path(exists=True, path_type=Path), help="Chart of accounts (CSV/XLSX)")
@click.option("--chart-source", default=None, help="Chart-of-accounts identifier")
@click.option("--rules", type=click.Path(exists=True, path_type=Path), help="Validation rules (YAML)")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option(
    "--mode",
    type=click.Choice(["fuzzy", "strict"]),
    default=None,
    help="Matching mode (overrides configuration)",
)
@click.option("--amount-tolerance", type=float, default=None, help="Override amount tolerance")
@click.option("--date-window", type=int, default=None, help="Override fuzzy date window in days")
@click.option("--min-similarity", type=float, default=None, help="Override minimum description similarity")
@click.option("--strict", is_flag=True, help="Fail on the first parsing issue")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--dry-run", is_flag=True, help="Run the reconciliation and show the summary without writing a report"
)
def reconcile(
    ledger_files: tuple[Path, ...],
    statement: Path,
    statement_format: Optional[str],
    chart: Optional[Path],
    chart_source: Optional[str],
    rules: Optional[Path],
    config: Optional[Path],
    output: Optional[Path],
    mode: Optional[str],
    amount_tolerance: Optional[float],
    date_window: Optional[int],
    min_similarity: Optional[float],
    strict: bool,
    verbose: bool,
    dry_run: bool,
):
    """
    Reconcile ledger exports against one bank statement.

    LEDGER_FILES: One or more ledger text exports
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    setup_logging(log_level)

    try:
        recon_config = load_config(config)
        if not verbose:
            log_level = logging.getLevelName(recon_config.logging.level.upper())
            if not isinstance(log_level, int):
                log_level = logging.INFO
        setup_logging(log_level, log_format=recon_config.logging.format)
        if mode is not None:
            recon_config.matching.mode = mode

        source = chart_source or recon_config.validation.chart_source
        chart_store = _load_chart(recon_config, chart, source)
        rule_store = InMemoryRuleStore.from_yaml(rules) if rules else InMemoryRuleStore()

        if dry_run:
            sink = InMemorySink()
        else:
            sink = ExcelReportSink(recon_config, output_dir=Path.cwd(), output_path=output)

        job = ReconciliationJob(
            job_id=datetime.now().strftime("%Y%m%d%H%M%S"),
            ledger_sources=[SourceFile.from_path(path) for path in ledger_files],
            statement_source=SourceFile.from_path(
                statement, SourceFormat.parse(statement_format) if statement_format else None
            ),
            parameters=JobParameters(
                amount_tolerance=amount_tolerance,
                date_window_days=date_window,
                min_similarity=min_similarity,
                strict=strict,
                chart_source=source,
            ),
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Running reconciliation...", total=None)
            orchestrator = ReconciliationOrchestrator(recon_config, chart_store, rule_store, sink)
            outcome = orchestrator.run(job)
            progress.update(task, completed=True)

        if not outcome.succeeded:
            _display_issues(outcome.summary.parsing_issues)
            console.print(f"[red]Error: {outcome.error}[/red]")
            sys.exit(1)

        _display_summary(outcome.summary)
        _display_divergences(outcome.divergences)
        _display_issues(outcome.summary.parsing_issues)

        if dry_run:
            console.print("\n[yellow]Dry run - no report generated[/yellow]")
            return

        console.print(f"\n[green]Report generated: {sink.report_paths[job.job_id]}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command("parse-ledger")
@click.argument("ledger_file", type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("--strict", is_flag=True, help="Fail on the first parsing issue")
def parse_ledger(ledger_file: Path, config: Optional[Path], strict: bool):
    """
    Parse a ledger text export and display its entries.

    LEDGER_FILE: Path to the ledger export
    """
    recon_config = load_config(config)
    parser = LedgerTextParser(recon_config)

    try:
        result = parser.parse(ledger_file.read_bytes(), strict=strict, source_name=ledger_file.name)
        _display_parse_result(f"Ledger Entries: {ledger_file.name}", result, show_account=True)
    except Exception as e:
        console.print(f"[red]Error parsing file: {e}[/red]")
        sys.exit(1)


@main.command("parse-statement")
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "statement_format",
    type=click.Choice(STATEMENT_FORMAT_CHOICES, case_sensitive=False),
    default=None,
    help="Declared statement format",
)
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("--strict", is_flag=True, help="Fail on the first parsing issue")
def parse_statement(
    statement_file: Path, statement_format: Optional[str], config: Optional[Path], strict: bool
):
    """
    Parse a bank statement (CSV, OFX or PDF) and display its transactions.

    STATEMENT_FILE: Path to the bank statement
    """
    recon_config = load_config(config)

    try:
        source = SourceFile.from_path(
            statement_file, SourceFormat.parse(statement_format) if statement_format else None
        )
        resolved = resolve_statement_format(source)
        parser = statement_parser(resolved, recon_config)
        result = parser.parse(source.content, strict=strict, source_name=source.name)
        _display_parse_result(
            f"Statement Transactions ({resolved.value}): {statement_file.name}", result
        )
    except Exception as e:
        console.print(f"[red]Error parsing file: {e}[/red]")
        sys.exit(1)


@main.command("validate-accounts")
@click.argument("ledger_files", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--chart", required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--rules", type=click.Path(exists=True, path_type=Path))
@click.option("--chart-source", default=None, help="Chart-of-accounts identifier")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def validate_accounts(
    ledger_files: tuple[Path, ...],
    chart: Path,
    rules: Optional[Path],
    chart_source: Optional[str],
    config: Optional[Path],
):
    """
    Validate the account codes of ledger entries against a chart of accounts.

    LEDGER_FILES: One or more ledger text exports
    """
    recon_config = load_config(config)
    source = chart_source or recon_config.validation.chart_source

    try:
        chart_store = _load_chart(recon_config, chart, source)
        rule_store = InMemoryRuleStore.from_yaml(rules) if rules else InMemoryRuleStore()

        parser = LedgerTextParser(recon_config)
        ledger_config = recon_config.input.ledger
        entries = []
        for path in ledger_files:
            result = parser.parse(path.read_bytes(), source_name=path.name)
            entries.extend(
                apply_sign_hint(
                    result.transactions,
                    path.name,
                    ledger_config.payable_hints,
                    ledger_config.receivable_hints,
                )
            )

        results = AccountValidator(chart_store, rule_store).validate(entries, source)
        _display_validation(results)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _load_chart(
    config: ReconConfig, chart: Optional[Path], source: str
) -> InMemoryChartOfAccounts:
    if chart is None:
        return InMemoryChartOfAccounts()
    return InMemoryChartOfAccounts(ChartOfAccountsLoader(config).load_file(chart, source))


def _display_parse_result(title: str, result: ParseResult, show_account: bool = False) -> None:
    table = Table(title=title)
    table.add_column("Line")
    table.add_column("Date")
    table.add_column("Document")
    table.add_column("Amount", justify="right")
    if show_account:
        table.add_column("Account")
    table.add_column("Description")

    for txn in result.transactions[:PREVIEW_ROWS]:
        row = [
            str(txn.line_number or "-"),
            str(txn.date),
            txn.document_number or "-",
            f"{txn.amount:,.2f}",
        ]
        if show_account:
            row.append(txn.account_code or "-")
        row.append(txn.description[:40] + "..." if len(txn.description) > 40 else txn.description)
        table.add_row(*row)

    console.print(table)

    if len(result.transactions) > PREVIEW_ROWS:
        console.print(f"\n... and {len(result.transactions) - PREVIEW_ROWS} more transactions")

    console.print(f"\nTotal transactions: {len(result.transactions)}")
    _display_issues(result.issue_messages)


def _display_summary(summary: JobSummary) -> None:
    """Display reconciliation summary in console."""
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Statement Format", summary.statement_format or "-")
    table.add_row("Statement Transactions", str(summary.statement_count))
    table.add_row("Ledger Entries", str(summary.ledger_count))
    table.add_row("Duplicates Removed", str(summary.duplicates_removed))
    table.add_row("Matched", str(summary.matched_count))
    table.add_row("Divergences", str(summary.divergence_count))
    for divergence_type, count in summary.divergences_by_type.items():
        table.add_row(f"  {divergence_type}", str(count))
    for label, count in summary.validation.items():
        table.add_row(f"Accounts {label}", str(count))
    table.add_row("Processing Time", f"{summary.processing_time_seconds:.2f}s")

    console.print(table)


def _display_divergences(divergences: list[Divergence]) -> None:
    if not divergences:
        return

    table = Table(title="Divergences")
    table.add_column("Type", style="magenta")
    table.add_column("Description")

    for divergence in divergences[:PREVIEW_ROWS]:
        table.add_row(divergence.type.value, divergence.description)

    console.print(table)
    if len(divergences) > PREVIEW_ROWS:
        console.print(f"... and {len(divergences) - PREVIEW_ROWS} more divergences")


def _display_validation(results: list[ValidationResult]) -> None:
    styles = {
        ValidationStatus.OK: "green",
        ValidationStatus.INVALID: "red",
        ValidationStatus.UNKNOWN: "yellow",
    }

    table = Table(title="Account Validation")
    table.add_column("Entry")
    table.add_column("Account")
    table.add_column("Status")
    table.add_column("Reason")
    table.add_column("Message")

    for result in results[:PREVIEW_ROWS]:
        style = styles[result.status]
        table.add_row(
            result.transaction_key,
            result.account_code or "-",
            f"[{style}]{result.status.value}[/{style}]",
            result.reason_code.value,
            result.message,
        )

    console.print(table)

    summary = ValidationSummary.of(results)
    console.print(
        f"\nTotal: {summary.total}  ok: {summary.ok}  invalid: {summary.invalid}  unknown: {summary.unknown}"
    )


def _display_issues(issues: list[str]) -> None:
    if not issues:
        return
    console.print(f"\n[yellow]Parsing issues ({len(issues)}):[/yellow]")
    for issue in issues[:PREVIEW_ROWS]:
        console.print(f"  - {issue}", markup=False)
    if len(issues) > PREVIEW_ROWS:
        console.print(f"  ... and {len(issues) - PREVIEW_ROWS} more")


if __name__ == "__main__":
    main()
