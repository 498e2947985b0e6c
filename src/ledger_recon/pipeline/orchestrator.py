"""
Reconciliation job orchestration.

Runs one job through parse -> de-duplicate -> match -> validate -> persist,
driving the job state machine and reporting status to an output sink.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import PurePath
from typing import Optional
import logging
import time

from ..config import ReconConfig
from ..matching.engine import ReconciliationEngine
from ..models.divergence import Divergence, MatchedPair
from ..models.job import JobStatus, JobSummary, ReconciliationJob, SourceFile, SourceFormat
from ..models.transaction import Transaction
from ..models.validation import ValidationResult, ValidationSummary
from ..parsers.base import BaseParser
from ..parsers.ledger_text_parser import LedgerTextParser
from ..parsers.statement_csv_parser import StatementCsvParser
from ..parsers.statement_ofx_parser import OFX_MARKER_PATTERN, StatementOfxParser
from ..parsers.statement_pdf_parser import StatementPdfParser
from ..utils.exceptions import MissingInputError, UnsupportedFormatError
from ..utils.locale_values import cents
from ..validation.account_validator import AccountValidator
from ..validation.stores import (
    ChartOfAccounts,
    InMemoryChartOfAccounts,
    InMemoryRuleStore,
    OutputSink,
    RuleStore,
)
from .sinks import InMemorySink

logger = logging.getLogger(__name__)

STATEMENT_EXTENSIONS = {
    ".csv": SourceFormat.STATEMENT_CSV,
    ".ofx": SourceFormat.STATEMENT_OFX,
    ".pdf": SourceFormat.STATEMENT_PDF,
}

PDF_MAGIC = b"%PDF"
SNIFF_BYTES = 2048
DEDUP_DESCRIPTION_LENGTH = 50


@dataclass
class JobOutcome:
    """Everything one job produced, including a failed job's diagnostics."""

    job_id: str
    status: JobStatus
    error: Optional[str] = None
    divergences: list[Divergence] = field(default_factory=list)
    pairs: list[MatchedPair] = field(default_factory=list)
    validation_results: list[ValidationResult] = field(default_factory=list)
    statement_transactions: list[Transaction] = field(default_factory=list)
    ledger_transactions: list[Transaction] = field(default_factory=list)
    summary: JobSummary = field(default_factory=JobSummary)

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.COMPLETED


def resolve_statement_format(source: SourceFile) -> SourceFormat:
    """
    Pick the statement format: declared, else by extension, else by content.

    Raises:
        UnsupportedFormatError: If the declared format is not a statement format
    """
    if source.format is not None:
        if source.format is SourceFormat.LEDGER_TEXT:
            raise UnsupportedFormatError(
                f"Unsupported statement format '{source.format.value}' for {source.name}"
            )
        return source.format

    extension = PurePath(source.name).suffix.lower()
    if extension in STATEMENT_EXTENSIONS:
        return STATEMENT_EXTENSIONS[extension]

    head = source.content[:SNIFF_BYTES]
    if head.lstrip().startswith(PDF_MAGIC):
        return SourceFormat.STATEMENT_PDF
    if OFX_MARKER_PATTERN.search(head.decode("latin-1")):
        return SourceFormat.STATEMENT_OFX
    return SourceFormat.STATEMENT_CSV


def statement_parser(statement_format: SourceFormat, config: Optional[ReconConfig] = None) -> BaseParser:
    """Parser instance for a statement format."""
    if statement_format is SourceFormat.STATEMENT_CSV:
        return StatementCsvParser(config)
    if statement_format is SourceFormat.STATEMENT_OFX:
        return StatementOfxParser(config)
    if statement_format is SourceFormat.STATEMENT_PDF:
        return StatementPdfParser(config)
    raise UnsupportedFormatError(f"Unsupported statement format: {statement_format.value}")


def apply_sign_hint(
    txns: list[Transaction],
    source_name: str,
    payable_hints: list[str],
    receivable_hints: list[str],
) -> list[Transaction]:
    """
    Force the sign of a ledger export's amounts from its file name.

    Payable exports become debits (negative), receivable exports credits.
    """
    name = source_name.upper()
    if any(hint.upper() in name for hint in payable_hints):
        return [replace(txn, amount=-abs(txn.amount)) for txn in txns]
    if any(hint.upper() in name for hint in receivable_hints):
        return [replace(txn, amount=abs(txn.amount)) for txn in txns]
    return txns


def deduplicate(txns: list[Transaction]) -> tuple[list[Transaction], int]:
    """
    Drop repeated entries across ledger files, keeping the first occurrence.

    Key: date, first 50 characters of the upper-cased description, amount in cents.

    Returns:
        Tuple of (unique transactions, number removed)
    """
    seen: set[tuple] = set()
    unique: list[Transaction] = []
    for txn in txns:
        key = (
            txn.date,
            txn.description.strip().upper()[:DEDUP_DESCRIPTION_LENGTH],
            cents(txn.amount),
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(txn)
    return unique, len(txns) - len(unique)


class ReconciliationOrchestrator:
    """
    Runs reconciliation jobs end to end.

    Stages run strictly in sequence and each job only touches its own
    transaction lists, so independent jobs can run concurrently.
    """

    def __init__(
        self,
        config: Optional[ReconConfig] = None,
        chart: Optional[ChartOfAccounts] = None,
        rules: Optional[RuleStore] = None,
        sink: Optional[OutputSink] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Application configuration
            chart: Chart-of-accounts lookup (empty when omitted)
            rules: Validation rule store (empty when omitted)
            sink: Output sink (in-memory when omitted)
        """
        self.config = config or ReconConfig()
        self.chart = chart or InMemoryChartOfAccounts()
        self.rules = rules or InMemoryRuleStore()
        self.sink = sink or InMemorySink()
        self.engine = ReconciliationEngine(self.config)
        self.validator = AccountValidator(self.chart, self.rules)

    def run(self, job: ReconciliationJob) -> JobOutcome:
        """
        Run one job through the state machine.

        Failures are captured rather than raised: the job ends ``failed`` with
        the original error message, persisted outputs are cleared and the
        parsing issues gathered so far are kept in the status update.

        Args:
            job: Pending reconciliation job

        Returns:
            JobOutcome describing the result
        """
        start_time = time.time()
        issues: list[str] = []

        job.transition(JobStatus.PROCESSING)
        self.sink.update_job_status(job.job_id, JobStatus.PROCESSING)
        logger.info(f"Job {job.job_id}: processing")

        try:
            outcome = self._process(job, issues)
            outcome.summary.processing_time_seconds = time.time() - start_time
            self.sink.update_job_status(job.job_id, JobStatus.COMPLETED, summary=outcome.summary)
        except Exception as e:
            logger.error(f"Job {job.job_id} failed: {e}")
            job.error = str(e)
            job.transition(JobStatus.FAILED)
            self.sink.clear_job_outputs(job.job_id)
            summary = JobSummary(
                parsing_issues=list(issues),
                processing_time_seconds=time.time() - start_time,
            )
            self.sink.update_job_status(job.job_id, JobStatus.FAILED, error=job.error, summary=summary)
            return JobOutcome(job_id=job.job_id, status=JobStatus.FAILED, error=job.error, summary=summary)

        job.transition(JobStatus.COMPLETED)
        outcome.status = JobStatus.COMPLETED

        logger.info(
            f"Job {job.job_id}: completed in {outcome.summary.processing_time_seconds:.2f}s "
            f"({outcome.summary.divergence_count} divergences)"
        )
        return outcome

    def run_many(self, jobs: list[ReconciliationJob], max_workers: int = 4) -> list[JobOutcome]:
        """Run independent jobs in a thread pool; outcomes keep the input order."""
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(self.run, jobs))

    def _process(self, job: ReconciliationJob, issues: list[str]) -> JobOutcome:
        if not job.ledger_sources:
            raise MissingInputError(f"Job {job.job_id}: no ledger files provided")
        if job.statement_source is None:
            raise MissingInputError(f"Job {job.job_id}: no bank statement provided")

        params = job.parameters

        # Parse ledger exports
        ledger_txns: list[Transaction] = []
        ledger_config = self.config.input.ledger
        for source in job.ledger_sources:
            if source.format not in (None, SourceFormat.LEDGER_TEXT):
                raise UnsupportedFormatError(
                    f"Unsupported ledger format '{source.format.value}' for {source.name}"
                )
            result = LedgerTextParser(self.config).parse(
                source.content, strict=params.strict, source_name=source.name
            )
            ledger_txns.extend(
                apply_sign_hint(
                    result.transactions,
                    source.name,
                    ledger_config.payable_hints,
                    ledger_config.receivable_hints,
                )
            )
            issues.extend(result.issue_messages)

        ledger_txns, duplicates_removed = deduplicate(ledger_txns)
        if duplicates_removed:
            logger.info(f"Removed {duplicates_removed} duplicate ledger entries")
            issues.append(f"Removed {duplicates_removed} duplicate ledger entries across files")

        # Parse the bank statement
        statement = job.statement_source
        statement_format = resolve_statement_format(statement)
        logger.info(f"Job {job.job_id}: statement {statement.name} as {statement_format.value}")
        result = statement_parser(statement_format, self.config).parse(
            statement.content, strict=params.strict, source_name=statement.name
        )
        statement_txns = result.transactions
        issues.extend(result.issue_messages)

        # Match
        pairs: list[MatchedPair] = []
        if self.config.matching.mode == "strict":
            divergences = self.engine.reconcile(
                statement_txns, ledger_txns, amount_tolerance=params.amount_tolerance
            )
            matched_count = self.engine.generate_summary(
                statement_txns, ledger_txns, divergences
            ).matched_count
        else:
            fuzzy = self.engine.match_fuzzy(
                statement_txns,
                ledger_txns,
                date_window_days=params.date_window_days,
                amount_tolerance=params.amount_tolerance,
                min_similarity=params.min_similarity,
                allow_many_to_one=params.allow_many_to_one,
            )
            pairs = fuzzy.pairs
            divergences = fuzzy.divergences
            matched_count = len(pairs)

        # Validate accounts
        validation_results: list[ValidationResult] = []
        if self.config.validation.enabled:
            chart_source = params.chart_source or self.config.validation.chart_source
            validation_results = self.validator.validate(ledger_txns, chart_source)

        # Persist
        self.sink.clear_job_outputs(job.job_id)
        self.sink.persist_divergences(job.job_id, divergences)
        self.sink.persist_validation_results(job.job_id, validation_results)

        by_type: dict[str, int] = {}
        for divergence in divergences:
            by_type[divergence.type.value] = by_type.get(divergence.type.value, 0) + 1

        validation = ValidationSummary.of(validation_results)
        summary = JobSummary(
            statement_count=len(statement_txns),
            ledger_count=len(ledger_txns),
            duplicates_removed=duplicates_removed,
            matched_count=matched_count,
            divergence_count=len(divergences),
            divergences_by_type=by_type,
            validation={
                "total": validation.total,
                "ok": validation.ok,
                "invalid": validation.invalid,
                "unknown": validation.unknown,
            },
            parsing_issues=list(issues),
            statement_format=statement_format.value,
        )

        return JobOutcome(
            job_id=job.job_id,
            status=JobStatus.PROCESSING,
            divergences=divergences,
            pairs=pairs,
            validation_results=validation_results,
            statement_transactions=statement_txns,
            ledger_transactions=ledger_txns,
            summary=summary,
        )
