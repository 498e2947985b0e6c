"""Tests for end-to-end job orchestration."""

from decimal import Decimal

import pytest

from conftest import LEDGER_EXPORT, STATEMENT_CSV, make_ledger
from ledger_recon.models.job import (
    JobParameters,
    JobStatus,
    ReconciliationJob,
    SourceFile,
    SourceFormat,
)
from ledger_recon.parsers.statement_csv_parser import StatementCsvParser
from ledger_recon.parsers.statement_ofx_parser import StatementOfxParser
from ledger_recon.parsers.statement_pdf_parser import StatementPdfParser
from ledger_recon.pipeline import (
    InMemorySink,
    ReconciliationOrchestrator,
    apply_sign_hint,
    deduplicate,
    resolve_statement_format,
    statement_parser,
)
from ledger_recon.utils.exceptions import UnsupportedFormatError


@pytest.fixture
def sink():
    return InMemorySink()


@pytest.fixture
def orchestrator(config, chart, rules, sink):
    return ReconciliationOrchestrator(config, chart, rules, sink)


def make_job(job_id="job-1", ledger=LEDGER_EXPORT, statement=STATEMENT_CSV, ledger_name="razao.txt", **params):
    return ReconciliationJob(
        job_id=job_id,
        ledger_sources=[SourceFile(ledger_name, ledger.encode("utf-8"))],
        statement_source=SourceFile("extrato.csv", statement.encode("utf-8")),
        parameters=JobParameters(**params),
    )


def test_happy_path(orchestrator, sink):
    job = make_job()

    outcome = orchestrator.run(job)

    assert outcome.succeeded
    assert job.status is JobStatus.COMPLETED
    assert len(outcome.pairs) == 3
    assert outcome.divergences == []

    summary = outcome.summary
    assert summary.statement_count == 3
    assert summary.ledger_count == 3
    assert summary.matched_count == 3
    assert summary.statement_format == "csv"
    assert summary.validation == {"total": 3, "ok": 1, "invalid": 0, "unknown": 2}
    assert summary.parsing_issues == []

    assert [update.status for update in sink.status_history["job-1"]] == [
        JobStatus.PROCESSING,
        JobStatus.COMPLETED,
    ]
    assert sink.latest_status("job-1").summary is summary
    assert sink.divergences["job-1"] == []
    assert len(sink.validation_results["job-1"]) == 3


def test_strict_mode_reports_value_mismatch(orchestrator):
    orchestrator.config.matching.mode = "strict"
    statement = STATEMENT_CSV.replace("NF100;-150,00", "NF100;-155,00")

    outcome = orchestrator.run(make_job(statement=statement))

    assert outcome.succeeded
    assert outcome.pairs == []
    assert outcome.summary.divergences_by_type == {"VALUE_MISMATCH": 1}
    assert outcome.summary.matched_count == 2
    assert outcome.divergences[0].amount_difference == Decimal("5.00")


def test_duplicate_ledger_entries_across_files(orchestrator):
    job = make_job()
    job.ledger_sources.append(SourceFile("razao_copia.txt", LEDGER_EXPORT.encode("utf-8")))

    outcome = orchestrator.run(job)

    assert outcome.summary.ledger_count == 3
    assert outcome.summary.duplicates_removed == 3
    assert "Removed 3 duplicate ledger entries across files" in outcome.summary.parsing_issues


def test_payable_file_name_forces_debits(orchestrator):
    ledger = "01/03/2024|Pagamento fornecedor ABC|2.1.1.001|NF100|150,00|FORNECEDOR|PJ\n"

    outcome = orchestrator.run(make_job(ledger=ledger, ledger_name="contas_a_pagar.txt"))

    assert [txn.amount for txn in outcome.ledger_transactions] == [Decimal("-150.00")]


def test_parsing_issues_carry_source_names(orchestrator):
    outcome = orchestrator.run(make_job(ledger=LEDGER_EXPORT + "abc|def\n"))

    assert outcome.succeeded
    assert outcome.summary.parsing_issues == ["[razao.txt] Line 5: Expected at least 3 fields, found 2"]


def test_missing_statement_fails_job(orchestrator, sink):
    job = make_job()
    job.statement_source = None

    outcome = orchestrator.run(job)

    assert not outcome.succeeded
    assert outcome.status is JobStatus.FAILED
    assert "no bank statement provided" in outcome.error
    assert job.status is JobStatus.FAILED
    assert job.error == outcome.error
    latest = sink.latest_status("job-1")
    assert latest.status is JobStatus.FAILED
    assert latest.error == outcome.error
    assert "job-1" not in sink.divergences


def test_missing_ledger_fails_job(orchestrator):
    job = make_job()
    job.ledger_sources = []

    outcome = orchestrator.run(job)

    assert outcome.status is JobStatus.FAILED
    assert "no ledger files provided" in outcome.error


def test_unsupported_ledger_format_fails_job(orchestrator):
    job = make_job()
    job.ledger_sources = [SourceFile("razao.csv", b"", SourceFormat.STATEMENT_CSV)]

    outcome = orchestrator.run(job)

    assert outcome.status is JobStatus.FAILED
    assert "Unsupported ledger format 'csv'" in outcome.error


def test_failure_keeps_issues_gathered_so_far(orchestrator, sink):
    job = make_job(ledger=LEDGER_EXPORT + "abc|def\n", statement="Data;Valor\n01/03/2024;10,00\n")

    outcome = orchestrator.run(job)

    assert outcome.status is JobStatus.FAILED
    assert "Description column not found" in outcome.error
    assert outcome.summary.parsing_issues == ["[razao.txt] Line 5: Expected at least 3 fields, found 2"]
    assert sink.latest_status("job-1").summary.parsing_issues == outcome.summary.parsing_issues


def test_strict_parsing_fails_on_first_issue(orchestrator):
    outcome = orchestrator.run(make_job(ledger=LEDGER_EXPORT + "abc|def\n", strict=True))

    assert outcome.status is JobStatus.FAILED
    assert outcome.error.startswith("[razao.txt] Line 5")


def test_chart_source_parameter(orchestrator):
    outcome = orchestrator.run(make_job(chart_source="other"))

    assert outcome.summary.validation["invalid"] == 3


def test_validation_can_be_disabled(orchestrator):
    orchestrator.config.validation.enabled = False

    outcome = orchestrator.run(make_job())

    assert outcome.validation_results == []
    assert outcome.summary.validation["total"] == 0


def test_run_many_keeps_order(orchestrator):
    jobs = [make_job(job_id=f"job-{n}") for n in range(4)]
    jobs[2].statement_source = None

    outcomes = orchestrator.run_many(jobs, max_workers=2)

    assert [outcome.job_id for outcome in outcomes] == ["job-0", "job-1", "job-2", "job-3"]
    assert [outcome.succeeded for outcome in outcomes] == [True, True, False, True]


def test_job_cannot_run_twice(orchestrator):
    job = make_job()
    orchestrator.run(job)

    with pytest.raises(ValueError, match="illegal transition"):
        orchestrator.run(job)


def test_illegal_transition():
    job = make_job()

    with pytest.raises(ValueError):
        job.transition(JobStatus.COMPLETED)


@pytest.mark.parametrize(
    "source, expected",
    [
        (SourceFile("x.txt", b"", SourceFormat.STATEMENT_OFX), SourceFormat.STATEMENT_OFX),
        (SourceFile("extrato.PDF", b""), SourceFormat.STATEMENT_PDF),
        (SourceFile("extrato.ofx", b""), SourceFormat.STATEMENT_OFX),
        (SourceFile("download", b"%PDF-1.7 ..."), SourceFormat.STATEMENT_PDF),
        (SourceFile("download", b"OFXHEADER:100\n<OFX>"), SourceFormat.STATEMENT_OFX),
        (SourceFile("download", b"Data;Valor\n"), SourceFormat.STATEMENT_CSV),
    ],
)
def test_resolve_statement_format(source, expected):
    assert resolve_statement_format(source) is expected


def test_ledger_format_is_not_a_statement_format():
    with pytest.raises(UnsupportedFormatError):
        resolve_statement_format(SourceFile("razao.txt", b"", SourceFormat.LEDGER_TEXT))
    with pytest.raises(UnsupportedFormatError):
        statement_parser(SourceFormat.LEDGER_TEXT)


def test_statement_parser_per_format():
    assert isinstance(statement_parser(SourceFormat.STATEMENT_CSV), StatementCsvParser)
    assert isinstance(statement_parser(SourceFormat.STATEMENT_OFX), StatementOfxParser)
    assert isinstance(statement_parser(SourceFormat.STATEMENT_PDF), StatementPdfParser)


def test_apply_sign_hint():
    txns = [make_ledger(1, "10.00"), make_ledger(2, "-5.00")]

    payable = apply_sign_hint(txns, "contas_a_pagar.txt", ["PAGAR"], ["RECEBER"])
    receivable = apply_sign_hint(txns, "Contas_a_Receber.txt", ["PAGAR"], ["RECEBER"])
    untouched = apply_sign_hint(txns, "razao.txt", ["PAGAR"], ["RECEBER"])

    assert [txn.amount for txn in payable] == [Decimal("-10.00"), Decimal("-5.00")]
    assert [txn.amount for txn in receivable] == [Decimal("10.00"), Decimal("5.00")]
    assert untouched is txns


def test_deduplicate_keeps_first_occurrence():
    first = make_ledger(1, "10.00", description="Pagamento aluguel", account_code="A")
    repeat = make_ledger(1, "10.00", description="PAGAMENTO ALUGUEL", account_code="B")
    other = make_ledger(1, "10.01", description="Pagamento aluguel")

    unique, removed = deduplicate([first, repeat, other])

    assert unique == [first, other]
    assert removed == 1
