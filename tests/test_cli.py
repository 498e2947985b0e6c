"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner
from openpyxl import load_workbook

from conftest import LEDGER_EXPORT, STATEMENT_CSV
from ledger_recon.cli import main

CHART_CSV = (
    "codigo;descricao\n"
    "2.1.1.001;Fornecedores\n"
    "3.1.1.001;Receita de servicos\n"
    "4.1.02.001;Tarifas bancarias\n"
)

RULES_YAML = (
    "rules:\n"
    "  - id: R1\n"
    "    name: Bank fees are expenses\n"
    "    match_field: category\n"
    "    match_value: TARIFA\n"
    "    allowed_account_prefixes: ['4.1']\n"
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def files(tmp_path):
    paths = {
        "ledger": tmp_path / "razao.txt",
        "statement": tmp_path / "extrato.csv",
        "chart": tmp_path / "plano.csv",
        "rules": tmp_path / "rules.yaml",
    }
    paths["ledger"].write_text(LEDGER_EXPORT, encoding="utf-8")
    paths["statement"].write_text(STATEMENT_CSV, encoding="utf-8")
    paths["chart"].write_text(CHART_CSV, encoding="utf-8")
    paths["rules"].write_text(RULES_YAML, encoding="utf-8")
    return paths


def test_version(runner):
    result = runner.invoke(main, ["--version"])

    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_init_config(runner, tmp_path):
    path = tmp_path / "config.yaml"

    result = runner.invoke(main, ["init-config", "-o", str(path)])

    assert result.exit_code == 0
    assert path.exists()
    assert "matching:" in path.read_text(encoding="utf-8")


def test_parse_ledger(runner, files):
    result = runner.invoke(main, ["parse-ledger", str(files["ledger"])])

    assert result.exit_code == 0
    assert "Total transactions: 3" in result.output


def test_parse_statement(runner, files):
    result = runner.invoke(main, ["parse-statement", str(files["statement"])])

    assert result.exit_code == 0
    assert "Total transactions: 3" in result.output


def test_parse_statement_reports_structure_errors(runner, tmp_path):
    path = tmp_path / "extrato.csv"
    path.write_text("Data;Valor\n01/03/2024;10,00\n", encoding="utf-8")

    result = runner.invoke(main, ["parse-statement", str(path)])

    assert result.exit_code == 1
    assert "Error parsing file" in result.output


def test_reconcile_dry_run(runner, files):
    result = runner.invoke(
        main,
        ["reconcile", str(files["ledger"]), "-s", str(files["statement"]), "--dry-run"],
    )

    assert result.exit_code == 0, result.output
    assert "Reconciliation Summary" in result.output
    assert "Dry run" in result.output


def test_reconcile_writes_report(runner, files, tmp_path):
    report = tmp_path / "report.xlsx"

    result = runner.invoke(
        main,
        [
            "reconcile",
            str(files["ledger"]),
            "-s",
            str(files["statement"]),
            "--chart",
            str(files["chart"]),
            "--rules",
            str(files["rules"]),
            "--mode",
            "strict",
            "-o",
            str(report),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Report generated" in result.output
    wb = load_workbook(report)
    assert "Account Validation" in wb.sheetnames
    statuses = [row[2] for row in wb["Account Validation"].iter_rows(min_row=2, values_only=True)]
    assert statuses == ["unknown", "unknown", "ok"]


def test_reconcile_failure_exits_nonzero(runner, files, tmp_path):
    bad_statement = tmp_path / "ruim.csv"
    bad_statement.write_text("Data;Valor\n01/03/2024;10,00\n", encoding="utf-8")
    report = tmp_path / "report.xlsx"

    result = runner.invoke(
        main,
        ["reconcile", str(files["ledger"]), "-s", str(bad_statement), "-o", str(report)],
    )

    assert result.exit_code == 1
    assert "Description column not found" in result.output
    assert not report.exists()


def test_validate_accounts(runner, files):
    result = runner.invoke(
        main,
        [
            "validate-accounts",
            str(files["ledger"]),
            "--chart",
            str(files["chart"]),
            "--rules",
            str(files["rules"]),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Total: 3  ok: 1  invalid: 0  unknown: 2" in result.output
