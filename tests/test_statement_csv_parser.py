"""Tests for the bank statement CSV parser."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_recon.parsers.statement_csv_parser import (
    StatementCsvParser,
    detect_delimiter,
    find_column,
)
from ledger_recon.utils.exceptions import StatementStructureError, StrictParsingError


@pytest.fixture
def parser():
    return StatementCsvParser()


def test_semicolon_statement(parser, statement_csv):
    """Brazilian export with a signed amount column and document numbers."""
    result = parser.parse(statement_csv, source_name="extrato.csv")

    assert result.metadata["delimiter"] == ";"
    assert [txn.amount for txn in result.transactions] == [
        Decimal("-150.00"),
        Decimal("1500.00"),
        Decimal("-35.90"),
    ]
    assert result.transactions[0].document_number == "NF100"
    assert result.transactions[0].date == date(2024, 3, 1)
    assert result.transactions[0].line_number == 1
    assert result.issues == []


def test_english_comma_statement(parser):
    text = (
        "Date,Description,Amount,Balance\n"
        "2024-03-05,Coffee shop,-4.50,95.50\n"
        "2024-03-06,Salary,1000.00,1095.50\n"
    )

    result = parser.parse(text)

    assert len(result.transactions) == 2
    coffee = result.transactions[0]
    assert coffee.date == date(2024, 3, 5)
    assert coffee.amount == Decimal("-4.50")
    assert coffee.running_balance == Decimal("95.50")
    assert coffee.document_number is None


def test_debit_and_credit_columns(parser):
    text = (
        "Data;Histórico;Débito;Crédito;Saldo\n"
        "05/03/2024;PIX RECEBIDO MARIA;;1.500,00;2.500,00\n"
        "06/03/2024;TARIFA PACOTE;35,90;;2.464,10\n"
    )

    result = parser.parse(text)

    credit, debit = result.transactions
    assert credit.amount == Decimal("1500.00")
    assert debit.amount == Decimal("-35.90")
    assert debit.running_balance == Decimal("2464.10")


def test_utf8_bom_is_ignored(parser, statement_csv):
    result = parser.parse(b"\xef\xbb\xbf" + statement_csv)

    assert len(result.transactions) == 3


def test_missing_description_column_is_fatal(parser):
    with pytest.raises(StatementStructureError, match="Description column"):
        parser.parse("Data;Valor\n01/03/2024;10,00\n")


def test_missing_amount_columns_is_fatal(parser):
    with pytest.raises(StatementStructureError, match="No amount column"):
        parser.parse("Data;Histórico\n01/03/2024;Pagamento\n")


def test_empty_input_is_fatal(parser):
    with pytest.raises(StatementStructureError):
        parser.parse("   \n")


def test_bad_rows_become_issues(parser):
    text = (
        "Data;Descrição;Valor\n"
        "01/03/2024;Pagamento aluguel;-800,00\n"
        "02/03/2024;Linha quebrada;20,00;extra;mais\n"
        "32/13/2024;Data impossivel;10,00\n"
        "04/03/2024;Valor estranho;dez reais\n"
        "05/03/2024;Estorno zerado;0,00\n"
    )

    result = parser.parse(text)

    assert len(result.transactions) == 1
    messages = [str(issue) for issue in result.issues]
    assert any(message.startswith("Malformed row") for message in messages)
    assert any("Invalid date '32/13/2024'" in message for message in messages)
    assert any("Could not parse amount 'dez reais'" in message for message in messages)


def test_explicit_plus_sign_is_a_credit(parser):
    text = "Data;Descrição;Valor\n05/03/2024;PIX recebido cliente;+1.500,00\n"

    result = parser.parse(text)

    assert result.issues == []
    assert result.transactions[0].amount == Decimal("1500.00")


def test_issues_cite_data_rows_across_blank_lines(parser):
    text = (
        "Data;Descrição;Valor\n"
        "01/03/2024;Pagamento aluguel;-800,00\n"
        "\n"
        "32/13/2024;Data impossivel;10,00\n"
        "03/03/2024;Tarifa pacote;-35,90\n"
    )

    result = parser.parse(text)

    assert [issue.location for issue in result.issues] == ["Row 2"]
    assert [txn.line_number for txn in result.transactions] == [1, 3]


def test_strict_mode_aborts(parser):
    text = "Data;Descrição;Valor\n32/13/2024;Data impossivel;10,00\n"

    with pytest.raises(StrictParsingError):
        parser.parse(text, strict=True)


def test_detect_delimiter():
    assert detect_delimiter("Data;Descrição;Valor") == ";"
    assert detect_delimiter("Date,Description,Amount") == ","


def test_find_column_ignores_case_and_accents():
    headers = ["DATA LANCAMENTO", "historico", "VALOR (R$)"]

    assert find_column(headers, ["Data"]) == "DATA LANCAMENTO"
    assert find_column(headers, ["Histórico"]) == "historico"
    assert find_column(headers, ["Saldo"]) is None
