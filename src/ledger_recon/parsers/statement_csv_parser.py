"""
Bank statement CSV parser.
Reads delimited statement exports with pandas and resolves column roles
from loosely-named headers.
"""

from decimal import Decimal
from io import StringIO
from typing import Optional
import logging

import pandas as pd

from .base import BaseParser
from ..models.transaction import ParseResult, Transaction, TransactionOrigin
from ..utils.exceptions import AmountParseError, StatementStructureError
from ..utils.locale_values import parse_amount, parse_date, strip_accents

logger = logging.getLogger(__name__)

# Candidate header names per column role, matched as substrings in either direction
COLUMN_CANDIDATES: dict[str, list[str]] = {
    "date": ["Data", "Dt", "Data Lançamento", "Data Movimento", "Date", "Data Operação"],
    "description": [
        "Descrição",
        "Histórico",
        "Hist",
        "Description",
        "Memo",
        "Nome",
        "Descrição Operação",
    ],
    "amount": ["Valor", "Val", "Amount", "Valor Movimento"],
    "debit": ["Débito", "Deb", "Debit"],
    "credit": ["Crédito", "Cred", "Credit"],
    "document": ["Documento", "Doc", "Nº Doc", "Num Doc", "Número Documento"],
    "balance": ["Saldo", "Sld", "Balance"],
}


def detect_delimiter(header_line: str) -> str:
    """Semicolon when the header has more ``;`` than ``,``, else comma."""
    return ";" if header_line.count(";") > header_line.count(",") else ","


def normalize_header(name) -> str:
    if name is None:
        return ""
    return strip_accents(str(name)).strip().upper()


def find_column(headers: list[str], candidates: list[str]) -> Optional[str]:
    """
    Resolve a column by fuzzy header name.

    A header matches when it contains a candidate name or is contained in
    one, after case and accent normalization. Empty headers never match.

    Args:
        headers: Column headers in file order
        candidates: Acceptable names for the role

    Returns:
        The first matching header, or None
    """
    normalized_candidates = [normalize_header(name) for name in candidates]
    for header in headers:
        normalized = normalize_header(header)
        if not normalized or normalized.startswith("UNNAMED:"):
            continue
        for candidate in normalized_candidates:
            if candidate in normalized or normalized in candidate:
                return header
    return None


class StatementCsvParser(BaseParser):
    """
    Parser for bank statement CSV exports.

    Handles comma or semicolon delimiters, a single signed amount column or a
    debit/credit column pair, and optional document and balance columns.
    """

    format_name = "statement CSV"

    def _parse_text(self, text: str, result: ParseResult, strict: bool) -> None:
        header_line = next((line for line in text.splitlines() if line.strip()), "")
        if not header_line:
            raise StatementStructureError("CSV statement is empty or has no header")

        delimiter = detect_delimiter(header_line)
        result.metadata["delimiter"] = delimiter

        bad_lines: list[list[str]] = []
        try:
            df = pd.read_csv(
                StringIO(text),
                sep=delimiter,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                engine="python",
                on_bad_lines=lambda fields: bad_lines.append(fields),
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            logger.error(f"Failed to read CSV statement: {e}")
            raise StatementStructureError(f"Failed to read CSV statement: {e}") from e

        headers = [str(column) for column in df.columns]
        logger.debug(f"CSV headers: {headers} (delimiter '{delimiter}')")

        columns = {role: find_column(headers, names) for role, names in COLUMN_CANDIDATES.items()}
        self._check_required_columns(columns)
        result.metadata["columns"] = {role: col for role, col in columns.items() if col}

        for fields in bad_lines:
            self._record_issue(
                result,
                "Malformed row",
                f"Expected {len(headers)} fields, found {len(fields)}: {delimiter.join(fields)}",
                strict,
            )

        # Blank and malformed lines never reach the frame
        for row_number, (_, row) in enumerate(df.iterrows(), start=1):
            txn = self._parse_row(row, row_number, columns, result, strict)
            if txn is not None:
                result.transactions.append(txn)

    def _check_required_columns(self, columns: dict[str, Optional[str]]) -> None:
        if columns["date"] is None:
            raise StatementStructureError("Date column not found in CSV statement")
        if columns["description"] is None:
            raise StatementStructureError("Description column not found in CSV statement")
        if columns["amount"] is None and columns["debit"] is None and columns["credit"] is None:
            raise StatementStructureError(
                "No amount column found in CSV statement (amount, debit or credit)"
            )

    def _parse_row(
        self,
        row: pd.Series,
        row_number: int,
        columns: dict[str, Optional[str]],
        result: ParseResult,
        strict: bool,
    ) -> Optional[Transaction]:
        """
        Convert a DataFrame row to a statement Transaction.

        Args:
            row: Pandas Series representing a row
            row_number: 1-based position among the data rows read
            columns: Resolved column per role
            result: Result receiving issues
            strict: Abort on the first issue

        Returns:
            Transaction, or None when the row is skipped
        """
        if all(not _cell(value) for value in row.values):
            return None

        location = f"Row {row_number}"

        date_text = _cell(row.get(columns["date"]))
        if not date_text:
            self._record_issue(result, location, "Date not found", strict)
            return None

        txn_date = parse_date(date_text)
        if txn_date is None:
            self._record_issue(result, location, f"Invalid date '{date_text}'", strict)
            return None

        description = _cell(row.get(columns["description"]))
        if not description:
            self._record_issue(result, location, "Description not found", strict)
            return None

        try:
            amount = self._row_amount(row, columns)
            balance_text = _cell(row.get(columns["balance"])) if columns["balance"] else ""
            balance = parse_amount(balance_text) if balance_text else None
        except AmountParseError as e:
            self._record_issue(result, location, str(e), strict)
            return None

        if amount == 0:
            return None

        document = _cell(row.get(columns["document"])) if columns["document"] else ""

        return Transaction(
            date=txn_date,
            description=description,
            amount=amount,
            origin=TransactionOrigin.STATEMENT,
            document_number=document or None,
            running_balance=balance,
            line_number=row_number,
        )

    def _row_amount(self, row: pd.Series, columns: dict[str, Optional[str]]) -> Decimal:
        """Signed amount column, falling back to the debit/credit pair."""
        if columns["amount"]:
            text = _cell(row.get(columns["amount"]))
            if text:
                amount = parse_amount(text)
                if amount != 0:
                    return amount

        debit_text = _cell(row.get(columns["debit"])) if columns["debit"] else ""
        credit_text = _cell(row.get(columns["credit"])) if columns["credit"] else ""

        debit = parse_amount(debit_text) if debit_text else Decimal("0")
        if debit != 0:
            return -abs(debit)

        credit = parse_amount(credit_text) if credit_text else Decimal("0")
        return abs(credit)


def _cell(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()
