"""Parsers for ledger exports, bank statements and charts of accounts."""

from .ledger_text_parser import LedgerTextParser
from .statement_csv_parser import StatementCsvParser
from .statement_ofx_parser import StatementOfxParser
from .statement_pdf_parser import StatementPdfParser
from .chart_parser import ChartOfAccountsLoader

__all__ = [
    "LedgerTextParser",
    "StatementCsvParser",
    "StatementOfxParser",
    "StatementPdfParser",
    "ChartOfAccountsLoader",
]
