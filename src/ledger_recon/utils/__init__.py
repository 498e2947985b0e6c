"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    AmountParseError,
    ParseError,
    StatementParseError,
    StatementStructureError,
    PDFExtractionError,
    PDFTimeoutError,
    StrictParsingError,
    ConfigurationError,
    JobError,
    MissingInputError,
    UnsupportedFormatError,
    ReportGenerationError,
)
from .locale_values import parse_amount, parse_date, normalize_description
from .logging_config import setup_logging

__all__ = [
    "ReconciliationError",
    "AmountParseError",
    "ParseError",
    "StatementParseError",
    "StatementStructureError",
    "PDFExtractionError",
    "PDFTimeoutError",
    "StrictParsingError",
    "ConfigurationError",
    "JobError",
    "MissingInputError",
    "UnsupportedFormatError",
    "ReportGenerationError",
    "parse_amount",
    "parse_date",
    "normalize_description",
    "setup_logging",
]
