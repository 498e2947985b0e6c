"""Custom exceptions for the reconciliation application."""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class AmountParseError(ReconciliationError, ValueError):
    """An amount string could not be interpreted as a number."""

    pass


class ParseError(ReconciliationError):
    """Fatal failure parsing a whole input."""

    pass


class StatementParseError(ParseError):
    """Error parsing a bank statement."""

    pass


class StatementStructureError(StatementParseError):
    """Statement is missing required structure (columns, markers)."""

    pass


class PDFExtractionError(StatementParseError):
    """PDF has no extractable text or is corrupt/unsupported. Not retryable."""

    pass


class PDFTimeoutError(PDFExtractionError):
    """PDF text extraction exceeded the configured ceiling."""

    pass


class StrictParsingError(ParseError):
    """A recoverable parsing issue promoted to a failure by strict mode."""

    def __init__(self, issue, source_name: Optional[str] = None):
        self.issue = issue
        self.source_name = source_name
        prefix = f"[{source_name}] " if source_name else ""
        super().__init__(f"{prefix}{issue}")


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class JobError(ReconciliationError):
    """Unrecoverable reconciliation job failure."""

    pass


class MissingInputError(JobError):
    """A job was submitted without a required input file."""

    pass


class UnsupportedFormatError(JobError):
    """Declared or detected input format has no parser."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass
