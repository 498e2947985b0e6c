"""
Shared plumbing for the format parsers: decoding and issue accumulation.
"""

from typing import Optional, Union
import logging

from ..config import ReconConfig
from ..models.transaction import ParseResult, ParsingIssue
from ..utils.exceptions import StrictParsingError

logger = logging.getLogger(__name__)

RawInput = Union[bytes, str]


def decode_input(raw_input: RawInput, config: ReconConfig) -> str:
    """Decode bytes with the configured encoding, falling back to latin-1."""
    if isinstance(raw_input, str):
        return raw_input

    encoding = config.input.encoding
    try:
        text = raw_input.decode(encoding)
    except UnicodeDecodeError:
        fallback = config.input.fallback_encoding
        logger.debug(f"Input is not valid {encoding}, decoding as {fallback}")
        text = raw_input.decode(fallback, errors="replace")

    # Drop a UTF-8 byte-order mark left by spreadsheet exports
    return text.lstrip("\ufeff")


class BaseParser:
    """
    Base class for the format parsers.

    Subclasses implement ``_parse_text`` and call ``_record_issue`` for every
    record they have to skip. In strict mode the first issue raises
    ``StrictParsingError`` instead of being accumulated.
    """

    # Short name used in log messages
    format_name = "input"

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object (defaults when omitted)
        """
        self.config = config or ReconConfig()

    def parse(
        self,
        raw_input: RawInput,
        strict: bool = False,
        source_name: Optional[str] = None,
    ) -> ParseResult:
        """
        Parse one raw input into canonical transactions.

        Args:
            raw_input: File contents as bytes or already-decoded text
            strict: Abort on the first recoverable issue
            source_name: File name, used to prefix issues

        Returns:
            ParseResult with transactions and accumulated issues
        """
        text = self.decode(raw_input)
        result = ParseResult(source_name=source_name)
        self._parse_text(text, result, strict)
        self._log_result(result)
        return result

    def decode(self, raw_input: RawInput) -> str:
        """Decode bytes with the configured encoding, falling back to latin-1."""
        return decode_input(raw_input, self.config)

    def _parse_text(self, text: str, result: ParseResult, strict: bool) -> None:
        raise NotImplementedError

    def _record_issue(
        self, result: ParseResult, location: str, message: str, strict: bool
    ) -> None:
        issue = ParsingIssue(location=location, message=message)
        if strict:
            raise StrictParsingError(issue, result.source_name)
        result.issues.append(issue)

    def _log_result(self, result: ParseResult) -> None:
        name = result.source_name or self.format_name
        logger.info(f"Extracted {len(result.transactions)} transactions from {name}")
        if result.issues:
            logger.warning(f"{len(result.issues)} records skipped in {name}")
