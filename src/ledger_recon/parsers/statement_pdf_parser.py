"""
Bank statement PDF parser.
Extracts text with pdfplumber and applies issuer-specific heuristics to turn
statement rows into transactions.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Optional
import logging

import pdfplumber

from .base import BaseParser, RawInput
from .pdf_extractors import (
    DEFAULT_CANDIDATE_EXTRACTORS,
    LINE_DATE_PATTERN,
    MIN_DESCRIPTION_LENGTH,
    MONTH_NAME_ROW_PATTERN,
    MONTHS,
    ROW_PATTERNS,
    SLASH_DATE_ROW_PATTERN,
    TOTAL_PREFIX_PATTERN,
    CandidateExtractor,
    clean_line_description,
    collapse_whitespace,
    dedup_key,
    infer_reference_year,
    is_debit_marked,
    is_header_or_footer,
    iter_row_matches,
    looks_like_account_number,
    min_description_length,
    parse_row_amount,
    resolve_date,
    select_candidate,
)
from ..models.transaction import ParseResult, Transaction, TransactionOrigin
from ..utils.exceptions import PDFExtractionError, PDFTimeoutError, StrictParsingError

logger = logging.getLogger(__name__)

ISSUER_A = "nubank"
ISSUER_B = "sicoob"
UNKNOWN_ISSUER = "unknown"

ISSUER_KEYWORDS: dict[str, tuple[str, ...]] = {
    ISSUER_A: ("nubank", "nu pagamentos"),
    ISSUER_B: ("sicoob", "sistema de cooperativas"),
}

# Messages pdfminer/pdfplumber raise for damaged or unsupported files
CORRUPT_SIGNATURES = (
    "bad xref",
    "invalid pdf",
    "formaterror",
    "pdfsyntaxerror",
    "no /root object",
    "unexpected eof",
    "pseof",
)

CORRUPT_GUIDANCE = (
    "Download the statement directly from the bank or export it as CSV/OFX. "
    "PDFs must contain selectable text (image-only scans are not supported)."
)


def detect_issuer(text: str) -> tuple[str, int]:
    """
    Identify the issuing bank from keyword hits.

    Args:
        text: Full statement text

    Returns:
        (issuer, number of keyword hits); ties go to issuer A
    """
    lower = text.lower()
    hits = {
        issuer: sum(lower.count(keyword) for keyword in keywords)
        for issuer, keywords in ISSUER_KEYWORDS.items()
    }
    if hits[ISSUER_A] == 0 and hits[ISSUER_B] == 0:
        return UNKNOWN_ISSUER, 0
    if hits[ISSUER_A] >= hits[ISSUER_B]:
        return ISSUER_A, hits[ISSUER_A]
    return ISSUER_B, hits[ISSUER_B]


def _extract_pages(content: bytes) -> str:
    with pdfplumber.open(BytesIO(content)) as pdf:
        return "\n".join(page.extract_text() or "" for page in pdf.pages)


class StatementPdfParser(BaseParser):
    """
    Parser for text-based bank statement PDFs.

    Text extraction runs in a worker thread bounded by
    ``pdf.extraction_timeout_seconds``. Already-extracted text can be parsed
    directly with ``parse_text``.
    """

    format_name = "PDF statement"

    def __init__(
        self,
        config=None,
        candidate_extractors: Optional[list[CandidateExtractor]] = None,
    ):
        super().__init__(config)
        self.candidate_extractors = candidate_extractors or DEFAULT_CANDIDATE_EXTRACTORS

    def parse(
        self,
        raw_input: RawInput,
        strict: bool = False,
        source_name: Optional[str] = None,
    ) -> ParseResult:
        """
        Parse a PDF statement.

        Args:
            raw_input: PDF file bytes
            strict: Abort on the first recoverable issue
            source_name: File name, used to prefix issues

        Returns:
            ParseResult with transactions and accumulated issues

        Raises:
            PDFTimeoutError: If text extraction exceeds the configured ceiling
            PDFExtractionError: If the PDF is corrupt or has no extractable text
        """
        if isinstance(raw_input, str):
            raw_input = raw_input.encode(self.config.input.fallback_encoding, errors="replace")

        text = self.extract_text(raw_input)
        return self.parse_text(text, strict=strict, source_name=source_name)

    def extract_text(self, content: bytes) -> str:
        timeout = self.config.pdf.extraction_timeout_seconds
        logger.info(f"Extracting PDF text ({len(content)} bytes, timeout {timeout}s)")

        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(_extract_pages, content)
        try:
            text = future.result(timeout=timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise PDFTimeoutError(
                f"PDF text extraction exceeded {timeout} seconds; the file is too large "
                "or too complex to process"
            ) from e
        except Exception as e:
            combined = f"{type(e).__name__} {e}".lower()
            if any(signature in combined for signature in CORRUPT_SIGNATURES):
                raise PDFExtractionError(f"Invalid or corrupt PDF: {e}. {CORRUPT_GUIDANCE}") from e
            raise PDFExtractionError(f"Failed to read PDF: {e}") from e
        finally:
            # A timed-out extraction cannot be interrupted; do not wait for it
            executor.shutdown(wait=False)

        if not text or not text.strip():
            raise PDFExtractionError(f"PDF contains no extractable text. {CORRUPT_GUIDANCE}")

        return text

    def parse_text(
        self, text: str, strict: bool = False, source_name: Optional[str] = None
    ) -> ParseResult:
        """
        Parse statement text already extracted from a PDF.

        Args:
            text: Statement text, one printed line per text line
            strict: Abort on the first recoverable issue
            source_name: File name, used to prefix issues

        Returns:
            ParseResult; ``metadata`` records the issuer used
        """
        result = ParseResult(source_name=source_name)
        self._parse_text(text, result, strict)
        self._log_result(result)
        return result

    def _parse_text(self, text: str, result: ParseResult, strict: bool) -> None:
        issuer, hits = detect_issuer(text)
        result.metadata["detected_issuer"] = issuer
        result.metadata["issuer_keyword_hits"] = hits
        logger.debug(f"Detected issuer '{issuer}' with {hits} keyword hits")

        pdf_config = self.config.pdf
        if pdf_config.unknown_issuer_strategy == "confidence":
            if issuer == UNKNOWN_ISSUER or hits < pdf_config.min_issuer_keyword_hits:
                raise PDFExtractionError(
                    f"Could not identify the statement issuer with confidence "
                    f"({hits} keyword hits, {pdf_config.min_issuer_keyword_hits} required)"
                )

        if issuer == ISSUER_A:
            self._parse_issuer_a(text, result)
        elif issuer == ISSUER_B:
            self._parse_issuer_b(text, result, strict)
        else:
            self._parse_unknown_issuer(text, result, strict)

    def _parse_unknown_issuer(self, text: str, result: ParseResult, strict: bool) -> None:
        """
        Run both heuristics and keep the one that found more transactions.

        Both run leniently; strict mode only applies to the result that is kept.
        """
        result_a = ParseResult(source_name=result.source_name)
        result_b = ParseResult(source_name=result.source_name)
        self._parse_issuer_a(text, result_a)
        self._parse_issuer_b(text, result_b, strict=False)

        chosen, issuer = (
            (result_a, ISSUER_A)
            if len(result_a.transactions) >= len(result_b.transactions)
            else (result_b, ISSUER_B)
        )
        logger.info(
            f"Unknown issuer: {ISSUER_A} heuristic found {len(result_a.transactions)}, "
            f"{ISSUER_B} heuristic found {len(result_b.transactions)}; using {issuer}"
        )
        if strict and chosen.issues:
            raise StrictParsingError(chosen.issues[0], result.source_name)
        result.transactions.extend(chosen.transactions)
        result.issues.extend(chosen.issues)
        result.metadata["issuer_used"] = issuer

    # Issuer A: "16 OUT 2025 description 1.123,60"

    def _parse_issuer_a(self, text: str, result: ParseResult) -> None:
        result.metadata.setdefault("issuer_used", ISSUER_A)

        for match in MONTH_NAME_ROW_PATTERN.finditer(text):
            day, month_name, year, description, amount_text = match.groups()
            txn_date = resolve_date(int(day), MONTHS[month_name.upper()], int(year), int(year))
            amount = parse_row_amount(amount_text)
            if txn_date is None or not amount:
                continue

            description = TOTAL_PREFIX_PATTERN.sub("", collapse_whitespace(description))
            result.transactions.append(
                self._statement_txn(txn_date, description, amount, _text_line(text, match.start()))
            )

        if result.transactions:
            return

        for match in SLASH_DATE_ROW_PATTERN.finditer(text):
            day, month, year, description, amount_text = match.groups()
            txn_date = resolve_date(int(day), int(month), int(year), int(year))
            amount = parse_row_amount(amount_text)
            if txn_date is None or not amount:
                continue

            result.transactions.append(
                self._statement_txn(
                    txn_date,
                    collapse_whitespace(description),
                    amount,
                    _text_line(text, match.start()),
                )
            )

    # Issuer B: row patterns over the joined text, then a per-line fallback

    def _parse_issuer_b(self, text: str, result: ParseResult, strict: bool) -> None:
        result.metadata.setdefault("issuer_used", ISSUER_B)
        reference_year = infer_reference_year(text) or date.today().year

        lines = [line.strip() for line in text.splitlines() if line.strip()]
        line_starts = []
        offset = 0
        for line in lines:
            line_starts.append(offset)
            offset += len(line) + 1
        joined = " ".join(lines)

        seen: set[tuple[date, str, int]] = set()
        accepted_spans: list[tuple[int, int]] = []

        for row_pattern in ROW_PATTERNS:
            for row in iter_row_matches(row_pattern, joined):
                if any(row.start < end and start < row.end for start, end in accepted_spans):
                    continue

                txn_date = resolve_date(row.day, row.month, row.year, reference_year)
                amount = parse_row_amount(row.amount_text)
                if txn_date is None or not amount:
                    continue

                if looks_like_account_number(amount, row.amount_text, row.text):
                    continue

                description = collapse_whitespace(row.description)
                if len(description) < MIN_DESCRIPTION_LENGTH:
                    continue

                key = dedup_key(txn_date, description, amount)
                if key in seen:
                    continue
                seen.add(key)
                accepted_spans.append((row.start, row.end))

                result.transactions.append(
                    self._statement_txn(
                        txn_date, description, amount, _line_of(row.start, line_starts)
                    )
                )

        covered: set[int] = set()
        for start, end in accepted_spans:
            covered.update(
                range(_line_of(start, line_starts), _line_of(end - 1, line_starts) + 1)
            )

        for line_number, line in enumerate(lines, start=1):
            if line_number in covered:
                continue
            txn = self._parse_line(line, line_number, reference_year, seen, result, strict)
            if txn is not None:
                result.transactions.append(txn)

    def _parse_line(
        self,
        line: str,
        line_number: int,
        reference_year: int,
        seen: set,
        result: ParseResult,
        strict: bool,
    ) -> Optional[Transaction]:
        if len(line) < MIN_DESCRIPTION_LENGTH or is_header_or_footer(line):
            return None

        date_match = LINE_DATE_PATTERN.search(line)
        if not date_match:
            return None

        day, month, year = date_match.groups()
        txn_date = resolve_date(int(day), int(month), int(year) if year else None, reference_year)
        if txn_date is None:
            return None

        candidates = []
        for extractor in self.candidate_extractors:
            candidates.extend(extractor(line))
        candidate = select_candidate(candidates)
        if candidate is None:
            self._record_issue(result, f"Line {line_number}", "No amount found", strict)
            return None

        amount = parse_row_amount(candidate.text)
        if not amount:
            return None
        amount = abs(amount)
        if is_debit_marked(line, candidate):
            amount = -amount

        description = clean_line_description(line, date_match.group(0), candidate)
        if len(description) < min_description_length(description):
            return None

        key = dedup_key(txn_date, description, amount)
        if key in seen:
            return None
        seen.add(key)

        return self._statement_txn(txn_date, description, amount, line_number)

    def _statement_txn(
        self, txn_date: date, description: str, amount: Decimal, line_number: int
    ) -> Transaction:
        return Transaction(
            date=txn_date,
            description=description,
            amount=amount,
            origin=TransactionOrigin.STATEMENT,
            line_number=line_number,
        )


def _line_of(position: int, line_starts: list[int]) -> int:
    """1-based line number containing ``position`` in the joined text."""
    number = 1
    for idx, start in enumerate(line_starts, start=1):
        if start > position:
            break
        number = idx
    return number


def _text_line(text: str, position: int) -> int:
    return text.count("\n", 0, position) + 1
