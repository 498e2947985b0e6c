"""
Ledger text export parser.
Parses delimited or positional accounting exports into ledger transactions.
"""

from datetime import date
from typing import Optional
import logging
import re

from .base import BaseParser
from ..models.transaction import ParseResult, Transaction, TransactionOrigin
from ..utils.exceptions import AmountParseError
from ..utils.locale_values import parse_amount, parse_date

logger = logging.getLogger(__name__)

DELIMITER_PATTERN = re.compile(r"[|;\t]+")

# 1.1.01, 2.1.1.003 (no comma, so Brazilian amounts like 1.234.567,89 never match)
ACCOUNT_CODE_PATTERN = re.compile(r"^\d+\.\d+\.\d+[\d.]*$")

# NF001, PIX42
DOCUMENT_PATTERN = re.compile(r"^[A-Z]+\d+$", re.IGNORECASE)

AMOUNT_TOKEN_PATTERN = re.compile(r"^[\d.,-]+$")

# date, text, trailing amount, optional D/C marker
POSITIONAL_PATTERN = re.compile(
    r"^(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})\s+(.+?)\s+([\d.,-]+)\s*(D|C|DEBITO|CREDITO)?$",
    re.IGNORECASE,
)

FIXED_LAYOUT_TOKENS = 7
MIN_TOKENS = 3
MIN_DESCRIPTION_LENGTH = 10


def looks_like_amount(token: str) -> bool:
    """
    Check whether a token is shaped like a monetary amount.

    The token must be purely numeric with a decimal separator: a comma, or a
    dot followed by at most two digits. Account codes are excluded.
    """
    if not AMOUNT_TOKEN_PATTERN.match(token):
        return False
    if ACCOUNT_CODE_PATTERN.match(token) or re.match(r"^\d+\.\d+\.", token):
        return False
    if "," in token:
        return True
    if "." in token:
        return len(token.split(".")[1]) <= 2
    return False


class LedgerTextParser(BaseParser):
    """
    Parser for ledger text exports.

    Each non-header line is split on ``|``, ``;`` or tab. A line of exactly
    seven tokens starting with a date uses the fixed column order
    (date, description, account, document, amount, category, entity type);
    other delimited lines are scanned heuristically. Undelimited lines are
    matched against a positional ``date text amount [D|C]`` pattern.
    """

    format_name = "ledger text export"

    def __init__(self, config=None):
        super().__init__(config)
        self.header_keywords = [
            keyword.upper() for keyword in self.config.input.ledger.header_keywords
        ]

    def _parse_text(self, text: str, result: ParseResult, strict: bool) -> None:
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line or self._is_header(line):
                continue

            location = f"Line {line_number}"

            if DELIMITER_PATTERN.search(line):
                txn = self._parse_delimited(line, line_number, location, result, strict)
            else:
                txn = self._parse_positional(line, line_number, location, result, strict)

            if txn is not None:
                result.transactions.append(txn)

    def _is_header(self, line: str) -> bool:
        upper = line.upper()
        return any(keyword in upper for keyword in self.header_keywords)

    def _parse_delimited(
        self,
        line: str,
        line_number: int,
        location: str,
        result: ParseResult,
        strict: bool,
    ) -> Optional[Transaction]:
        tokens = [token.strip() for token in DELIMITER_PATTERN.split(line)]
        tokens = [token for token in tokens if token]

        if len(tokens) < MIN_TOKENS:
            self._record_issue(
                result, location, f"Expected at least {MIN_TOKENS} fields, found {len(tokens)}", strict
            )
            return None

        if len(tokens) == FIXED_LAYOUT_TOKENS and parse_date(tokens[0]):
            return self._parse_fixed_layout(tokens, line_number, location, result, strict)

        return self._parse_variable_layout(tokens, line_number, location, result, strict)

    def _parse_fixed_layout(
        self,
        tokens: list[str],
        line_number: int,
        location: str,
        result: ParseResult,
        strict: bool,
    ) -> Optional[Transaction]:
        """date | description | account | document | amount | category | entity type"""
        amount = self._amount_or_issue(tokens[4], location, result, strict)
        if amount is None or amount == 0:
            return None

        description = tokens[1]
        if len(description) < MIN_DESCRIPTION_LENGTH:
            description = _backfill_description(tokens, 4) or description

        return Transaction(
            date=parse_date(tokens[0]),
            description=description,
            amount=amount,
            origin=TransactionOrigin.LEDGER,
            document_number=tokens[3] or None,
            account_code=tokens[2] or None,
            category=tokens[5] or None,
            entity_type=tokens[6] or None,
            line_number=line_number,
        )

    def _parse_variable_layout(
        self,
        tokens: list[str],
        line_number: int,
        location: str,
        result: ParseResult,
        strict: bool,
    ) -> Optional[Transaction]:
        located = _locate_date(tokens)
        if located is None:
            self._record_issue(result, location, "Date not found", strict)
            return None
        txn_date, description, scan_start = located

        account_code: Optional[str] = None
        document: Optional[str] = None
        amount_token: Optional[str] = None
        amount_idx: Optional[int] = None

        for idx in range(scan_start, len(tokens)):
            token = tokens[idx]
            if ACCOUNT_CODE_PATTERN.match(token):
                account_code = account_code or token
                continue
            if DOCUMENT_PATTERN.match(token):
                document = document or token
                continue
            if looks_like_amount(token):
                amount_token = token
                amount_idx = idx
                break

        if amount_token is None:
            self._record_issue(result, location, "Amount not found", strict)
            return None

        amount = self._amount_or_issue(amount_token, location, result, strict)
        if amount is None or amount == 0:
            return None

        if len(description) < MIN_DESCRIPTION_LENGTH:
            description = _backfill_description(tokens, amount_idx) or description

        # Account code or document may sit anywhere on the line
        if account_code is None:
            account_code = _first_match(tokens, ACCOUNT_CODE_PATTERN, skip=amount_idx)
        if document is None:
            document = _first_match(tokens, DOCUMENT_PATTERN, skip=amount_idx)

        return Transaction(
            date=txn_date,
            description=description,
            amount=amount,
            origin=TransactionOrigin.LEDGER,
            document_number=document,
            account_code=account_code,
            line_number=line_number,
        )

    def _parse_positional(
        self,
        line: str,
        line_number: int,
        location: str,
        result: ParseResult,
        strict: bool,
    ) -> Optional[Transaction]:
        match = POSITIONAL_PATTERN.match(line)
        if not match:
            self._record_issue(result, location, "Unrecognized line format", strict)
            return None

        txn_date = parse_date(match.group(1))
        if txn_date is None:
            self._record_issue(result, location, f"Invalid date '{match.group(1)}'", strict)
            return None

        amount_text = match.group(3)
        if match.group(4):
            amount_text = f"{amount_text} {match.group(4)}"

        amount = self._amount_or_issue(amount_text, location, result, strict)
        if amount is None or amount == 0:
            return None

        return Transaction(
            date=txn_date,
            description=match.group(2).strip(),
            amount=amount,
            origin=TransactionOrigin.LEDGER,
            line_number=line_number,
        )

    def _amount_or_issue(self, token: str, location: str, result: ParseResult, strict: bool):
        try:
            return parse_amount(token)
        except AmountParseError as e:
            self._record_issue(result, location, str(e), strict)
            return None


def _locate_date(tokens: list[str]) -> Optional[tuple[date, str, int]]:
    """
    Find the date among the first three tokens.

    Returns:
        (date, description, index to start scanning from) or None
    """
    first = parse_date(tokens[0])
    if first:
        return first, tokens[1], 2

    second = parse_date(tokens[1])
    if second:
        return second, tokens[0], 2

    if len(tokens) > 2:
        third = parse_date(tokens[2])
        if third:
            return third, f"{tokens[0]} {tokens[1]}", 3

    return None


def _backfill_description(tokens: list[str], amount_idx: int) -> Optional[str]:
    """First long, non-numeric token after the amount."""
    for token in tokens[amount_idx + 1:]:
        if len(token) > MIN_DESCRIPTION_LENGTH and not AMOUNT_TOKEN_PATTERN.match(token):
            return token
    return None


def _first_match(tokens: list[str], pattern: re.Pattern, skip: Optional[int]) -> Optional[str]:
    for idx, token in enumerate(tokens):
        if idx != skip and pattern.match(token):
            return token
    return None
