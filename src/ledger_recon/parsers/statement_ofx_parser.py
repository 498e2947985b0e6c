"""
OFX statement parser.
Extracts STMTTRN blocks from XML or legacy SGML OFX documents.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional
import html
import logging
import re

from .base import BaseParser
from ..models.transaction import ParseResult, Transaction, TransactionOrigin
from ..utils.exceptions import AmountParseError, StatementStructureError
from ..utils.locale_values import parse_amount

logger = logging.getLogger(__name__)

OFX_MARKER_PATTERN = re.compile(r"<OFX\b|OFXHEADER", re.IGNORECASE)
TRANSACTION_BLOCK_PATTERN = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)

# SGML leaves tags unclosed, so a value runs until the next tag
FIELD_PATTERNS = {
    tag: re.compile(rf"<{tag}[^>]*>([^<]+)", re.IGNORECASE)
    for tag in ("DTPOSTED", "TRNAMT", "FITID", "MEMO", "NAME")
}

OFX_DATE_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})\d*")
PLAIN_DECIMAL_PATTERN = re.compile(r"^[+-]?\d+(?:\.\d+)?$")

MISSING_DESCRIPTION = "Transaction without description"


def parse_ofx_date(value: str) -> Optional[date]:
    """
    Parse an OFX date (``YYYYMMDD`` with optional time and zone suffix).

    Args:
        value: DTPOSTED contents, e.g. ``20240301120000[-3:BRT]``

    Returns:
        Date, or None when the value is too short or not a calendar date
    """
    match = OFX_DATE_PATTERN.match(value.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_ofx_amount(value: str) -> Decimal:
    """OFX amounts use a dot decimal; some banks still emit a comma."""
    text = value.strip()
    if PLAIN_DECIMAL_PATTERN.match(text):
        try:
            return Decimal(text)
        except InvalidOperation as e:
            raise AmountParseError(f"Could not parse amount '{value}'") from e
    return parse_amount(text)


class StatementOfxParser(BaseParser):
    """Parser for OFX bank statements."""

    format_name = "OFX statement"

    def _parse_text(self, text: str, result: ParseResult, strict: bool) -> None:
        if not OFX_MARKER_PATTERN.search(text):
            raise StatementStructureError("Input is not an OFX document (no OFX marker found)")

        blocks = TRANSACTION_BLOCK_PATTERN.findall(text)
        logger.debug(f"Found {len(blocks)} STMTTRN blocks")
        if not blocks:
            logger.warning("OFX document contains no STMTTRN blocks")

        for number, block in enumerate(blocks, start=1):
            txn = self._parse_block(block, number, result, strict)
            if txn is not None:
                result.transactions.append(txn)

    def _parse_block(
        self, block: str, number: int, result: ParseResult, strict: bool
    ) -> Optional[Transaction]:
        location = f"Transaction {number}"
        fields: dict[str, str] = {}
        for tag, pattern in FIELD_PATTERNS.items():
            match = pattern.search(block)
            if match:
                fields[tag] = html.unescape(match.group(1)).strip()

        if not fields.get("DTPOSTED"):
            self._record_issue(result, location, "DTPOSTED not found", strict)
            return None

        txn_date = parse_ofx_date(fields["DTPOSTED"])
        if txn_date is None:
            self._record_issue(result, location, f"Invalid date '{fields['DTPOSTED']}'", strict)
            return None

        if not fields.get("TRNAMT"):
            self._record_issue(result, location, "TRNAMT not found", strict)
            return None

        try:
            amount = parse_ofx_amount(fields["TRNAMT"])
        except AmountParseError as e:
            self._record_issue(result, location, str(e), strict)
            return None

        if amount == 0:
            return None

        description = fields.get("MEMO") or fields.get("NAME") or MISSING_DESCRIPTION

        return Transaction(
            date=txn_date,
            description=description,
            amount=amount,
            origin=TransactionOrigin.STATEMENT,
            document_number=fields.get("FITID") or None,
            line_number=number,
        )
