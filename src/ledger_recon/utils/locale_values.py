"""
Locale-aware parsing of amounts and dates.

Bank and ledger exports mix Brazilian (``1.234,56``) and US (``1,234.56``)
conventions, often within the same file. Everything that reads a number or a
date from raw text goes through this module.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
import re
import unicodedata

from .exceptions import AmountParseError

CURRENCY_PATTERN = re.compile(r"R\$|US\$|[$€£¥]")
DEBIT_SUFFIX_PATTERN = re.compile(r"\s*(?:D[EÉ]BITO|D)$", re.IGNORECASE)
CREDIT_SUFFIX_PATTERN = re.compile(r"\s*(?:CR[EÉ]DITO|C)$", re.IGNORECASE)
NUMERIC_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")

# Ordered: first format whose shape matches and yields a real calendar date wins.
DATE_FORMATS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^\d{2}/\d{2}/\d{4}$"), "%d/%m/%Y"),
    (re.compile(r"^\d{2}/\d{2}/\d{2}$"), "%d/%m/%y"),
    (re.compile(r"^\d{4}-\d{2}-\d{2}$"), "%Y-%m-%d"),
    (re.compile(r"^\d{2}-\d{2}-\d{4}$"), "%d-%m-%Y"),
    (re.compile(r"^\d{2}-\d{2}-\d{2}$"), "%d-%m-%y"),
]


def parse_amount(text: Union[str, int, float, Decimal]) -> Decimal:
    """Parse an amount written in either decimal convention into a Decimal.

    Handles:
    - "1.234,56" and "1,234.56" (right-most separator is the decimal point)
    - "1234,5" (lone comma followed by 1-2 digits is decimal)
    - "1,234" / "1.234" (lone separator followed by 3 digits is thousands)
    - "-123,45", "123,45-", "(123,45)" and "123,45 D" (negative)
    - "123,45 C" and "+123,45" (explicit credit, no sign change)
    - "R$ 1.234,56", "$1,234.56"

    Args:
        text: Amount string

    Returns:
        Decimal amount

    Raises:
        AmountParseError: If the string is empty or has non-numeric residue
    """
    if isinstance(text, Decimal):
        return text
    if isinstance(text, (int, float)):
        return Decimal(str(text))
    if text is None or not str(text).strip():
        raise AmountParseError("Empty amount string")

    original = str(text)
    value = CURRENCY_PATTERN.sub("", original).strip()

    negative = False

    if value.startswith("(") and value.endswith(")"):
        negative = True
        value = value[1:-1].strip()

    if DEBIT_SUFFIX_PATTERN.search(value):
        negative = not negative
        value = DEBIT_SUFFIX_PATTERN.sub("", value).strip()
    elif CREDIT_SUFFIX_PATTERN.search(value):
        value = CREDIT_SUFFIX_PATTERN.sub("", value).strip()

    if value.startswith("-"):
        negative = not negative
        value = value[1:].strip()
    elif value.startswith("+"):
        value = value[1:].strip()
    elif value.endswith("-"):
        negative = not negative
        value = value[:-1].strip()

    value = CURRENCY_PATTERN.sub("", value).replace(" ", "")
    normalized = _normalize_separators(value)

    if not NUMERIC_PATTERN.match(normalized):
        raise AmountParseError(f"Could not parse amount '{original}'")

    try:
        amount = Decimal(normalized)
    except InvalidOperation as e:
        raise AmountParseError(f"Could not parse amount '{original}': {e}") from e

    return -amount if negative else amount


def _normalize_separators(value: str) -> str:
    """Rewrite thousands/decimal separators into a plain ``1234.56`` form."""
    has_comma = "," in value
    has_dot = "." in value

    if has_comma and has_dot:
        if value.rfind(",") > value.rfind("."):
            return value.replace(".", "").replace(",", ".")
        return value.replace(",", "")

    for separator in (",", "."):
        if separator in value:
            parts = value.split(separator)
            if len(parts) == 2 and 1 <= len(parts[1]) <= 2:
                return parts[0] + "." + parts[1]
            return value.replace(separator, "")

    return value


def parse_date(text: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse a date in one of the supported day-first or ISO formats.

    Args:
        text: Date string (or an already-parsed date)

    Returns:
        Date object, or None when the string is not a valid date in any format
    """
    if text is None:
        return None
    if isinstance(text, datetime):
        return text.date()
    if isinstance(text, date):
        return text

    value = str(text).strip()
    if not value:
        return None

    for shape, fmt in DATE_FORMATS:
        if not shape.match(value):
            continue
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    return None


def strip_accents(text: str) -> str:
    """Remove diacritics (``ação`` -> ``acao``)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


_BOILERPLATE_PATTERNS = [
    # DOC. 12345
    re.compile(r"\bdoc\.?\s*\d+\b"),
    # CNPJ: 12.345.678/0001-90
    re.compile(r"\b\d{2,3}\.?\d{3}\.?\d{3}[/-]?\d{2,4}[-\s]?\d{2}\b"),
    # CPF: 123.456.789-00
    re.compile(r"\b\d{3}\.\d{3}\.\d{3}-\d{2}\b"),
    re.compile(r"\b(?:pgt|pgto|pagto)\.?\s*\d*\b"),
    re.compile(r"\b(?:nu\s+pagamentos|ip|agencia|conta)\s*:?\s*\d+[-\s]?\d*\b"),
    # masked CPF digits
    re.compile(r"[•*]{2,}"),
]


def normalize_description(text: Optional[str]) -> str:
    """
    Normalize a free-text description for comparison.

    Lowercases, strips accents, removes transaction boilerplate (document and
    CPF/CNPJ numbers, payment-method tags, masked digits) and collapses
    whitespace.
    """
    if not text:
        return ""

    desc = strip_accents(text.lower().strip())
    for pattern in _BOILERPLATE_PATTERNS:
        desc = pattern.sub("", desc)

    return " ".join(desc.split())


def cents(amount: Decimal) -> int:
    """Amount rounded to integer cents, used as a hashable matching key."""
    return int((amount * 100).quantize(Decimal("1")))
