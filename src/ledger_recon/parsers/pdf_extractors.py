"""
Pattern heuristics for text extracted from bank PDF statements.

Row patterns find whole ``date description amount`` rows in the statement
text. For lines no row pattern covers, amount candidate extractors propose
scored amount tokens and ``select_candidate`` picks one.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Iterator, Optional
import re

from ..utils.exceptions import AmountParseError
from ..utils.locale_values import parse_amount, strip_accents

# Portuguese abbreviations plus the English ones that do not collide with them
MONTHS: dict[str, int] = {
    "JAN": 1,
    "FEV": 2,
    "FEB": 2,
    "MAR": 3,
    "ABR": 4,
    "APR": 4,
    "MAI": 5,
    "MAY": 5,
    "JUN": 6,
    "JUL": 7,
    "AGO": 8,
    "AUG": 8,
    "SET": 9,
    "SEP": 9,
    "OUT": 10,
    "OCT": 10,
    "NOV": 11,
    "DEZ": 12,
    "DEC": 12,
}

_MONTH_ALTERNATION = "|".join(MONTHS)

PERIOD_PATTERN = re.compile(
    r"PER[IÍ]ODO\s*:\s*(\d{2})/(\d{2})/(\d{4})\s*[-–]\s*(\d{2})/(\d{2})/(\d{4})",
    re.IGNORECASE,
)

# 16 OUT 2025 Transferência recebida 1.123,60
MONTH_NAME_ROW_PATTERN = re.compile(
    rf"(\d{{1,2}})\s+({_MONTH_ALTERNATION})\s+(\d{{4}})\s+(.+?)\s+([\d.,-]+)",
    re.IGNORECASE,
)

# 16/10/2025 Transferência recebida R$ 1.123,60
SLASH_DATE_ROW_PATTERN = re.compile(r"(\d{2})/(\d{2})/(\d{4})\s+(.+?)\s+(R\$\s*[\d.,-]+)")

TOTAL_PREFIX_PATTERN = re.compile(r"^Total\s+de\s+(?:entradas|sa[ií]das)\s*[+-]?\s*", re.IGNORECASE)

_DAY_MONTH = r"(?P<day>\d{1,2})/(?P<month>\d{1,2})(?:/(?P<year>\d{2,4}))?"
# Starts on the amount itself so a row span never begins on the previous line
_AMOUNT = r"(?P<amount>(?:R\$\s*)?-?\d[\d.,]*-?(?![/\d])(?:\s*[DC]\b)?)"
# Description runs until the next number or the end of the text
_DESCRIPTION = r"(?P<description>[^0-9]+?)"

LINE_DATE_PATTERN = re.compile(r"(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?")

# Lines that are statement furniture rather than movements (accent-stripped)
HEADER_FOOTER_WORDS = (
    "PERIODO",
    "SALDO",
    "TOTAL",
    "DATA",
    "DESCRICAO",
    "VALOR",
    "SICOOB",
    "COOPERATIVAS",
    "CONTA CORRENTE",
    "AGENCIA",
    "TITULAR",
)

MIN_DESCRIPTION_LENGTH = 10
MIN_KEYWORD_DESCRIPTION_LENGTH = 8
DESCRIPTION_KEYWORDS = ("TED", "PIX", "RECEBIMENTO", "PAGAMENTO", "BOLETO", "TARIFA")

REPEATED_DIGITS_PATTERN = re.compile(r"^(\d)\1{4,}$")


@dataclass(frozen=True)
class RowPattern:
    """A named regular expression matching a complete statement row."""

    name: str
    pattern: re.Pattern


@dataclass(frozen=True)
class RowMatch:
    """Raw fields of one row pattern hit."""

    day: int
    month: int
    year: Optional[int]
    description: str
    amount_text: str
    start: int
    end: int
    text: str


# Tried in order; a later pattern never re-reads text an earlier one accepted
ROW_PATTERNS: list[RowPattern] = [
    RowPattern(
        "date-description-amount",
        re.compile(rf"{_DAY_MONTH}\s+{_DESCRIPTION}\s+{_AMOUNT}", re.IGNORECASE),
    ),
    RowPattern(
        "amount-date-description",
        re.compile(rf"{_AMOUNT}\s+{_DAY_MONTH}\s+{_DESCRIPTION}(?=\s+\d|\s*$)", re.IGNORECASE),
    ),
    RowPattern(
        "date-amount-description",
        re.compile(rf"{_DAY_MONTH}\s+{_AMOUNT}\s+{_DESCRIPTION}(?=\s+\d|\s*$)", re.IGNORECASE),
    ),
]


def iter_row_matches(row_pattern: RowPattern, text: str) -> Iterator[RowMatch]:
    for match in row_pattern.pattern.finditer(text):
        year = match.group("year")
        yield RowMatch(
            day=int(match.group("day")),
            month=int(match.group("month")),
            year=int(year) if year else None,
            description=match.group("description"),
            amount_text=match.group("amount").strip(),
            start=match.start(),
            end=match.end(),
            text=match.group(0),
        )


def infer_reference_year(text: str) -> Optional[int]:
    """Year of the period end date in a ``PERÍODO: dd/mm/yyyy - dd/mm/yyyy`` header."""
    match = PERIOD_PATTERN.search(text)
    if not match:
        return None
    try:
        return date(int(match.group(6)), int(match.group(5)), int(match.group(4))).year
    except ValueError:
        return None


def resolve_date(day: int, month: int, year: Optional[int], reference_year: int) -> Optional[date]:
    """
    Build a date from row fields.

    Two-digit years are taken as 20xx; a missing year uses the reference year.
    """
    if year is None:
        year = reference_year
    elif year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def dedup_key(txn_date: date, description: str, amount: Decimal) -> tuple[date, str, int]:
    """(date, first 50 characters of the description, cents)"""
    cents = int((amount * 100).quantize(Decimal("1")))
    return txn_date, collapse_whitespace(description)[:50].upper(), cents


def looks_like_account_number(amount: Decimal, amount_text: str, context: str) -> bool:
    """
    Five-digit integers without a decimal comma are usually account or slip
    numbers when the row mentions CONTA/BOLETO, or when the digits repeat.
    """
    if "," in amount_text or not Decimal("10000") <= abs(amount) < Decimal("100000"):
        return False
    upper = context.upper()
    if "CONTA" in upper or "BOLETO" in upper:
        return True
    digits = re.sub(r"[^\d]", "", amount_text)
    return bool(REPEATED_DIGITS_PATTERN.match(digits))


def is_header_or_footer(line: str) -> bool:
    upper = strip_accents(line).upper()
    return any(word in upper for word in HEADER_FOOTER_WORDS)


# Amount candidates


@dataclass(frozen=True)
class AmountCandidate:
    """An amount token proposed by an extractor, with its score."""

    text: str
    start: int
    end: int
    score: float
    extractor: str


CandidateExtractor = Callable[[str], list[AmountCandidate]]


def score_amount_token(token: str, index: int, line: str) -> Optional[float]:
    """
    Score an amount token found at ``index`` in ``line``.

    Tokens with a decimal comma and two decimals dominate; the position term
    (0..1) favours tokens further right.

    Returns:
        Score, or None when the token is disqualified (day numbers, years,
        five-digit account-like integers, large bare integers)
    """
    has_comma = "," in token
    try:
        value = Decimal(token.replace(".", "").replace(",", "."))
    except ArithmeticError:
        return None

    if not has_comma:
        if 1 <= value <= 31:
            return None
        if 2000 <= value <= 2099:
            return None
        if 10000 <= value < 100000:
            return None
        if value >= 100000:
            return None

    position = index / max(len(line), 1)

    if has_comma and len(token.split(",")[1]) == 2:
        return 20 + position
    if has_comma and value > 100:
        return 5 + position
    if not has_comma and value > 1000:
        return 3 + position
    return None


def regex_candidate_extractor(name: str, pattern: re.Pattern) -> CandidateExtractor:
    """Build an extractor scoring the first group of every ``pattern`` hit."""

    def extract(line: str) -> list[AmountCandidate]:
        candidates = []
        for match in pattern.finditer(line):
            token = match.group(1)
            score = score_amount_token(token, match.start(), line)
            if score is not None:
                candidates.append(
                    AmountCandidate(
                        text=token,
                        start=match.start(1),
                        end=match.end(1),
                        score=score,
                        extractor=name,
                    )
                )
        return candidates

    return extract


DEFAULT_CANDIDATE_EXTRACTORS: list[CandidateExtractor] = [
    # R$ 1.234,56
    regex_candidate_extractor(
        "currency", re.compile(r"R\$\s*(\d{1,3}(?:\.\d{3})*(?:,\d{2})?)")
    ),
    # whitespace-delimited 1.234,56 with optional D/C marker
    regex_candidate_extractor(
        "delimited", re.compile(r"\s(\d{1,3}(?:\.\d{3})*(?:,\d{2})?)(?=\s*[DC]?\b|\s*$)")
    ),
    # any 1.234,56 or 1234,56 shape not embedded in a longer number
    regex_candidate_extractor(
        "decimal-comma",
        re.compile(r"(?<![\d.,])(\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2})(?!\d)"),
    ),
]


def select_candidate(candidates: list[AmountCandidate]) -> Optional[AmountCandidate]:
    """Highest score wins; equal scores go to the right-most token."""
    best: Optional[AmountCandidate] = None
    for candidate in candidates:
        if best is None or (candidate.score, candidate.start) > (best.score, best.start):
            best = candidate
    return best


def is_debit_marked(line: str, candidate: AmountCandidate) -> bool:
    """A trailing ``D`` or a leading ``-`` next to the selected token marks a debit."""
    after = line[candidate.end:]
    before = line[:candidate.start].rstrip()
    if re.match(r"^\s*D\b", after, re.IGNORECASE):
        return True
    if before.endswith("R$"):
        before = before[:-2].rstrip()
    return before.endswith("-")


def clean_line_description(line: str, date_text: str, candidate: AmountCandidate) -> str:
    """Remove the date, the selected amount and stray numeric debris from a line."""
    desc = line[:candidate.start] + " " + line[candidate.end:]
    date_index = desc.find(date_text)
    if date_index >= 0:
        desc = desc[:date_index] + " " + desc[date_index + len(date_text):]

    desc = re.sub(r"R\$\s*$", "", desc.rstrip())
    desc = re.sub(r"R\$\s+(?=\S)", "", desc)
    # Trailing thousands-grouped numbers, then short or long bare numbers
    desc = re.sub(r"\d{1,3}(?:\.\d{3})+(?:,\d{2})?$", "", desc.strip()).strip()
    desc = re.sub(r"\s+(?:\d{1,4}|\d{6,})(?:,\d+)?$", "", desc).strip()
    desc = re.sub(r",\d+$", "", desc).strip()
    # Money tokens between words
    desc = re.sub(r"\s+\d{1,3}(?:\.\d{3})*(?:,\d{2})?(?=\s)", " ", desc)
    desc = re.sub(r"\s+[DC]\s*$", "", desc, flags=re.IGNORECASE).strip()
    # Values glued to a word: ABC1.500 -> ABC
    desc = re.sub(r"([A-Z]\.?)(\d{1,3}(?:\.\d{3})+(?:,\d{2})?|\d+,\d{2})", r"\1", desc)

    desc = collapse_whitespace(desc)
    return re.sub(r"^[^\w\s]+|[^\w\s]+$", "", desc).strip()


def min_description_length(description: str) -> int:
    upper = description.upper()
    if any(keyword in upper for keyword in DESCRIPTION_KEYWORDS):
        return MIN_KEYWORD_DESCRIPTION_LENGTH
    return MIN_DESCRIPTION_LENGTH


def parse_row_amount(amount_text: str) -> Optional[Decimal]:
    try:
        return parse_amount(amount_text)
    except AmountParseError:
        return None
