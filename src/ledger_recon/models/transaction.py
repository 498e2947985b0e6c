"""Canonical transaction model and parser output containers."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class TransactionOrigin(Enum):
    """Which side of the reconciliation a transaction comes from."""

    LEDGER = "ledger"  # Internal accounting entry
    STATEMENT = "statement"  # Bank-reported movement


@dataclass(frozen=True)
class Transaction:
    """
    Canonical transaction produced by every format parser.

    Amounts are signed: debits are negative, credits positive. Ledger entries
    carry an account code and optional classification hints used by the
    account validator; statement transactions may carry a running balance.
    """

    date: date
    description: str
    amount: Decimal
    origin: TransactionOrigin

    # External reference (check number, invoice, FITID)
    document_number: Optional[str] = None

    # Statement-only
    running_balance: Optional[Decimal] = None

    # Ledger-only
    account_code: Optional[str] = None
    event_type: Optional[str] = None
    category: Optional[str] = None
    entity_type: Optional[str] = None

    # Physical record (line, row or block number) in the source input
    line_number: Optional[int] = None

    @property
    def is_debit(self) -> bool:
        return self.amount < 0


@dataclass(frozen=True)
class ParsingIssue:
    """A single record that could not be interpreted."""

    location: str
    message: str

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


@dataclass
class ParseResult:
    """Transactions and accumulated issues from one parsed input."""

    transactions: list[Transaction] = field(default_factory=list)
    issues: list[ParsingIssue] = field(default_factory=list)
    source_name: Optional[str] = None

    # Parser-specific details (detected delimiter, detected issuer, ...)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def issue_messages(self) -> list[str]:
        """Issues prefixed with the source name, ready for aggregation."""
        prefix = f"[{self.source_name}] " if self.source_name else ""
        return [f"{prefix}{issue}" for issue in self.issues]
