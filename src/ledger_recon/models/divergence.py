"""Divergences reported by the matching engine and reconciliation summaries."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .transaction import Transaction


class DivergenceType(Enum):
    """Kinds of discrepancy the matcher can report."""

    VALUE_MISMATCH = "VALUE_MISMATCH"
    MISSING_IN_LEDGER = "MISSING_IN_LEDGER"
    MISSING_IN_STATEMENT = "MISSING_IN_STATEMENT"
    BALANCE_MISMATCH = "BALANCE_MISMATCH"
    SUSPICIOUS_CLASSIFICATION = "SUSPICIOUS_CLASSIFICATION"


@dataclass(frozen=True)
class TransactionSnapshot:
    """Value copy of the transaction fields a divergence report needs."""

    date: date
    description: str
    amount: Decimal
    document_number: Optional[str] = None
    account_code: Optional[str] = None

    @classmethod
    def of(cls, txn: Optional[Transaction]) -> Optional["TransactionSnapshot"]:
        if txn is None:
            return None
        return cls(
            date=txn.date,
            description=txn.description,
            amount=txn.amount,
            document_number=txn.document_number,
            account_code=txn.account_code,
        )


@dataclass(frozen=True)
class Divergence:
    """A discrepancy between the two sides, or a standalone anomaly."""

    type: DivergenceType
    description: str
    statement: Optional[TransactionSnapshot] = None
    ledger: Optional[TransactionSnapshot] = None
    amount_difference: Optional[Decimal] = None


@dataclass(frozen=True)
class MatchedPair:
    """A statement/ledger pairing chosen by the fuzzy matcher."""

    statement: Transaction
    ledger: Transaction
    score: float
    similarity: float
    date_distance_days: int
    amount_distance: Decimal


@dataclass
class FuzzyMatchResult:
    """Output of fuzzy bank-vs-ledger matching."""

    pairs: list[MatchedPair] = field(default_factory=list)
    divergences: list[Divergence] = field(default_factory=list)


@dataclass
class ReconciliationSummary:
    """Counts and totals describing one reconciliation run."""

    reconciliation_date: datetime
    total_statement_transactions: int
    total_ledger_transactions: int
    matched_count: int
    missing_in_ledger_count: int
    missing_in_statement_count: int
    value_mismatch_count: int

    statement_total_credits: Decimal
    statement_total_debits: Decimal
    ledger_total_credits: Decimal
    ledger_total_debits: Decimal

    divergences_by_type: dict[str, int] = field(default_factory=dict)
    processing_time_seconds: float = 0.0
    statement_period_start: Optional[date] = None
    statement_period_end: Optional[date] = None

    @property
    def match_rate_statement(self) -> float:
        """Percentage of statement transactions matched."""
        if self.total_statement_transactions == 0:
            return 0.0
        return (self.matched_count / self.total_statement_transactions) * 100

    @property
    def statement_net_change(self) -> Decimal:
        """Net change from statement transactions (credits - debits)."""
        return self.statement_total_credits - self.statement_total_debits

    @property
    def ledger_net_change(self) -> Decimal:
        """Net change from ledger transactions (credits - debits)."""
        return self.ledger_total_credits - self.ledger_total_debits
