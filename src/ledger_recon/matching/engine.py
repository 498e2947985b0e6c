"""
Matching engine for ledger vs. bank statement reconciliation.
Implements keyed strict reconciliation and windowed fuzzy matching.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
import logging

from ..config import ReconConfig
from ..models.divergence import (
    Divergence,
    DivergenceType,
    FuzzyMatchResult,
    MatchedPair,
    ReconciliationSummary,
    TransactionSnapshot,
)
from ..models.transaction import Transaction, TransactionOrigin
from ..utils.locale_values import cents, normalize_description
from .similarity import description_similarity, first_word

logger = logging.getLogger(__name__)

# Score weights for fuzzy candidates
SIMILARITY_WEIGHT = 0.7
DATE_WEIGHT = 0.2
AMOUNT_WEIGHT = 0.1

# Optional threshold relaxation for very short descriptions
SHORT_DESCRIPTION_LENGTH = 5
LONG_FIRST_WORD_LENGTH = 8
RELAXED_SIMILARITY_CAP = 0.4
RELAXED_SIMILARITY_FACTOR = 0.7


class ConsumedIndex:
    """
    Positions already paired on each side of one matching call.

    Indices refer to the caller's lists; nothing is written back to the
    transactions themselves.
    """

    def __init__(self):
        self.statement: set[int] = set()
        self.ledger: set[int] = set()

    def consume(self, statement_idx: Optional[int] = None, ledger_idx: Optional[int] = None) -> None:
        if statement_idx is not None:
            self.statement.add(statement_idx)
        if ledger_idx is not None:
            self.ledger.add(ledger_idx)

    def statement_free(self, idx: int) -> bool:
        return idx not in self.statement

    def ledger_free(self, idx: int) -> bool:
        return idx not in self.ledger


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


def _document_key(txn: Transaction) -> Optional[tuple[date, str]]:
    if not txn.document_number or not txn.document_number.strip():
        return None
    return txn.date, txn.document_number.strip().upper()


def _description_key(txn: Transaction) -> tuple[date, str]:
    return txn.date, normalize_description(txn.description)


class ReconciliationEngine:
    """
    Reconciliation engine comparing statement transactions to ledger entries.

    Both entry points are pure: inputs are never mutated and all pairing
    bookkeeping lives in a ``ConsumedIndex`` local to the call.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the reconciliation engine.

        Args:
            config: Application configuration (defaults when omitted)
        """
        self.config = config or ReconConfig()
        matching = self.config.matching
        self.suspicious_keywords = [
            normalize_description(keyword) for keyword in matching.suspicious_keywords
        ]
        self.generic_account_codes = set(matching.generic_account_codes)

    # Strict reconciliation

    def reconcile(
        self,
        statement_txns: list[Transaction],
        ledger_txns: list[Transaction],
        amount_tolerance: Optional[float] = None,
    ) -> list[Divergence]:
        """
        Reconcile statement transactions against ledger entries.

        Passes, in order: value mismatches keyed by document number (then by
        description), exact/tolerant pairing on date and amount, missing
        entries on either side, opening/closing balance comparison, and
        suspicious fee classification.

        Args:
            statement_txns: Bank statement transactions
            ledger_txns: Ledger entries
            amount_tolerance: Maximum amount difference for a pair (config default)

        Returns:
            List of divergences
        """
        tolerance = self._tolerance(amount_tolerance)
        logger.info(
            f"Starting reconciliation: {len(statement_txns)} statement txns, "
            f"{len(ledger_txns)} ledger txns (tolerance {tolerance})"
        )

        consumed = ConsumedIndex()
        divergences: list[Divergence] = []

        divergences.extend(
            self._value_mismatch_pass(statement_txns, ledger_txns, tolerance, consumed)
        )
        logger.debug(f"Value mismatch pass: {len(divergences)} divergences")

        paired = self._pairing_pass(statement_txns, ledger_txns, tolerance, consumed)
        logger.debug(f"Pairing pass: {paired} pairs")

        divergences.extend(self._missing_pass(statement_txns, ledger_txns, consumed))
        divergences.extend(self._balance_pass(statement_txns, ledger_txns, tolerance))
        divergences.extend(self._suspicious_classification_pass(ledger_txns))

        logger.info(f"Reconciliation complete: {paired} paired, {len(divergences)} divergences")
        return divergences

    def _value_mismatch_pass(
        self,
        statement_txns: list[Transaction],
        ledger_txns: list[Transaction],
        tolerance: Decimal,
        consumed: ConsumedIndex,
    ) -> list[Divergence]:
        """
        Find same-day records sharing a document number (or description)
        whose amounts differ. Both records are consumed.
        """
        divergences: list[Divergence] = []
        min_difference = Decimal(str(self.config.matching.value_mismatch_min_difference))

        by_document: dict[tuple[date, str], list[int]] = defaultdict(list)
        by_description: dict[tuple[date, str], list[int]] = defaultdict(list)
        for idx, txn in enumerate(ledger_txns):
            doc_key = _document_key(txn)
            if doc_key:
                by_document[doc_key].append(idx)
            by_description[_description_key(txn)].append(idx)

        for s_idx, stmt in enumerate(statement_txns):
            doc_key = _document_key(stmt)
            doc_candidates = [
                idx for idx in by_document.get(doc_key, []) if consumed.ledger_free(idx)
            ] if doc_key else []

            if doc_candidates:
                # An equal-amount candidate is left for the pairing pass
                if any(abs(stmt.amount - ledger_txns[idx].amount) <= tolerance for idx in doc_candidates):
                    continue
                l_idx = doc_candidates[0]
                ledger = ledger_txns[l_idx]
                divergences.append(
                    self._value_mismatch(
                        stmt,
                        ledger,
                        f"Entries with the same document ({stmt.document_number}) and date "
                        f"({stmt.date.isoformat()}) have different amounts.",
                    )
                )
                consumed.consume(s_idx, l_idx)
                continue

            desc_candidates = [
                idx
                for idx in by_description.get(_description_key(stmt), [])
                if consumed.ledger_free(idx)
            ]
            if any(abs(stmt.amount - ledger_txns[idx].amount) <= tolerance for idx in desc_candidates):
                continue

            for l_idx in desc_candidates:
                ledger = ledger_txns[l_idx]
                difference = abs(stmt.amount - ledger.amount)
                # Small differences on description-only keys are rounding noise
                if difference > tolerance and difference > min_difference:
                    divergences.append(
                        self._value_mismatch(
                            stmt,
                            ledger,
                            f"Entries with the same description and date "
                            f"({stmt.date.isoformat()}) have different amounts.",
                        )
                    )
                    consumed.consume(s_idx, l_idx)
                    break

        return divergences

    def _value_mismatch(self, stmt: Transaction, ledger: Transaction, reason: str) -> Divergence:
        difference = abs(stmt.amount - ledger.amount)
        return Divergence(
            type=DivergenceType.VALUE_MISMATCH,
            description=(
                f"{reason} Statement: {_money(stmt.amount)}, Ledger: {_money(ledger.amount)} "
                f"(difference: {_money(difference)})"
            ),
            statement=TransactionSnapshot.of(stmt),
            ledger=TransactionSnapshot.of(ledger),
            amount_difference=difference,
        )

    def _pairing_pass(
        self,
        statement_txns: list[Transaction],
        ledger_txns: list[Transaction],
        tolerance: Decimal,
        consumed: ConsumedIndex,
    ) -> int:
        """
        Pair remaining records on (date, amount in cents), then on same date
        with the amount within tolerance. First eligible pair wins.

        Returns:
            Number of pairs made
        """
        by_date_amount: dict[tuple[date, int], list[int]] = defaultdict(list)
        for idx, txn in enumerate(ledger_txns):
            if consumed.ledger_free(idx):
                by_date_amount[(txn.date, cents(txn.amount))].append(idx)

        paired = 0
        for s_idx, stmt in enumerate(statement_txns):
            if not consumed.statement_free(s_idx):
                continue

            match_idx = next(
                (
                    idx
                    for idx in by_date_amount.get((stmt.date, cents(stmt.amount)), [])
                    if consumed.ledger_free(idx)
                ),
                None,
            )

            if match_idx is None:
                match_idx = next(
                    (
                        idx
                        for idx, ledger in enumerate(ledger_txns)
                        if consumed.ledger_free(idx)
                        and ledger.date == stmt.date
                        and abs(stmt.amount - ledger.amount) <= tolerance
                    ),
                    None,
                )

            if match_idx is not None:
                consumed.consume(s_idx, match_idx)
                paired += 1

        return paired

    def _missing_pass(
        self,
        statement_txns: list[Transaction],
        ledger_txns: list[Transaction],
        consumed: ConsumedIndex,
    ) -> list[Divergence]:
        divergences = [
            self._missing_in_ledger(stmt, "Statement entry not found in the ledger.")
            for idx, stmt in enumerate(statement_txns)
            if consumed.statement_free(idx)
        ]
        divergences.extend(
            self._missing_in_statement(ledger, "Ledger entry not found in the statement.")
            for idx, ledger in enumerate(ledger_txns)
            if consumed.ledger_free(idx)
        )
        return divergences

    def _balance_pass(
        self,
        statement_txns: list[Transaction],
        ledger_txns: list[Transaction],
        tolerance: Decimal,
    ) -> list[Divergence]:
        """One divergence when opening or closing balances disagree."""
        statement_balances = [t.running_balance for t in statement_txns if t.running_balance is not None]
        ledger_balances = [t.running_balance for t in ledger_txns if t.running_balance is not None]
        if not statement_balances or not ledger_balances:
            return []

        opening_diff = abs(statement_balances[0] - ledger_balances[0])
        closing_diff = abs(statement_balances[-1] - ledger_balances[-1])
        if opening_diff <= tolerance and closing_diff <= tolerance:
            return []

        description = (
            "Opening/closing balance differs between statement and ledger. "
            f"Statement: {_money(statement_balances[0])} -> {_money(statement_balances[-1])}; "
            f"Ledger: {_money(ledger_balances[0])} -> {_money(ledger_balances[-1])}."
        )
        if opening_diff > tolerance:
            description += f" Opening balance difference: {_money(opening_diff)}."
        if closing_diff > tolerance:
            description += f" Closing balance difference: {_money(closing_diff)}."

        return [
            Divergence(
                type=DivergenceType.BALANCE_MISMATCH,
                description=description,
                amount_difference=closing_diff if closing_diff > tolerance else opening_diff,
            )
        ]

    def _suspicious_classification_pass(self, ledger_txns: list[Transaction]) -> list[Divergence]:
        """Fee/interest/tax entries posted to a missing, short or generic account."""
        divergences: list[Divergence] = []
        min_length = self.config.matching.min_account_code_length

        for txn in ledger_txns:
            if txn.origin is not TransactionOrigin.LEDGER:
                continue

            normalized = normalize_description(txn.description)
            if not any(keyword in normalized for keyword in self.suspicious_keywords):
                continue

            code = (txn.account_code or "").strip()
            if code and code not in self.generic_account_codes and len(code) >= min_length:
                continue

            divergences.append(
                Divergence(
                    type=DivergenceType.SUSPICIOUS_CLASSIFICATION,
                    description=(
                        f"Entry looks like a bank fee or charge ({txn.description[:50]}) but has no "
                        f"adequate account classification. Account: {code or 'N/A'}"
                    ),
                    ledger=TransactionSnapshot.of(txn),
                )
            )

        return divergences

    # Fuzzy matching

    def match_fuzzy(
        self,
        bank_txns: list[Transaction],
        ledger_txns: list[Transaction],
        date_window_days: Optional[int] = None,
        amount_tolerance: Optional[float] = None,
        min_similarity: Optional[float] = None,
        allow_many_to_one: Optional[bool] = None,
    ) -> FuzzyMatchResult:
        """
        Match bank movements to ledger entries within a date window and
        amount tolerance, scoring candidates by description similarity.

        Args:
            bank_txns: Bank statement transactions
            ledger_txns: Ledger entries
            date_window_days: Maximum date distance in days (config default)
            amount_tolerance: Maximum amount difference (config default)
            min_similarity: Minimum description similarity (config default)
            allow_many_to_one: Whether a ledger entry may satisfy several bank
                movements (config default)

        Returns:
            FuzzyMatchResult with chosen pairs and one-sided divergences
        """
        matching = self.config.matching
        window = matching.date_window_days if date_window_days is None else date_window_days
        tolerance = self._tolerance(amount_tolerance)
        threshold = matching.min_similarity if min_similarity is None else min_similarity
        many_to_one = matching.allow_many_to_one if allow_many_to_one is None else allow_many_to_one

        logger.info(
            f"Starting fuzzy matching: {len(bank_txns)} bank txns, {len(ledger_txns)} ledger txns "
            f"(window {window}d, tolerance {tolerance}, min similarity {threshold})"
        )

        consumed = ConsumedIndex()
        result = FuzzyMatchResult()

        for b_idx, bank in enumerate(bank_txns):
            best: Optional[MatchedPair] = None
            best_idx: Optional[int] = None

            for l_idx, ledger in enumerate(ledger_txns):
                if not many_to_one and not consumed.ledger_free(l_idx):
                    continue

                date_distance = abs((bank.date - ledger.date).days)
                if date_distance > window:
                    continue

                amount_distance = abs(bank.amount - ledger.amount)
                if amount_distance > tolerance:
                    continue

                similarity = description_similarity(bank.description, ledger.description)
                if similarity < self._similarity_threshold(bank, ledger, threshold):
                    continue

                score = self._composite_score(similarity, date_distance, window, amount_distance, bank.amount)
                if best is None or score > best.score:
                    best = MatchedPair(
                        statement=bank,
                        ledger=ledger,
                        score=score,
                        similarity=similarity,
                        date_distance_days=date_distance,
                        amount_distance=amount_distance,
                    )
                    best_idx = l_idx

            if best is not None:
                consumed.consume(b_idx, best_idx)
                result.pairs.append(best)
            else:
                result.divergences.append(
                    self._missing_in_ledger(bank, "Bank movement not found in the ledger.")
                )

        result.divergences.extend(
            self._missing_in_statement(ledger, "Ledger entry not found in the bank statement.")
            for idx, ledger in enumerate(ledger_txns)
            if consumed.ledger_free(idx)
        )

        logger.info(
            f"Fuzzy matching complete: {len(result.pairs)} pairs, "
            f"{len(result.divergences)} divergences"
        )
        return result

    def _similarity_threshold(self, bank: Transaction, ledger: Transaction, threshold: float) -> float:
        if not self.config.matching.relax_short_descriptions:
            return threshold

        short = (
            len(bank.description.strip()) <= SHORT_DESCRIPTION_LENGTH
            or len(ledger.description.strip()) <= SHORT_DESCRIPTION_LENGTH
        )
        bank_word = first_word(bank.description)
        same_long_word = len(bank_word) >= LONG_FIRST_WORD_LENGTH and bank_word == first_word(
            ledger.description
        )
        if short or same_long_word:
            return min(RELAXED_SIMILARITY_CAP, threshold * RELAXED_SIMILARITY_FACTOR)
        return threshold

    @staticmethod
    def _composite_score(
        similarity: float,
        date_distance: int,
        window: int,
        amount_distance: Decimal,
        amount: Decimal,
    ) -> float:
        """0.7 x similarity + 0.2 x date closeness + 0.1 x amount closeness"""
        date_term = 1 - date_distance / window if window > 0 else 1.0
        amount_term = 1 - float(amount_distance) / abs(float(amount)) if amount else 1.0
        return SIMILARITY_WEIGHT * similarity + DATE_WEIGHT * date_term + AMOUNT_WEIGHT * amount_term

    # Shared helpers

    def _tolerance(self, amount_tolerance: Optional[float]) -> Decimal:
        value = self.config.matching.amount_tolerance if amount_tolerance is None else amount_tolerance
        return Decimal(str(value))

    def _missing_in_ledger(self, txn: Transaction, reason: str) -> Divergence:
        return Divergence(
            type=DivergenceType.MISSING_IN_LEDGER,
            description=(
                f"{reason} Date: {txn.date.isoformat()}, "
                f"Description: {txn.description[:50]}, Amount: {_money(txn.amount)}"
            ),
            statement=TransactionSnapshot.of(txn),
        )

    def _missing_in_statement(self, txn: Transaction, reason: str) -> Divergence:
        return Divergence(
            type=DivergenceType.MISSING_IN_STATEMENT,
            description=(
                f"{reason} Date: {txn.date.isoformat()}, "
                f"Description: {txn.description[:50]}, Amount: {_money(txn.amount)}"
            ),
            ledger=TransactionSnapshot.of(txn),
        )

    # Summary

    def generate_summary(
        self,
        statement_txns: list[Transaction],
        ledger_txns: list[Transaction],
        divergences: list[Divergence],
        processing_time: float = 0.0,
    ) -> ReconciliationSummary:
        """
        Generate a summary of the reconciliation results.

        Args:
            statement_txns: All statement transactions
            ledger_txns: All ledger entries
            divergences: Divergences produced by ``reconcile`` or ``match_fuzzy``
            processing_time: Time taken in seconds

        Returns:
            Reconciliation summary object
        """
        by_type: dict[str, int] = {}
        for divergence in divergences:
            by_type[divergence.type.value] = by_type.get(divergence.type.value, 0) + 1

        missing_in_ledger = by_type.get(DivergenceType.MISSING_IN_LEDGER.value, 0)
        missing_in_statement = by_type.get(DivergenceType.MISSING_IN_STATEMENT.value, 0)
        value_mismatch = by_type.get(DivergenceType.VALUE_MISMATCH.value, 0)

        def credits(txns: list[Transaction]) -> Decimal:
            return sum((t.amount for t in txns if t.amount > 0), Decimal("0"))

        def debits(txns: list[Transaction]) -> Decimal:
            return sum((-t.amount for t in txns if t.amount < 0), Decimal("0"))

        dates = [t.date for t in statement_txns]

        return ReconciliationSummary(
            reconciliation_date=datetime.now(),
            total_statement_transactions=len(statement_txns),
            total_ledger_transactions=len(ledger_txns),
            matched_count=max(len(statement_txns) - missing_in_ledger - value_mismatch, 0),
            missing_in_ledger_count=missing_in_ledger,
            missing_in_statement_count=missing_in_statement,
            value_mismatch_count=value_mismatch,
            statement_total_credits=credits(statement_txns),
            statement_total_debits=debits(statement_txns),
            ledger_total_credits=credits(ledger_txns),
            ledger_total_debits=debits(ledger_txns),
            divergences_by_type=by_type,
            processing_time_seconds=processing_time,
            statement_period_start=min(dates) if dates else None,
            statement_period_end=max(dates) if dates else None,
        )
