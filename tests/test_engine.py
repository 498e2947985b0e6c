"""Tests for strict reconciliation."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import make_ledger, make_statement
from ledger_recon.matching.engine import ConsumedIndex, ReconciliationEngine
from ledger_recon.models.divergence import DivergenceType


@pytest.fixture
def engine(config):
    return ReconciliationEngine(config)


def types_of(divergences):
    return [divergence.type for divergence in divergences]


def test_value_mismatch_by_document(engine):
    """Same document and date with different amounts is one divergence."""
    statement = [make_statement(1, "-150.00", document_number="NF100")]
    ledger = [make_ledger(1, "-155.00", document_number="NF100")]

    divergences = engine.reconcile(statement, ledger)

    assert len(divergences) == 1
    mismatch = divergences[0]
    assert mismatch.type is DivergenceType.VALUE_MISMATCH
    assert mismatch.amount_difference == Decimal("5.00")
    assert mismatch.statement.amount == Decimal("-150.00")
    assert mismatch.ledger.amount == Decimal("-155.00")
    assert "same document (NF100)" in mismatch.description
    assert "Statement: -150.00, Ledger: -155.00 (difference: 5.00)" in mismatch.description


def test_document_match_with_equal_candidate_pairs(engine):
    """An equal-amount ledger entry under the same document wins over a mismatch."""
    statement = [make_statement(1, "-100.00", document_number="nf1")]
    ledger = [
        make_ledger(1, "-120.00", document_number="NF1"),
        make_ledger(1, "-100.00", document_number="NF1"),
    ]

    divergences = engine.reconcile(statement, ledger)

    assert types_of(divergences) == [DivergenceType.MISSING_IN_STATEMENT]
    assert divergences[0].ledger.amount == Decimal("-120.00")


def test_exact_and_tolerant_pairs(engine):
    statement = [make_statement(1, "-150.00"), make_statement(2, "100.00")]
    ledger = [make_ledger(2, "100.01"), make_ledger(1, "-150.00")]

    assert engine.reconcile(statement, ledger) == []


def test_tolerance_override(engine):
    statement = [make_statement(2, "100.00")]
    ledger = [make_ledger(2, "100.50")]

    assert len(engine.reconcile(statement, ledger)) == 2
    assert engine.reconcile(statement, ledger, amount_tolerance=0.5) == []


def test_missing_on_both_sides(engine):
    statement = [make_statement(3, "50.00", description="Deposito em especie")]
    ledger = [make_ledger(4, "70.00", description="Recebimento cliente")]

    divergences = engine.reconcile(statement, ledger)

    assert types_of(divergences) == [
        DivergenceType.MISSING_IN_LEDGER,
        DivergenceType.MISSING_IN_STATEMENT,
    ]
    assert divergences[0].description == (
        "Statement entry not found in the ledger. "
        "Date: 2024-03-03, Description: Deposito em especie, Amount: 50.00"
    )
    assert divergences[0].ledger is None
    assert divergences[1].statement is None


def test_value_mismatch_by_description(engine):
    statement = [make_statement(5, "200.00", description="Aluguel sala comercial")]
    ledger = [make_ledger(5, "180.00", description="ALUGUEL SALA COMERCIAL")]

    divergences = engine.reconcile(statement, ledger)

    assert types_of(divergences) == [DivergenceType.VALUE_MISMATCH]
    assert divergences[0].amount_difference == Decimal("20.00")


def test_small_description_difference_is_not_a_mismatch(engine):
    """Below the minimum difference, description-keyed entries stay unpaired."""
    statement = [make_statement(5, "200.00", description="Aluguel sala comercial")]
    ledger = [make_ledger(5, "199.50", description="Aluguel sala comercial")]

    divergences = engine.reconcile(statement, ledger)

    assert types_of(divergences) == [
        DivergenceType.MISSING_IN_LEDGER,
        DivergenceType.MISSING_IN_STATEMENT,
    ]


def test_balance_mismatch(engine):
    statement = [
        make_statement(1, "100.00", running_balance=Decimal("1100.00")),
        make_statement(2, "-10.00", running_balance=Decimal("1090.00")),
    ]
    ledger = [
        make_ledger(1, "100.00", running_balance=Decimal("1100.00")),
        make_ledger(2, "-10.00", running_balance=Decimal("1100.00")),
    ]

    divergences = engine.reconcile(statement, ledger)

    assert types_of(divergences) == [DivergenceType.BALANCE_MISMATCH]
    assert divergences[0].amount_difference == Decimal("10.00")
    assert "Closing balance difference: 10.00." in divergences[0].description
    assert "Opening balance difference" not in divergences[0].description


def test_balances_skipped_when_one_side_has_none(engine):
    statement = [make_statement(1, "100.00", running_balance=Decimal("1100.00"))]
    ledger = [make_ledger(1, "100.00")]

    assert engine.reconcile(statement, ledger) == []


def test_suspicious_classification(engine):
    ledger = [
        make_ledger(1, "-35.90", description="Tarifa manutenção conta"),
        make_ledger(2, "-12.00", description="Juros sobre saldo", account_code="4.1.03.001"),
        make_ledger(3, "-3.10", description="IOF operacao", account_code="9"),
        make_ledger(4, "-500.00", description="Pagamento aluguel", account_code=None),
    ]

    divergences = engine.reconcile([], ledger)
    suspicious = [d for d in divergences if d.type is DivergenceType.SUSPICIOUS_CLASSIFICATION]

    assert [d.ledger.date for d in suspicious] == [date(2024, 3, 1), date(2024, 3, 3)]
    assert suspicious[0].description.endswith("Account: N/A")
    assert suspicious[1].description.endswith("Account: 9")


def test_ordinary_english_words_are_not_fee_keywords(engine):
    ledger = [
        make_ledger(1, "-18.00", description="COFFEE SHOP LTDA", account_code="1"),
        make_ledger(2, "-90.00", description="Interest group membership", account_code="1"),
    ]

    divergences = engine.reconcile([], ledger)

    assert [d.type for d in divergences] == [DivergenceType.MISSING_IN_STATEMENT] * 2


def test_reconcile_is_idempotent_and_pure(engine):
    statement = [
        make_statement(1, "-150.00", document_number="NF100"),
        make_statement(2, "80.00"),
        make_statement(3, "45.00"),
    ]
    ledger = [
        make_ledger(1, "-155.00", document_number="NF100"),
        make_ledger(2, "80.00"),
        make_ledger(9, "12.00"),
    ]
    statement_before = list(statement)
    ledger_before = list(ledger)

    first = engine.reconcile(statement, ledger)
    second = engine.reconcile(statement, ledger)

    assert first == second
    assert statement == statement_before
    assert ledger == ledger_before


def test_each_transaction_in_at_most_one_pairing_divergence(engine):
    statement = [
        make_statement(1, "-150.00", document_number="NF100"),
        make_statement(1, "-150.00"),
        make_statement(3, "45.00"),
    ]
    ledger = [
        make_ledger(1, "-155.00", document_number="NF100"),
        make_ledger(1, "-150.00"),
        make_ledger(4, "45.00"),
    ]

    divergences = engine.reconcile(statement, ledger)

    statement_refs = [d.statement for d in divergences if d.statement is not None]
    ledger_refs = [d.ledger for d in divergences if d.ledger is not None]
    assert len(statement_refs) == 2
    assert len(ledger_refs) == 2
    assert types_of(divergences) == [
        DivergenceType.VALUE_MISMATCH,
        DivergenceType.MISSING_IN_LEDGER,
        DivergenceType.MISSING_IN_STATEMENT,
    ]


def test_generate_summary(engine):
    statement = [
        make_statement(1, "-150.00", document_number="NF100"),
        make_statement(5, "300.00"),
        make_statement(6, "40.00"),
    ]
    ledger = [
        make_ledger(1, "-155.00", document_number="NF100"),
        make_ledger(5, "300.00"),
    ]

    divergences = engine.reconcile(statement, ledger)
    summary = engine.generate_summary(statement, ledger, divergences, processing_time=1.5)

    assert summary.matched_count == 1
    assert summary.value_mismatch_count == 1
    assert summary.missing_in_ledger_count == 1
    assert summary.missing_in_statement_count == 0
    assert summary.statement_total_credits == Decimal("340.00")
    assert summary.statement_total_debits == Decimal("150.00")
    assert summary.statement_net_change == Decimal("190.00")
    assert summary.statement_period_start == date(2024, 3, 1)
    assert summary.statement_period_end == date(2024, 3, 6)
    assert summary.match_rate_statement == pytest.approx(100 / 3)
    assert summary.processing_time_seconds == 1.5


def test_consumed_index():
    consumed = ConsumedIndex()
    consumed.consume(statement_idx=0)
    consumed.consume(ledger_idx=2)

    assert not consumed.statement_free(0)
    assert consumed.statement_free(2)
    assert not consumed.ledger_free(2)
