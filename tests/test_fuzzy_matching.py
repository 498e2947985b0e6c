"""Tests for windowed fuzzy matching."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import make_ledger, make_statement
from ledger_recon.config import ReconConfig
from ledger_recon.matching.engine import ReconciliationEngine
from ledger_recon.models.divergence import DivergenceType


@pytest.fixture
def engine(config):
    return ReconciliationEngine(config)


def test_pairs_within_date_window(engine):
    bank = [make_statement(5, "200.00", description="Pagamento fornecedor")]
    ledger = [make_ledger(6, "200.00", description="Pagamento fornecedor")]

    result = engine.match_fuzzy(bank, ledger, min_similarity=0)

    assert result.divergences == []
    pair = result.pairs[0]
    assert pair.statement is bank[0]
    assert pair.ledger is ledger[0]
    assert pair.date_distance_days == 1
    assert pair.similarity == 1.0
    assert pair.score == pytest.approx(0.7 + 0.2 * 0.5 + 0.1)


def test_outside_date_window(engine):
    bank = [make_statement(5, "200.00", description="Pagamento fornecedor")]
    ledger = [make_ledger(9, "200.00", description="Pagamento fornecedor")]

    result = engine.match_fuzzy(bank, ledger, date_window_days=2)

    assert result.pairs == []
    assert [d.type for d in result.divergences] == [
        DivergenceType.MISSING_IN_LEDGER,
        DivergenceType.MISSING_IN_STATEMENT,
    ]
    assert result.divergences[0].description.startswith("Bank movement not found in the ledger.")
    assert result.divergences[1].description.startswith(
        "Ledger entry not found in the bank statement."
    )


def test_outside_amount_tolerance(engine):
    bank = [make_statement(5, "200.00", description="Pagamento fornecedor")]
    ledger = [make_ledger(5, "201.00", description="Pagamento fornecedor")]

    assert engine.match_fuzzy(bank, ledger).pairs == []
    assert len(engine.match_fuzzy(bank, ledger, amount_tolerance=1.0).pairs) == 1


def test_below_similarity_threshold(engine):
    bank = [make_statement(5, "200.00", description="Deposito em especie")]
    ledger = [make_ledger(5, "200.00", description="Folha de pagamento")]

    result = engine.match_fuzzy(bank, ledger)

    assert result.pairs == []
    assert len(result.divergences) == 2


def test_best_scoring_candidate_wins(engine):
    bank = [make_statement(5, "100.00", description="PIX RECEBIDO MARIA")]
    ledger = [
        make_ledger(7, "100.00", description="Pix recebido Maria Silva"),
        make_ledger(5, "100.00", description="PIX RECEBIDO MARIA"),
    ]

    result = engine.match_fuzzy(bank, ledger)

    assert result.pairs[0].ledger is ledger[1]
    assert [d.ledger.date for d in result.divergences] == [date(2024, 3, 7)]


def test_ties_go_to_first_candidate(engine):
    bank = [make_statement(5, "100.00", description="Tarifa pacote")]
    ledger = [
        make_ledger(5, "100.00", description="Tarifa pacote", document_number="A1"),
        make_ledger(5, "100.00", description="Tarifa pacote", document_number="B2"),
    ]

    result = engine.match_fuzzy(bank, ledger)

    assert result.pairs[0].ledger.document_number == "A1"


def test_many_to_one(engine):
    bank = [
        make_statement(5, "100.00", description="Boleto condominio"),
        make_statement(6, "100.00", description="Boleto condominio"),
    ]
    ledger = [make_ledger(5, "100.00", description="Boleto condominio")]

    allowed = engine.match_fuzzy(bank, ledger, allow_many_to_one=True)
    assert len(allowed.pairs) == 2
    assert allowed.divergences == []

    one_to_one = engine.match_fuzzy(bank, ledger, allow_many_to_one=False)
    assert len(one_to_one.pairs) == 1
    assert [d.type for d in one_to_one.divergences] == [DivergenceType.MISSING_IN_LEDGER]
    assert one_to_one.divergences[0].statement.date == date(2024, 3, 6)


def test_relaxed_threshold_for_shared_long_first_word():
    bank = [make_statement(5, "300.00", description="Transferencia recebida joao")]
    ledger = [make_ledger(5, "300.00", description="Transferencia recebida maria costa")]

    default = ReconciliationEngine(ReconConfig())
    assert default.match_fuzzy(bank, ledger).pairs == []

    config = ReconConfig()
    config.matching.relax_short_descriptions = True
    relaxed = ReconciliationEngine(config)
    pair = relaxed.match_fuzzy(bank, ledger).pairs[0]
    assert pair.similarity == pytest.approx(0.4)


def test_amount_distance_recorded(engine):
    bank = [make_statement(5, "-50.00", description="Energia eletrica")]
    ledger = [make_ledger(5, "-50.01", description="Energia eletrica")]

    pair = engine.match_fuzzy(bank, ledger).pairs[0]

    assert pair.amount_distance == Decimal("0.01")


def test_inputs_are_not_mutated(engine):
    bank = [make_statement(5, "100.00", description="Boleto condominio")]
    ledger = [make_ledger(5, "100.00", description="Boleto condominio")]
    before = (list(bank), list(ledger))

    engine.match_fuzzy(bank, ledger)
    engine.match_fuzzy(bank, ledger)

    assert (bank, ledger) == before
