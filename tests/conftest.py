"""Shared pytest fixtures for ledger_recon tests."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_recon.config import ReconConfig
from ledger_recon.models.transaction import Transaction, TransactionOrigin
from ledger_recon.models.validation import Account, MatchField, ValidationRule
from ledger_recon.validation.stores import InMemoryChartOfAccounts, InMemoryRuleStore


def make_statement(day, amount, description="Movimento bancario", **kwargs):
    """Build a statement-side transaction dated in March 2024 unless a date is given."""
    txn_date = day if isinstance(day, date) else date(2024, 3, day)
    return Transaction(
        date=txn_date,
        description=description,
        amount=Decimal(str(amount)),
        origin=TransactionOrigin.STATEMENT,
        **kwargs,
    )


def make_ledger(day, amount, description="Lancamento contabil", **kwargs):
    """Build a ledger-side transaction dated in March 2024 unless a date is given."""
    txn_date = day if isinstance(day, date) else date(2024, 3, day)
    return Transaction(
        date=txn_date,
        description=description,
        amount=Decimal(str(amount)),
        origin=TransactionOrigin.LEDGER,
        **kwargs,
    )


@pytest.fixture
def config():
    """Default configuration."""
    return ReconConfig()


@pytest.fixture
def chart():
    """Small chart of accounts for the 'default' source."""
    return InMemoryChartOfAccounts(
        [
            Account(code="1.1.1.001", name="Caixa", source="default"),
            Account(code="2.1.1.001", name="Fornecedores", source="default"),
            Account(code="3.1.1.001", name="Receita de servicos", source="default"),
            Account(code="4.1.02.001", name="Tarifas bancarias", source="default"),
            Account(code="4.1.03.001", name="Juros pagos", source="default"),
            Account(code="4.9.9", name="Conta encerrada", source="default", is_active=False),
        ]
    )


@pytest.fixture
def rules():
    """Rules selecting bank fees by category and by entity type."""
    return InMemoryRuleStore(
        [
            ValidationRule(
                id="R1",
                name="Bank fees are expenses",
                match_field=MatchField.CATEGORY,
                match_value="TARIFA",
                allowed_account_prefixes=("4.1",),
            ),
            ValidationRule(
                id="R2",
                name="Bank entity fees go to the fee account",
                match_field=MatchField.ENTITY_TYPE,
                match_value="BANCO",
                allowed_account_codes=("4.1.02.001",),
            ),
        ]
    )


LEDGER_EXPORT = (
    "DATA|HISTORICO|CONTA|DOCUMENTO|VALOR|CATEGORIA|TIPO\n"
    "01/03/2024|Pagamento fornecedor ABC|2.1.1.001|NF100|-150,00|FORNECEDOR|PJ\n"
    "05/03/2024|Recebimento cliente XPTO|3.1.1.001|NF200|1.500,00|CLIENTE|PJ\n"
    "06/03/2024|Tarifa pacote servicos|4.1.02.001|TF01|-35,90|TARIFA|BANCO\n"
)

STATEMENT_CSV = (
    "Data;Descrição;Documento;Valor\n"
    "01/03/2024;PAGAMENTO FORNECEDOR ABC;NF100;-150,00\n"
    "05/03/2024;RECEBIMENTO CLIENTE XPTO;NF200;1.500,00\n"
    "06/03/2024;TARIFA PACOTE SERVICOS;TF01;-35,90\n"
)


@pytest.fixture
def ledger_export():
    return LEDGER_EXPORT.encode("utf-8")


@pytest.fixture
def statement_csv():
    return STATEMENT_CSV.encode("utf-8")
