"""
Rule-based account-code validation for ledger entries.
"""

from typing import Any, Optional
import logging

from ..models.transaction import Transaction
from ..models.validation import (
    ReasonCode,
    RuleConstraints,
    ValidationResult,
    ValidationRule,
    ValidationStatus,
    ValidationSummary,
)
from .stores import ChartOfAccounts, RuleStore

logger = logging.getLogger(__name__)


def transaction_key(txn: Transaction, ordinal: int) -> str:
    return f"{txn.date.isoformat()}_{txn.amount}_{ordinal}"


def _entry_metadata(txn: Transaction) -> dict[str, Any]:
    return {
        "date": txn.date.isoformat(),
        "description": txn.description,
        "amount": str(txn.amount),
        "event_type": txn.event_type,
        "category": txn.category,
        "entity_type": txn.entity_type,
    }


def _rule_metadata(rule: ValidationRule) -> dict[str, Any]:
    return {
        "rule_id": rule.id,
        "rule_name": rule.name,
        "match_field": rule.match_field.value,
        "match_value": rule.match_value,
        "severity": rule.severity,
    }


def check_rule(code: str, rule: ValidationRule) -> Optional[str]:
    """
    Check one account code against one rule.

    Blocked codes and prefixes are checked first; otherwise the code must be
    one of the allowed codes or start with an allowed prefix.

    Returns:
        Violation message, or None when the code satisfies the rule
    """
    if code in rule.blocked_account_codes:
        return rule.message or f"Account {code} is blocked by rule '{rule.name}'"

    for prefix in rule.blocked_account_prefixes:
        if code.startswith(prefix):
            return rule.message or f"Account {code} is blocked by rule '{rule.name}' (prefix {prefix})"

    allowed = code in rule.allowed_account_codes or any(
        code.startswith(prefix) for prefix in rule.allowed_account_prefixes
    )
    if not allowed:
        return rule.message or f"Account {code} is not allowed by rule '{rule.name}'"

    return None


class AccountValidator:
    """
    Validates ledger account codes against a chart of accounts and a set
    of conditional rules.

    A transaction is ``ok`` only when it satisfies every enabled rule that
    selects it; one failing rule makes it ``invalid``.
    """

    def __init__(self, chart: ChartOfAccounts, rules: RuleStore):
        self.chart = chart
        self.rules = rules

    def validate(self, ledger_txns: list[Transaction], chart_source: str) -> list[ValidationResult]:
        """
        Validate the account code of each ledger entry, in order.

        Args:
            ledger_txns: Ledger entries
            chart_source: Chart-of-accounts identifier to look codes up in

        Returns:
            One ValidationResult per entry
        """
        logger.info(f"Validating {len(ledger_txns)} ledger entries against chart '{chart_source}'")

        enabled_rules = self.rules.list_enabled_rules()
        results = [
            self.validate_entry(txn, ordinal, chart_source, enabled_rules)
            for ordinal, txn in enumerate(ledger_txns)
        ]

        summary = ValidationSummary.of(results)
        logger.info(
            f"Account validation complete: total={summary.total} ok={summary.ok} "
            f"invalid={summary.invalid} unknown={summary.unknown}"
        )
        return results

    def validate_entry(
        self,
        txn: Transaction,
        ordinal: int,
        chart_source: str,
        enabled_rules: list[ValidationRule],
    ) -> ValidationResult:
        key = transaction_key(txn, ordinal)
        entry = _entry_metadata(txn)
        code = (txn.account_code or "").strip()

        if not code:
            return ValidationResult(
                transaction_key=key,
                account_code="",
                status=ValidationStatus.UNKNOWN,
                reason_code=ReasonCode.MISSING_ACCOUNT_CODE,
                message="Ledger entry has no account code",
                metadata=entry,
            )

        lookup = self.chart.exists(code, chart_source)
        if not lookup.found:
            logger.warning(f"Account {code} not found in chart '{chart_source}'")
            return ValidationResult(
                transaction_key=key,
                account_code=code,
                status=ValidationStatus.INVALID,
                reason_code=ReasonCode.ACCOUNT_NOT_FOUND,
                message=f"Account {code} not found in chart of accounts '{chart_source}'",
                metadata=entry,
            )

        matching_rules = [rule for rule in enabled_rules if rule.applies_to(txn)]
        if not matching_rules:
            return ValidationResult(
                transaction_key=key,
                account_code=code,
                status=ValidationStatus.UNKNOWN,
                reason_code=ReasonCode.NO_RULE_MATCH,
                message="No validation rule applies to this entry",
                metadata=entry,
            )

        for rule in matching_rules:
            violation = check_rule(code, rule)
            if violation is not None:
                logger.warning(f"Account {code} violates rule {rule.id}")
                return ValidationResult(
                    transaction_key=key,
                    account_code=code,
                    status=ValidationStatus.INVALID,
                    reason_code=ReasonCode.RULE_VIOLATION,
                    message=violation,
                    expected_constraints=RuleConstraints.of(rule),
                    metadata={**_rule_metadata(rule), **entry},
                )

        return ValidationResult(
            transaction_key=key,
            account_code=code,
            status=ValidationStatus.OK,
            reason_code=ReasonCode.VALID,
            message=f"Account {code} validated ({lookup.display_name or 'no name'})",
            metadata={"rules_applied": [rule.id for rule in matching_rules], **entry},
        )
