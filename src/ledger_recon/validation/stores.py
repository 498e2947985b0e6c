"""
Lookup stores consumed by the validator and the orchestrator.
Abstract interfaces plus in-memory implementations.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional
import logging

import yaml

from ..models.divergence import Divergence
from ..models.job import JobStatus, JobSummary
from ..models.validation import Account, AccountLookup, MatchField, ValidationResult, ValidationRule
from ..utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ChartOfAccounts(ABC):
    """Account-code lookup scoped by chart source."""

    @abstractmethod
    def exists(self, code: str, source: str) -> AccountLookup:
        """
        Look up an active account.

        Args:
            code: Trimmed account code
            source: Chart identifier

        Returns:
            AccountLookup with ``found`` and the account's display name
        """
        pass


class RuleStore(ABC):
    """Source of validation rules."""

    @abstractmethod
    def list_enabled_rules(self) -> list[ValidationRule]:
        pass


class OutputSink(ABC):
    """Destination for a job's results."""

    @abstractmethod
    def persist_divergences(self, job_id: str, divergences: list[Divergence]) -> None:
        pass

    @abstractmethod
    def persist_validation_results(self, job_id: str, results: list[ValidationResult]) -> None:
        pass

    @abstractmethod
    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        summary: Optional[JobSummary] = None,
    ) -> None:
        pass

    @abstractmethod
    def clear_job_outputs(self, job_id: str) -> None:
        """Discard anything persisted for the job so far."""
        pass


class InMemoryChartOfAccounts(ChartOfAccounts):
    """Chart of accounts held in a dict keyed by (source, code)."""

    def __init__(self, accounts: Optional[Iterable[Account]] = None):
        self._accounts: dict[tuple[str, str], Account] = {}
        for account in accounts or []:
            self.add(account)

    def add(self, account: Account) -> None:
        self._accounts[(account.source, account.code.strip())] = account

    def exists(self, code: str, source: str) -> AccountLookup:
        account = self._accounts.get((source, code.strip()))
        if account is None or not account.is_active:
            return AccountLookup(found=False)
        return AccountLookup(found=True, display_name=account.name or None)

    def sources(self) -> set[str]:
        return {source for source, _ in self._accounts}

    def __len__(self) -> int:
        return len(self._accounts)


class InMemoryRuleStore(RuleStore):
    """Rules kept in insertion order; disabled rules are filtered on listing."""

    def __init__(self, rules: Optional[Iterable[ValidationRule]] = None):
        self._rules: list[ValidationRule] = list(rules or [])

    def add(self, rule: ValidationRule) -> None:
        self._rules.append(rule)

    def list_enabled_rules(self) -> list[ValidationRule]:
        return [rule for rule in self._rules if rule.enabled]

    @classmethod
    def from_yaml(cls, path: Path) -> "InMemoryRuleStore":
        """
        Load rules from a YAML file.

        Expected layout::

            rules:
              - id: R1
                name: Bank fees go to expenses
                match_field: category
                match_value: TARIFA
                allowed_account_prefixes: ["3.1"]
                blocked_account_codes: ["1.1.1"]

        Args:
            path: Path to the rules file

        Returns:
            Rule store holding the file's rules

        Raises:
            ConfigurationError: If the file is not valid YAML or a rule is malformed
        """
        logger.info(f"Loading validation rules from: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in rules file: {e}") from e

        entries = data.get("rules", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ConfigurationError("Rules file must contain a list of rules")

        rules = [rule_from_dict(entry, position) for position, entry in enumerate(entries, 1)]
        logger.info(f"Loaded {len(rules)} validation rules")
        return cls(rules)


def _codes(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, int, float)):
        value = [value]
    return tuple(str(item).strip() for item in value if str(item).strip())


def rule_from_dict(entry: Any, position: int = 1) -> ValidationRule:
    """Build a ValidationRule from a mapping, raising ConfigurationError when malformed."""
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Rule {position} must be a mapping")

    try:
        match_field = MatchField.parse(entry["match_field"])
        match_value = str(entry["match_value"])
    except KeyError as e:
        raise ConfigurationError(f"Rule {position} is missing {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"Rule {position}: {e}") from e

    rule_id = str(entry.get("id", f"rule-{position}"))
    return ValidationRule(
        id=rule_id,
        name=str(entry.get("name", rule_id)),
        match_field=match_field,
        match_value=match_value,
        allowed_account_prefixes=_codes(entry.get("allowed_account_prefixes")),
        allowed_account_codes=_codes(entry.get("allowed_account_codes")),
        blocked_account_prefixes=_codes(entry.get("blocked_account_prefixes")),
        blocked_account_codes=_codes(entry.get("blocked_account_codes")),
        severity=str(entry.get("severity", "error")),
        message=entry.get("message"),
        enabled=bool(entry.get("enabled", True)),
    )
