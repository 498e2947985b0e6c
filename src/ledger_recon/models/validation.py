"""Account validation models: rules, chart entries and results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .transaction import Transaction


class MatchField(Enum):
    """Ledger attribute a validation rule selects transactions by."""

    EVENT_TYPE = "event_type"
    CATEGORY = "category"
    ENTITY_TYPE = "entity_type"
    DOCUMENT_NUMBER = "document_number"
    DESCRIPTION = "description"

    @classmethod
    def parse(cls, name: str) -> "MatchField":
        """Accept ``event_type``, ``eventType`` or ``EVENT_TYPE`` spellings."""
        key = "".join(ch for ch in str(name) if ch.isalnum()).lower()
        for member in cls:
            if member.value.replace("_", "") == key:
                return member
        raise ValueError(f"Unknown rule match field: '{name}'")

    def value_of(self, txn: Transaction) -> Optional[str]:
        if self is MatchField.EVENT_TYPE:
            return txn.event_type
        if self is MatchField.CATEGORY:
            return txn.category
        if self is MatchField.ENTITY_TYPE:
            return txn.entity_type
        if self is MatchField.DOCUMENT_NUMBER:
            return txn.document_number
        return txn.description


class ValidationStatus(Enum):
    OK = "ok"
    INVALID = "invalid"
    UNKNOWN = "unknown"


class ReasonCode(Enum):
    VALID = "VALID"
    MISSING_ACCOUNT_CODE = "MISSING_ACCOUNT_CODE"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    NO_RULE_MATCH = "NO_RULE_MATCH"
    RULE_VIOLATION = "RULE_VIOLATION"


@dataclass(frozen=True)
class ValidationRule:
    """
    Conditional constraint on the account codes acceptable for ledger
    entries whose ``match_field`` equals ``match_value`` (case-insensitive).
    """

    id: str
    name: str
    match_field: MatchField
    match_value: str
    allowed_account_prefixes: tuple[str, ...] = ()
    allowed_account_codes: tuple[str, ...] = ()
    blocked_account_prefixes: tuple[str, ...] = ()
    blocked_account_codes: tuple[str, ...] = ()
    severity: str = "error"
    message: Optional[str] = None
    enabled: bool = True

    def applies_to(self, txn: Transaction) -> bool:
        value = self.match_field.value_of(txn)
        if not value:
            return False
        return value.strip().upper() == str(self.match_value).strip().upper()


@dataclass(frozen=True)
class RuleConstraints:
    """The allow/block sets a rule checked an account code against."""

    allowed_prefixes: tuple[str, ...] = ()
    allowed_codes: tuple[str, ...] = ()
    blocked_prefixes: tuple[str, ...] = ()
    blocked_codes: tuple[str, ...] = ()

    @classmethod
    def of(cls, rule: ValidationRule) -> "RuleConstraints":
        return cls(
            allowed_prefixes=rule.allowed_account_prefixes,
            allowed_codes=rule.allowed_account_codes,
            blocked_prefixes=rule.blocked_account_prefixes,
            blocked_codes=rule.blocked_account_codes,
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one ledger entry's account code."""

    transaction_key: str
    account_code: str
    status: ValidationStatus
    reason_code: ReasonCode
    message: str
    expected_constraints: Optional[RuleConstraints] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Account:
    """Chart-of-accounts entry."""

    code: str
    name: str
    source: str
    level: Optional[int] = None
    parent_code: Optional[str] = None
    account_type: Optional[str] = None
    nature: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class AccountLookup:
    found: bool
    display_name: Optional[str] = None


@dataclass
class ValidationSummary:
    total: int = 0
    ok: int = 0
    invalid: int = 0
    unknown: int = 0

    @classmethod
    def of(cls, results: list[ValidationResult]) -> "ValidationSummary":
        summary = cls(total=len(results))
        for result in results:
            if result.status is ValidationStatus.OK:
                summary.ok += 1
            elif result.status is ValidationStatus.INVALID:
                summary.invalid += 1
            else:
                summary.unknown += 1
        return summary
