"""Data models for reconciliation."""

from .transaction import (
    Transaction,
    TransactionOrigin,
    ParsingIssue,
    ParseResult,
)
from .divergence import (
    Divergence,
    DivergenceType,
    TransactionSnapshot,
    MatchedPair,
    FuzzyMatchResult,
    ReconciliationSummary,
)
from .validation import (
    Account,
    AccountLookup,
    MatchField,
    ReasonCode,
    RuleConstraints,
    ValidationResult,
    ValidationRule,
    ValidationStatus,
    ValidationSummary,
)
from .job import (
    JobParameters,
    JobStatus,
    JobSummary,
    ReconciliationJob,
    SourceFile,
    SourceFormat,
)

__all__ = [
    "Transaction",
    "TransactionOrigin",
    "ParsingIssue",
    "ParseResult",
    "Divergence",
    "DivergenceType",
    "TransactionSnapshot",
    "MatchedPair",
    "FuzzyMatchResult",
    "ReconciliationSummary",
    "Account",
    "AccountLookup",
    "MatchField",
    "ReasonCode",
    "RuleConstraints",
    "ValidationResult",
    "ValidationRule",
    "ValidationStatus",
    "ValidationSummary",
    "JobParameters",
    "JobStatus",
    "JobSummary",
    "ReconciliationJob",
    "SourceFile",
    "SourceFormat",
]
