"""Job orchestration and output sinks."""

from .orchestrator import (
    JobOutcome,
    ReconciliationOrchestrator,
    apply_sign_hint,
    deduplicate,
    resolve_statement_format,
    statement_parser,
)
from .sinks import InMemorySink, StatusUpdate

__all__ = [
    "JobOutcome",
    "ReconciliationOrchestrator",
    "apply_sign_hint",
    "deduplicate",
    "resolve_statement_format",
    "statement_parser",
    "InMemorySink",
    "StatusUpdate",
]
