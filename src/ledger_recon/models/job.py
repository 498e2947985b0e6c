"""Reconciliation job model and its state machine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from pathlib import Path


class JobStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# pending -> processing -> {completed | failed}
ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class SourceFormat(Enum):
    """Input formats with a parser."""

    LEDGER_TEXT = "ledger_text"
    STATEMENT_CSV = "csv"
    STATEMENT_OFX = "ofx"
    STATEMENT_PDF = "pdf"

    @classmethod
    def parse(cls, name: str) -> "SourceFormat":
        key = str(name).strip().lower().lstrip(".")
        aliases = {"txt": cls.LEDGER_TEXT, "text": cls.LEDGER_TEXT, "ledger": cls.LEDGER_TEXT}
        if key in aliases:
            return aliases[key]
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unsupported format: '{name}'")


@dataclass(frozen=True)
class SourceFile:
    """Raw input bytes plus an optional declared format."""

    name: str
    content: bytes
    format: Optional[SourceFormat] = None

    @classmethod
    def from_path(cls, path: Path, format: Optional[SourceFormat] = None) -> "SourceFile":
        return cls(name=path.name, content=path.read_bytes(), format=format)


@dataclass(frozen=True)
class JobParameters:
    """Per-job matching parameters; ``None`` falls back to configuration."""

    amount_tolerance: Optional[float] = None
    date_window_days: Optional[int] = None
    min_similarity: Optional[float] = None
    allow_many_to_one: Optional[bool] = None
    strict: bool = False
    chart_source: Optional[str] = None


@dataclass
class ReconciliationJob:
    """One reconciliation request: ledger exports vs. one bank statement."""

    job_id: str
    ledger_sources: list[SourceFile] = field(default_factory=list)
    statement_source: Optional[SourceFile] = None
    parameters: JobParameters = field(default_factory=JobParameters)
    status: JobStatus = JobStatus.PENDING
    error: Optional[str] = None

    def transition(self, new_status: JobStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Job {self.job_id}: illegal transition {self.status.value} -> {new_status.value}"
            )
        self.status = new_status


@dataclass
class JobSummary:
    """Summary counts persisted with the final job status."""

    statement_count: int = 0
    ledger_count: int = 0
    duplicates_removed: int = 0
    matched_count: int = 0
    divergence_count: int = 0
    divergences_by_type: dict[str, int] = field(default_factory=dict)
    validation: dict[str, int] = field(default_factory=dict)
    parsing_issues: list[str] = field(default_factory=list)
    statement_format: Optional[str] = None
    processing_time_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "statement_count": self.statement_count,
            "ledger_count": self.ledger_count,
            "duplicates_removed": self.duplicates_removed,
            "matched_count": self.matched_count,
            "divergence_count": self.divergence_count,
            "divergences_by_type": dict(self.divergences_by_type),
            "validation": dict(self.validation),
            "parsing_issues": list(self.parsing_issues),
            "statement_format": self.statement_format,
            "processing_time_seconds": self.processing_time_seconds,
        }
