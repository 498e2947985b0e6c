"""
In-memory output sink for reconciliation jobs.
"""

from dataclasses import dataclass
from threading import Lock
from typing import Optional
import logging

from ..models.divergence import Divergence
from ..models.job import JobStatus, JobSummary
from ..models.validation import ValidationResult
from ..validation.stores import OutputSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusUpdate:
    status: JobStatus
    error: Optional[str] = None
    summary: Optional[JobSummary] = None


class InMemorySink(OutputSink):
    """Keeps every job's outputs and status history in dictionaries keyed by job id."""

    def __init__(self):
        self.divergences: dict[str, list[Divergence]] = {}
        self.validation_results: dict[str, list[ValidationResult]] = {}
        self.status_history: dict[str, list[StatusUpdate]] = {}
        self._lock = Lock()

    def persist_divergences(self, job_id: str, divergences: list[Divergence]) -> None:
        with self._lock:
            self.divergences.setdefault(job_id, []).extend(divergences)

    def persist_validation_results(self, job_id: str, results: list[ValidationResult]) -> None:
        with self._lock:
            self.validation_results.setdefault(job_id, []).extend(results)

    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        summary: Optional[JobSummary] = None,
    ) -> None:
        logger.debug(f"Job {job_id} -> {status.value}")
        with self._lock:
            self.status_history.setdefault(job_id, []).append(
                StatusUpdate(status=status, error=error, summary=summary)
            )

    def clear_job_outputs(self, job_id: str) -> None:
        with self._lock:
            self.divergences.pop(job_id, None)
            self.validation_results.pop(job_id, None)

    def latest_status(self, job_id: str) -> Optional[StatusUpdate]:
        history = self.status_history.get(job_id)
        return history[-1] if history else None
