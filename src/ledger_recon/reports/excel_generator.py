"""
Excel report generator for reconciliation results.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig
from ..models.divergence import Divergence, DivergenceType, TransactionSnapshot
from ..models.job import JobStatus, JobSummary
from ..models.validation import ValidationResult, ValidationStatus
from ..utils.exceptions import ReportGenerationError
from ..validation.stores import OutputSink

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
OK_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
WARNING_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
ERROR_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

DIVERGENCE_FILLS = {
    DivergenceType.VALUE_MISMATCH: WARNING_FILL,
    DivergenceType.MISSING_IN_LEDGER: ERROR_FILL,
    DivergenceType.MISSING_IN_STATEMENT: ERROR_FILL,
    DivergenceType.BALANCE_MISMATCH: WARNING_FILL,
    DivergenceType.SUSPICIOUS_CLASSIFICATION: WARNING_FILL,
}

VALIDATION_FILLS = {
    ValidationStatus.OK: OK_FILL,
    ValidationStatus.INVALID: ERROR_FILL,
    ValidationStatus.UNKNOWN: WARNING_FILL,
}


def _snapshot_cells(snapshot: Optional[TransactionSnapshot]) -> list[Any]:
    if snapshot is None:
        return ["", "", "", "", ""]
    return [
        snapshot.date,
        snapshot.description,
        float(snapshot.amount),
        snapshot.document_number or "",
        snapshot.account_code or "",
    ]


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.sheet_config = config.output.sheets

    def generate_report(
        self,
        job_id: str,
        summary: JobSummary,
        divergences: list[Divergence],
        validation_results: list[ValidationResult],
        output_path: Path,
    ) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            job_id: Job identifier shown on the summary sheet
            summary: Job summary counts
            divergences: Divergences found by matching
            validation_results: Account validation results
            output_path: Path for output file

        Returns:
            Path to generated report
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        if self.sheet_config.summary.enabled:
            self._create_summary_sheet(wb, job_id, summary)

        if self.sheet_config.divergences.enabled:
            self._create_divergences_sheet(wb, divergences)

        if self.sheet_config.validation.enabled:
            self._create_validation_sheet(wb, validation_results)

        if self.sheet_config.parsing_issues.enabled:
            self._create_parsing_issues_sheet(wb, summary.parsing_issues)

        # openpyxl refuses to save a workbook without sheets
        if not wb.worksheets:
            wb.create_sheet(self.sheet_config.summary.name)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(output_path)
        logger.info(f"Report saved: {output_path}")

        return output_path

    def _write_headers(self, ws: Worksheet, headers: list[str], row: int = 1) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _create_summary_sheet(self, wb: Workbook, job_id: str, summary: JobSummary) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.sheet_config.summary.name)

        ws["A1"] = "Ledger Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        ws["A3"] = "Job Information"
        ws["A3"].font = Font(bold=True)

        job_info = [
            ("Job ID:", job_id),
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            ("Statement Format:", summary.statement_format or "N/A"),
            ("Processing Time:", f"{summary.processing_time_seconds:.2f} seconds"),
        ]
        for i, (label, value) in enumerate(job_info, start=4):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        ws["A9"] = "Transaction Counts"
        ws["A9"].font = Font(bold=True)

        count_data = [
            ("Statement Transactions:", summary.statement_count),
            ("Ledger Entries:", summary.ledger_count),
            ("Duplicates Removed:", summary.duplicates_removed),
            ("Matched:", summary.matched_count),
            ("Divergences:", summary.divergence_count),
        ]
        for i, (label, value) in enumerate(count_data, start=10):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        row = 16
        ws[f"A{row}"] = "Divergences by Type"
        ws[f"A{row}"].font = Font(bold=True)
        row += 1
        for divergence_type, count in summary.divergences_by_type.items():
            ws[f"A{row}"] = divergence_type
            ws[f"B{row}"] = count
            row += 1

        row += 1
        ws[f"A{row}"] = "Account Validation"
        ws[f"A{row}"].font = Font(bold=True)
        row += 1
        for label, count in summary.validation.items():
            ws[f"A{row}"] = label
            ws[f"B{row}"] = count
            row += 1

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _create_divergences_sheet(self, wb: Workbook, divergences: list[Divergence]) -> None:
        ws = wb.create_sheet(self.sheet_config.divergences.name)

        headers = [
            "Type",
            "Description",
            "Statement Date",
            "Statement Description",
            "Statement Amount",
            "Statement Document",
            "Statement Account",
            "Ledger Date",
            "Ledger Description",
            "Ledger Amount",
            "Ledger Document",
            "Ledger Account",
            "Amount Difference",
        ]
        self._write_headers(ws, headers)

        for row_num, divergence in enumerate(divergences, start=2):
            row_data = (
                [divergence.type.value, divergence.description]
                + _snapshot_cells(divergence.statement)
                + _snapshot_cells(divergence.ledger)
                + [float(divergence.amount_difference) if divergence.amount_difference is not None else ""]
            )

            fill = DIVERGENCE_FILLS[divergence.type]
            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                cell.fill = fill

        self._auto_fit_columns(ws)

    def _create_validation_sheet(self, wb: Workbook, results: list[ValidationResult]) -> None:
        ws = wb.create_sheet(self.sheet_config.validation.name)

        headers = [
            "Entry Key",
            "Account Code",
            "Status",
            "Reason",
            "Message",
            "Rule",
            "Allowed Prefixes",
            "Allowed Codes",
            "Blocked Prefixes",
            "Blocked Codes",
        ]
        self._write_headers(ws, headers)

        for row_num, result in enumerate(results, start=2):
            constraints = result.expected_constraints
            row_data = [
                result.transaction_key,
                result.account_code,
                result.status.value,
                result.reason_code.value,
                result.message,
                result.metadata.get("rule_id", ""),
                ", ".join(constraints.allowed_prefixes) if constraints else "",
                ", ".join(constraints.allowed_codes) if constraints else "",
                ", ".join(constraints.blocked_prefixes) if constraints else "",
                ", ".join(constraints.blocked_codes) if constraints else "",
            ]

            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                if col == 3:
                    cell.fill = VALIDATION_FILLS[result.status]

        self._auto_fit_columns(ws)

    def _create_parsing_issues_sheet(self, wb: Workbook, issues: list[str]) -> None:
        ws = wb.create_sheet(self.sheet_config.parsing_issues.name)
        self._write_headers(ws, ["#", "Issue"])

        for row_num, issue in enumerate(issues, start=2):
            ws.cell(row=row_num, column=1, value=row_num - 1).border = THIN_BORDER
            ws.cell(row=row_num, column=2, value=issue).border = THIN_BORDER

        self._auto_fit_columns(ws)

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = 0
            column = column_cells[0].column_letter

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, 50)


class ExcelReportSink(OutputSink):
    """
    Output sink that buffers a job's results and writes one workbook when the
    job completes. Failed jobs produce no report.
    """

    def __init__(self, config: ReconConfig, output_dir: Path, output_path: Optional[Path] = None):
        """
        Args:
            config: Application configuration
            output_dir: Directory reports are written to
            output_path: Fixed report path; overrides the configured file name template
        """
        self.config = config
        self.output_dir = output_dir
        self.output_path = output_path
        self.generator = ExcelReportGenerator(config)
        self.report_paths: dict[str, Path] = {}
        self._divergences: dict[str, list[Divergence]] = {}
        self._validation_results: dict[str, list[ValidationResult]] = {}
        self._lock = Lock()

    def persist_divergences(self, job_id: str, divergences: list[Divergence]) -> None:
        with self._lock:
            self._divergences.setdefault(job_id, []).extend(divergences)

    def persist_validation_results(self, job_id: str, results: list[ValidationResult]) -> None:
        with self._lock:
            self._validation_results.setdefault(job_id, []).extend(results)

    def clear_job_outputs(self, job_id: str) -> None:
        with self._lock:
            self._divergences.pop(job_id, None)
            self._validation_results.pop(job_id, None)

    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        summary: Optional[JobSummary] = None,
    ) -> None:
        if status is not JobStatus.COMPLETED:
            if error:
                logger.warning(f"Job {job_id} {status.value}: {error}")
            return

        with self._lock:
            divergences = self._divergences.pop(job_id, [])
            results = self._validation_results.pop(job_id, [])

        path = self.output_path or self.output_dir / self.report_filename(job_id)
        try:
            self.report_paths[job_id] = self.generator.generate_report(
                job_id, summary or JobSummary(), divergences, results, path
            )
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {path}: {e}") from e

    def report_filename(self, job_id: str) -> str:
        now = datetime.now()
        return self.config.output.excel.filename_template.format(
            job_id=job_id,
            date=now.strftime("%Y%m%d"),
            time=now.strftime("%H%M%S"),
        )
