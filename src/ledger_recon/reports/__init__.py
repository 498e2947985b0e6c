"""Report generation."""

from .excel_generator import ExcelReportGenerator, ExcelReportSink

__all__ = ["ExcelReportGenerator", "ExcelReportSink"]
