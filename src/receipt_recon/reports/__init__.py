"""Statistics and report generation."""

from .statistics import PairVariance, ReconciliationStatistics, ReconciliationSummary
from .unified import RowStatus, StatusFilter, UnifiedReportRow, build_unified_report
from .excel_generator import ExcelReportGenerator

__all__ = [
    "PairVariance",
    "ReconciliationStatistics",
    "ReconciliationSummary",
    "RowStatus",
    "StatusFilter",
    "UnifiedReportRow",
    "build_unified_report",
    "ExcelReportGenerator",
]
