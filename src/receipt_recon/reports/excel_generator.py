"""
Excel report generator for reconciliation results.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig
from ..models.ledger import MatchAction, MatchEvent
from ..utils.exceptions import ReportGenerationError
from .statistics import ReconciliationSummary
from .unified import RowStatus, UnifiedReportRow

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
VARIANCE_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

ROW_FILLS = {
    RowStatus.MATCHED: MATCH_FILL,
    RowStatus.MISSING_RECEIPT: UNMATCHED_FILL,
    RowStatus.NOT_IN_BANK: VARIANCE_FILL,
}


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        self.config = config
        self.sheet_config = config.output.sheets

    def generate_report(
        self,
        summary: ReconciliationSummary,
        rows: list[UnifiedReportRow],
        history: list[MatchEvent],
        output_path: Path,
    ) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            summary: Reconciliation statistics
            rows: Unified report rows
            history: Match history events
            output_path: Path for output file

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        if self.sheet_config.summary.enabled:
            self._create_summary_sheet(wb, summary)
        if self.sheet_config.unified.enabled:
            self._create_unified_sheet(wb, rows)
        if self.sheet_config.history.enabled:
            self._create_history_sheet(wb, history)

        if not wb.sheetnames:
            raise ReportGenerationError("All report sheets are disabled")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(self, wb: Workbook, summary: ReconciliationSummary) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.sheet_config.summary.name)

        ws["A1"] = "Receipt Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        currency = summary.reporting_currency
        sections = [
            (
                "Transactions",
                [
                    ("Transactions (excl. ignored):", summary.total_transactions),
                    ("Ignored:", summary.ignored_count),
                    ("Matched:", summary.matched_count),
                    ("Expenses Missing Receipt:", summary.missing_receipts),
                ],
            ),
            (
                "Receipts",
                [
                    ("Total Receipts:", summary.total_receipts),
                    ("Not In Bank:", summary.unmatched_receipts),
                ],
            ),
            (
                "Coverage",
                [
                    ("Count Coverage:", f"{summary.count_coverage:.1%}"),
                    ("Value Coverage:", f"{summary.value_coverage:.1%}"),
                    ("Matched Expense Value:", f"{summary.matched_expense_value:,.2f} {currency}"),
                    ("Unmatched Expense Value:", f"{summary.unmatched_expense_value:,.2f} {currency}"),
                    ("Total Amount Variance:", f"{summary.total_amount_variance:,.2f} {currency}"),
                    ("Pairs With Variance:", summary.variance_count),
                ],
            ),
            (
                "Matches by Origin",
                [(f"{origin.value.title()}:", count) for origin, count in summary.matches_by_origin.items()],
            ),
        ]

        row = 3
        for title, items in sections:
            ws[f"A{row}"] = title
            ws[f"A{row}"].font = Font(bold=True)
            row += 1
            for label, value in items:
                ws[f"A{row}"] = label
                ws[f"B{row}"] = value
                row += 1
            row += 1

        ws.column_dimensions["A"].width = 32
        ws.column_dimensions["B"].width = 28

    def _create_unified_sheet(self, wb: Workbook, rows: list[UnifiedReportRow]) -> None:
        """Create the combined bank/receipt sheet."""
        ws = wb.create_sheet(self.sheet_config.unified.name)

        headers = [
            "Status",
            "Date",
            "Bank Description",
            "Bank Amount",
            "Receipt Date",
            "Receipt Vendor",
            "Receipt Amount",
            "Currency",
            "Variance",
            "Match Origin",
            "Notes",
        ]
        self._write_headers(ws, headers)

        for row_num, row in enumerate(rows, start=2):
            row_data = [
                row.status.value,
                row.date,
                row.bank_description,
                float(row.bank_amount) if row.bank_amount is not None else "",
                row.receipt_date or "",
                row.receipt_vendor,
                float(row.receipt_amount) if row.receipt_amount is not None else "",
                row.currency,
                float(row.variance) if row.variance is not None else "",
                row.match_origin.value if row.match_origin else "",
                row.notes,
            ]
            fill = ROW_FILLS.get(row.status)
            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                if row.variance and col == 9:
                    cell.fill = VARIANCE_FILL
                elif fill is not None:
                    cell.fill = fill

        self._auto_fit_columns(ws)

    def _create_history_sheet(self, wb: Workbook, history: list[MatchEvent]) -> None:
        """Create the match history (audit trail) sheet."""
        ws = wb.create_sheet(self.sheet_config.history.name)

        ws["A1"] = "Match History"
        ws["A1"].font = Font(size=14, bold=True)
        ws["A2"] = f"Generated At: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws["A3"] = f"Config File: {self.config.config_file_path or 'Default'}"

        headers = ["Timestamp", "Transaction ID", "Action", "Receipt ID", "Origin", "Rationale"]
        self._write_headers(ws, headers, row=5)

        for row_num, event in enumerate(history, start=6):
            log_data = [
                event.recorded_at.strftime("%Y-%m-%d %H:%M:%S"),
                event.transaction_id,
                event.action.value,
                event.receipt_id,
                event.origin.value if event.origin else "",
                event.rationale,
            ]
            for col, value in enumerate(log_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                if event.action is MatchAction.UNLINKED:
                    cell.fill = UNMATCHED_FILL

        self._auto_fit_columns(ws)

    @staticmethod
    def _write_headers(ws: Worksheet, headers: list[str], row: int = 1) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = 0
            column = column_cells[0].column_letter

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, 50)
