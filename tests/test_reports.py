from decimal import Decimal

import pytest
from openpyxl import load_workbook

from receipt_recon.models.ledger import MatchOrigin
from receipt_recon.reports.excel_generator import ExcelReportGenerator
from receipt_recon.reports.statistics import ReconciliationStatistics
from receipt_recon.reports.unified import RowStatus, StatusFilter, build_unified_report
from receipt_recon.utils.exceptions import ReportGenerationError


@pytest.fixture
def reconciled(working_set):
    working_set.apply_match("T1", "R1", MatchOrigin.DETERMINISTIC, "Exact match on amount, currency and date")
    return working_set


def test_unified_rows_cover_every_record(reconciled):
    rows = build_unified_report(reconciled)
    by_id = {row.id: row for row in rows}

    assert by_id["T1"].status is RowStatus.MATCHED
    assert by_id["T1"].receipt_amount == Decimal("-50.00")
    assert by_id["T1"].variance == Decimal("0")
    assert by_id["T2"].status is RowStatus.MISSING_RECEIPT
    assert by_id["T3"].status is RowStatus.INCOME
    assert by_id["R2"].status is RowStatus.NOT_IN_BANK
    assert by_id["R3"].notes == "Logged but not in bank"
    assert "R1" not in by_id


def test_rows_are_newest_first(reconciled):
    dates = [row.date for row in build_unified_report(reconciled)]
    assert dates == sorted(dates, reverse=True)


def test_status_filters(reconciled):
    matched = build_unified_report(reconciled, StatusFilter.MATCHED)
    unmatched = build_unified_report(reconciled, StatusFilter.UNMATCHED)

    assert [row.id for row in matched] == ["T1"]
    assert {row.status for row in unmatched} == {
        RowStatus.MISSING_RECEIPT,
        RowStatus.INCOME,
        RowStatus.NOT_IN_BANK,
    }


def test_excel_report_sheets(config, reconciled, tmp_path):
    summary = ReconciliationStatistics.compute(
        reconciled.transactions, reconciled.receipts, config.currency.exchange_rates, "USD"
    )
    output = tmp_path / "out" / "report.xlsx"

    path = ExcelReportGenerator(config).generate_report(
        summary, build_unified_report(reconciled), reconciled.history, output
    )

    wb = load_workbook(path)
    assert wb.sheetnames == ["Summary", "Unified Report", "Match History"]
    assert wb["Unified Report"]["A1"].value == "Status"
    assert wb["Unified Report"].max_row == 6
    assert wb["Match History"]["B6"].value == "T1"


def test_excel_report_needs_a_sheet(config, reconciled, tmp_path):
    for sheet in (config.output.sheets.summary, config.output.sheets.unified, config.output.sheets.history):
        sheet.enabled = False
    summary = ReconciliationStatistics.compute([], [], {}, "USD")

    with pytest.raises(ReportGenerationError):
        ExcelReportGenerator(config).generate_report(summary, [], [], tmp_path / "r.xlsx")
