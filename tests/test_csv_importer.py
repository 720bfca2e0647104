from datetime import date
from decimal import Decimal

import pytest

from receipt_recon.config import CsvInputConfig, InputConfig
from receipt_recon.parsers.csv_importer import ReceiptImporter, StatementImporter, summarize_rows
from receipt_recon.utils.exceptions import ImportParseError


@pytest.fixture
def statement_csv(tmp_path):
    path = tmp_path / "march.csv"
    path.write_text(
        "ID,Date,Description,Amount,Currency\n"
        "B1,2024-03-01,COFFEE SHOP,-4.50,usd\n"
        ",2024-03-02,SALARY,\"2,500.00\",\n"
        "B3,not a date,BROKEN,-1.00,USD\n"
        "B4,2024-03-05,REFUND FEE,(12.00),EUR\n"
    )
    return path


def test_statement_rows(statement_csv):
    transactions = StatementImporter(InputConfig().statement).parse_file(statement_csv)

    assert [t.id for t in transactions] == ["B1", "TX-march-00001", "B4"]
    assert transactions[0].amount.magnitude == Decimal("-4.50")
    assert transactions[0].amount.currency_code == "USD"
    assert transactions[1].amount.magnitude == Decimal("2500.00")
    assert transactions[1].amount.currency_code == "USD"
    assert transactions[2].amount.magnitude == Decimal("-12.00")
    assert all(t.source_file == "march.csv" for t in transactions)
    assert not any(t.is_matched for t in transactions)


def test_receipt_rows_are_positive(tmp_path):
    path = tmp_path / "receipts.csv"
    path.write_text(
        "ID,Date,Vendor,Amount,Currency,Category,Document\n"
        "R1,2024-03-01,Coffee Shop,-4.50,USD,Meals,inbox/r1.jpg\n"
        "R2,2024-03-02,Cab Co,12.40,USD,Travel,\n"
    )

    receipts = ReceiptImporter(InputConfig().receipts).parse_file(path)

    assert [r.amount.magnitude for r in receipts] == [Decimal("4.50"), Decimal("12.40")]
    assert receipts[0].document_ref == "inbox/r1.jpg"
    assert receipts[1].document_ref is None
    assert receipts[1].category == "Travel"


def test_custom_mappings_and_date_format(tmp_path):
    path = tmp_path / "bank.csv"
    path.write_text("Posted;Memo;Value\n01/03/2024;Lunch;-9.99\n")
    config = CsvInputConfig(
        delimiter=";",
        date_format="%d/%m/%Y",
        default_currency="GBP",
        column_mappings={"date": "Posted", "description": "Memo", "amount": "Value"},
    )

    (txn,) = StatementImporter(config).parse_file(path)

    assert txn.date == date(2024, 3, 1)
    assert txn.description == "Lunch"
    assert txn.amount.currency_code == "GBP"


def test_unreadable_file_raises(tmp_path):
    with pytest.raises(ImportParseError):
        StatementImporter(InputConfig().statement).parse_file(tmp_path / "missing.csv")


def test_summarize_rows(statement_csv):
    transactions = StatementImporter(InputConfig().statement).parse_file(statement_csv)
    summary = summarize_rows(transactions)

    assert summary["row_count"] == 3
    assert summary["date_range"] == {"start": "2024-03-01", "end": "2024-03-05"}
    assert summarize_rows([])["date_range"]["start"] is None


def test_non_finite_amounts_are_skipped(tmp_path):
    path = tmp_path / "odd.csv"
    path.write_text(
        "ID,Date,Description,Amount,Currency\n"
        "B1,2024-03-01,BAD,NaN,USD\n"
        "B2,2024-03-01,BAD,Infinity,USD\n"
        "B3,2024-03-01,BAD,-sNaN,USD\n"
        "B4,2024-03-02,COFFEE,-50.00,USD\n"
    )

    transactions = StatementImporter(InputConfig().statement).parse_file(path)

    assert [(t.id, t.amount.magnitude) for t in transactions] == [("B4", Decimal("-50.00"))]
