"""
CSV importers for already-structured statement rows and receipts.

Rows come from upstream statement parsing or document capture; no field
extraction happens here.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional
import logging

import pandas as pd

from ..config import CsvInputConfig
from ..models.ledger import MonetaryAmount, Receipt, Transaction
from ..utils.exceptions import ImportParseError

logger = logging.getLogger(__name__)


class _CsvImporter:
    """Shared CSV reading and value parsing."""

    def __init__(self, config: CsvInputConfig):
        """
        Initialize the importer with configuration.

        Args:
            config: CSV options and column mappings
        """
        self.config = config
        self.column_mappings = config.column_mappings

    def _read(self, file_path: Path) -> pd.DataFrame:
        logger.info(f"Reading CSV file: {file_path}")
        try:
            return pd.read_csv(
                file_path,
                encoding=self.config.encoding,
                delimiter=self.config.delimiter,
                dtype=str,
                keep_default_na=False,
            )
        except Exception as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise ImportParseError(f"Failed to read CSV file {file_path}: {e}") from e

    def _column(self, field: str) -> str:
        return self.column_mappings.get(field, field.title())

    def _value(self, row: pd.Series, field: str) -> str:
        value = row.get(self._column(field), "")
        return "" if value is None or pd.isna(value) else str(value).strip()

    def _row_id(self, row: pd.Series, idx: int, stem: str) -> str:
        return self._value(row, "id") or f"{self.config.id_prefix}-{stem}-{idx:05d}"

    def _currency(self, row: pd.Series) -> str:
        return self._value(row, "currency") or self.config.default_currency

    def _parse_date(self, value: str) -> Optional[date]:
        """
        Parse a date using the configured format, falling back to pandas.

        Returns:
            Python date object or None
        """
        if not value:
            return None
        try:
            return datetime.strptime(value, self.config.date_format).date()
        except ValueError:
            try:
                return pd.to_datetime(value).date()
            except (ValueError, TypeError):
                return None

    @staticmethod
    def _parse_amount(value: str) -> Optional[Decimal]:
        """
        Parse an amount, tolerating currency symbols, thousands separators
        and accounting-style parentheses for negatives.

        Returns:
            Decimal amount or None
        """
        if not value:
            return None
        cleaned = value.replace("$", "").replace(",", "").replace(" ", "")
        negative = cleaned.startswith("(") and cleaned.endswith(")")
        if negative:
            cleaned = cleaned[1:-1]
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None
        if not amount.is_finite():
            return None
        return -amount if negative else amount


class StatementImporter(_CsvImporter):
    """Reads bank statement rows (date, description, signed amount, currency)."""

    def parse_file(self, file_path: Path) -> list[Transaction]:
        """
        Parse a statement CSV.

        Rows without a valid date or amount are skipped with a warning.

        Raises:
            ImportParseError: If the file cannot be read
        """
        df = self._read(file_path)
        transactions: list[Transaction] = []

        for idx, row in df.iterrows():
            txn = self._normalize_row(row, int(idx), file_path)
            if txn:
                transactions.append(txn)

        logger.info(f"Extracted {len(transactions)} transactions from {file_path.name}")
        return transactions

    def _normalize_row(self, row: pd.Series, idx: int, file_path: Path) -> Optional[Transaction]:
        txn_date = self._parse_date(self._value(row, "date"))
        if not txn_date:
            logger.warning(f"Row {idx}: Invalid date, skipping")
            return None

        amount = self._parse_amount(self._value(row, "amount"))
        if amount is None:
            logger.warning(f"Row {idx}: No valid amount found, skipping")
            return None

        return Transaction(
            id=self._row_id(row, idx, file_path.stem),
            date=txn_date,
            description=self._value(row, "description"),
            amount=MonetaryAmount(amount, self._currency(row)),
            source_file=file_path.name,
        )


class ReceiptImporter(_CsvImporter):
    """Reads structured receipt records produced by document capture."""

    def parse_file(self, file_path: Path) -> list[Receipt]:
        """
        Parse a receipts CSV.

        Raises:
            ImportParseError: If the file cannot be read
        """
        df = self._read(file_path)
        receipts: list[Receipt] = []

        for idx, row in df.iterrows():
            receipt = self._normalize_row(row, int(idx), file_path)
            if receipt:
                receipts.append(receipt)

        logger.info(f"Extracted {len(receipts)} receipts from {file_path.name}")
        return receipts

    def _normalize_row(self, row: pd.Series, idx: int, file_path: Path) -> Optional[Receipt]:
        receipt_date = self._parse_date(self._value(row, "date"))
        if not receipt_date:
            logger.warning(f"Row {idx}: Invalid date, skipping")
            return None

        amount = self._parse_amount(self._value(row, "amount"))
        if amount is None:
            logger.warning(f"Row {idx}: No valid amount found, skipping")
            return None

        # Receipts record what was paid; store as a positive magnitude
        return Receipt(
            id=self._row_id(row, idx, file_path.stem),
            vendor=self._value(row, "vendor"),
            date=receipt_date,
            amount=MonetaryAmount(abs(amount), self._currency(row)),
            category=self._value(row, "category"),
            document_ref=self._value(row, "document_ref") or None,
        )


def summarize_rows(records: list[Any]) -> dict[str, Any]:
    """Date range and count for a list of imported transactions or receipts."""
    dates = [r.date for r in records]
    return {
        "row_count": len(records),
        "date_range": {
            "start": min(dates).isoformat() if dates else None,
            "end": max(dates).isoformat() if dates else None,
        },
    }
