"""Importers for structured statement and receipt CSV files."""

from .csv_importer import StatementImporter, ReceiptImporter

__all__ = ["StatementImporter", "ReceiptImporter"]
