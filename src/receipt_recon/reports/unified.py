"""Single list view combining bank transactions with their receipts."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..models.ledger import MatchOrigin, MatchState
from ..models.working_set import LedgerWorkingSet


class RowStatus(Enum):
    MATCHED = "MATCHED"
    MISSING_RECEIPT = "MISSING_RECEIPT"  # Expense with no receipt
    INCOME = "INCOME"  # Unmatched income, no receipt expected
    IGNORED = "IGNORED"
    NOT_IN_BANK = "NOT_IN_BANK"  # Receipt with no bank transaction


class StatusFilter(Enum):
    ALL = "all"
    MATCHED = "matched"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class UnifiedReportRow:
    """One line of the unified reconciliation report."""

    id: str
    source: str  # "BANK" or "RECEIPT"
    status: RowStatus
    date: date
    bank_description: str = ""
    bank_amount: Optional[Decimal] = None
    receipt_id: Optional[str] = None
    receipt_date: Optional[date] = None
    receipt_vendor: str = ""
    receipt_amount: Optional[Decimal] = None
    currency: str = ""
    variance: Optional[Decimal] = None
    match_origin: Optional[MatchOrigin] = None
    notes: str = ""


def build_unified_report(
    working_set: LedgerWorkingSet,
    status_filter: StatusFilter = StatusFilter.ALL,
) -> list[UnifiedReportRow]:
    """
    Build report rows, newest first.

    Variance is ``|bank amount| - receipt amount`` in the original currencies.
    Receipts are shown as negative amounts so they line up with bank debits.
    """
    rows: list[UnifiedReportRow] = []
    receipts = {r.id: r for r in working_set.receipts}

    if status_filter is not StatusFilter.UNMATCHED:
        for txn in working_set.transactions:
            if not txn.is_matched:
                continue
            receipt = receipts[txn.matched_receipt_id]
            rows.append(
                UnifiedReportRow(
                    id=txn.id,
                    source="BANK",
                    status=RowStatus.MATCHED,
                    date=txn.date,
                    bank_description=txn.description,
                    bank_amount=txn.amount.magnitude,
                    receipt_id=receipt.id,
                    receipt_date=receipt.date,
                    receipt_vendor=receipt.vendor,
                    receipt_amount=-receipt.amount.magnitude,
                    currency=txn.amount.currency_code,
                    variance=abs(txn.amount.magnitude) - receipt.amount.magnitude,
                    match_origin=txn.match_origin,
                    notes=txn.rationale or "",
                )
            )

    if status_filter is not StatusFilter.MATCHED:
        for txn in working_set.transactions:
            if txn.is_matched:
                continue
            if txn.match_state is MatchState.IGNORED:
                status = RowStatus.IGNORED
            elif txn.is_expense:
                status = RowStatus.MISSING_RECEIPT
            else:
                status = RowStatus.INCOME
            rows.append(
                UnifiedReportRow(
                    id=txn.id,
                    source="BANK",
                    status=status,
                    date=txn.date,
                    bank_description=txn.description,
                    bank_amount=txn.amount.magnitude,
                    currency=txn.amount.currency_code,
                )
            )

        for receipt in working_set.unmatched_receipts():
            rows.append(
                UnifiedReportRow(
                    id=receipt.id,
                    source="RECEIPT",
                    status=RowStatus.NOT_IN_BANK,
                    date=receipt.date,
                    receipt_id=receipt.id,
                    receipt_date=receipt.date,
                    receipt_vendor=receipt.vendor,
                    receipt_amount=receipt.amount.magnitude,
                    currency=receipt.amount.currency_code,
                    notes="Logged but not in bank",
                )
            )

    rows.sort(key=lambda row: row.date, reverse=True)
    return rows
