"""
Coverage and variance metrics over the current match state.

Statistics are always recomputed from scratch: deterministic, suggested and
manual matching can each change the state between two calls.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from ..matching.currency import CurrencyNormalizer, Rate
from ..models.ledger import MatchOrigin, MatchState, Receipt, Transaction


@dataclass(frozen=True)
class PairVariance:
    """Amount difference between a matched transaction and its receipt."""

    transaction_id: str
    receipt_id: str
    variance: Decimal  # |transaction| - receipt, in reporting currency


@dataclass
class ReconciliationSummary:
    """Snapshot of reconciliation progress."""

    reporting_currency: str

    # Transaction counts
    total_transactions: int  # Non-ignored, income included
    ignored_count: int
    matched_count: int
    missing_receipts: int  # Unmatched expense transactions

    # Receipt counts
    total_receipts: int
    unmatched_receipts: int

    # Expense values in reporting currency
    total_expense_value: Decimal
    matched_expense_value: Decimal

    # Variance totals
    total_amount_variance: Decimal
    variance_count: int

    # Match origin breakdown
    matches_by_origin: dict[MatchOrigin, int] = field(default_factory=dict)
    variances: list[PairVariance] = field(default_factory=list)

    @property
    def unmatched_expense_value(self) -> Decimal:
        return self.total_expense_value - self.matched_expense_value

    @property
    def count_coverage(self) -> float:
        """Share of non-ignored transactions (income included) that are matched."""
        if self.total_transactions == 0:
            return 0.0
        return self.matched_count / self.total_transactions

    @property
    def value_coverage(self) -> float:
        """Share of expense value that is matched. 1.0 when there is no expense value."""
        if self.total_expense_value == 0:
            return 1.0
        return float(self.matched_expense_value / self.total_expense_value)


class ReconciliationStatistics:
    """Stateless projection from transactions and receipts to a summary."""

    @staticmethod
    def compute(
        transactions: list[Transaction],
        receipts: list[Receipt],
        rate_table: Mapping[str, Rate],
        reporting_currency: str,
        normalizer: Optional[CurrencyNormalizer] = None,
    ) -> ReconciliationSummary:
        """
        Compute coverage and variance metrics.

        Args:
            transactions: All transactions, including ignored ones
            receipts: All receipts
            rate_table: Currency code -> rate into the reporting currency
            reporting_currency: Currency for value figures
            normalizer: Optional pre-built normalizer to reuse

        Returns:
            Reconciliation summary
        """
        normalizer = normalizer or CurrencyNormalizer(rate_table, reporting_currency)
        receipts_by_id = {r.id: r for r in receipts}

        by_origin = {origin: 0 for origin in MatchOrigin}
        total = ignored = matched = missing = 0
        total_expense = Decimal("0")
        matched_expense = Decimal("0")
        variances: list[PairVariance] = []

        for txn in transactions:
            if txn.match_state is MatchState.IGNORED:
                ignored += 1
                continue

            total += 1
            value = abs(normalizer.normalize(txn.amount))
            if txn.is_expense:
                total_expense += value

            if not txn.is_matched:
                if txn.is_expense:
                    missing += 1
                continue

            matched += 1
            by_origin[txn.match_origin] += 1
            if txn.is_expense:
                matched_expense += value

            receipt = receipts_by_id.get(txn.matched_receipt_id)
            if receipt is not None:
                variance = value - normalizer.normalize(receipt.amount)
                variances.append(PairVariance(txn.id, receipt.id, variance))

        matched_receipt_ids = {t.matched_receipt_id for t in transactions if t.is_matched}
        unmatched_receipts = sum(1 for r in receipts if r.id not in matched_receipt_ids)

        return ReconciliationSummary(
            reporting_currency=reporting_currency,
            total_transactions=total,
            ignored_count=ignored,
            matched_count=matched,
            missing_receipts=missing,
            total_receipts=len(receipts),
            unmatched_receipts=unmatched_receipts,
            total_expense_value=total_expense,
            matched_expense_value=matched_expense,
            total_amount_variance=sum((v.variance for v in variances), Decimal("0")),
            variance_count=sum(1 for v in variances if v.variance != 0),
            matches_by_origin=by_origin,
            variances=variances,
        )
