"""
Rule-based matching of bank transactions to receipts.

A single greedy pass: transactions are visited in working-set order and each
takes the first eligible receipt. The result depends on ordering and is not
globally optimal. For example, two transactions that each have exactly one
feasible receipt can be paired wrongly when the first transaction also
accepts the second one's receipt.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional
import logging

from ..models.ledger import MatchOrigin, Receipt, Transaction

logger = logging.getLogger(__name__)

DEFAULT_DATE_WINDOW_DAYS = 5
DEFAULT_AMOUNT_TOLERANCE = Decimal("0.05")


def bucket_key(magnitude: Decimal) -> int:
    """Whole-unit bucket for an amount, ignoring sign."""
    return int(abs(magnitude).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class DeterministicMatcher:
    """Exact matching on currency, amount (within tolerance) and date window."""

    RATIONALE = "Exact match on amount, currency and date"

    def __init__(
        self,
        date_window_days: int = DEFAULT_DATE_WINDOW_DAYS,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    ):
        """
        Initialize with matching tolerances.

        Args:
            date_window_days: Maximum days between transaction and receipt dates
            amount_tolerance: Amount difference must be strictly below this value
        """
        if date_window_days < 0:
            raise ValueError("date_window_days must not be negative")
        self.date_window_days = date_window_days
        self.amount_tolerance = Decimal(str(amount_tolerance))

    def run(
        self,
        transactions: list[Transaction],
        receipts: list[Receipt],
    ) -> tuple[list[Transaction], int]:
        """
        Match unmatched transactions against unmatched receipts.

        Args:
            transactions: Transactions in working-set order
            receipts: All receipts; those already referenced are skipped

        Returns:
            Tuple of (updated transactions in the same order, new match count)
        """
        consumed = {t.matched_receipt_id for t in transactions if t.matched_receipt_id}
        buckets = self._bucket_receipts(r for r in receipts if r.id not in consumed)

        updated: list[Transaction] = []
        new_matches = 0

        for txn in transactions:
            if not txn.is_available:
                updated.append(txn)
                continue

            pool = buckets.get(bucket_key(txn.amount.magnitude), [])
            receipt = self.find_match(txn, pool)
            if receipt is None:
                updated.append(txn)
                continue

            pool.remove(receipt)
            updated.append(txn.with_match(receipt.id, MatchOrigin.DETERMINISTIC, self.RATIONALE))
            new_matches += 1
            logger.debug(f"Matched transaction {txn.id} to receipt {receipt.id}")

        logger.info(f"Deterministic pass: {new_matches} new matches")
        return updated, new_matches

    def find_match(self, txn: Transaction, candidates: list[Receipt]) -> Optional[Receipt]:
        """Return the first candidate that satisfies every rule."""
        return next((r for r in candidates if self.is_match(txn, r)), None)

    def is_match(self, txn: Transaction, receipt: Receipt) -> bool:
        if txn.amount.currency_code != receipt.amount.currency_code:
            return False
        amount_diff = abs(abs(txn.amount.magnitude) - receipt.amount.magnitude)
        if amount_diff >= self.amount_tolerance:
            return False
        return _days_between(txn.date, receipt.date) <= self.date_window_days

    def _bucket_receipts(self, receipts: Iterable[Receipt]) -> dict[int, list[Receipt]]:
        buckets: dict[int, list[Receipt]] = defaultdict(list)
        for receipt in receipts:
            buckets[bucket_key(receipt.amount.magnitude)].append(receipt)
        return buckets


def _days_between(d1: date, d2: date) -> int:
    return abs((d1 - d2).days)
