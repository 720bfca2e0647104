"""
Fuzzy-match suggestions and their human review workflow.

Suggestions come from an external service and are never applied
automatically. While a request is outstanding the working set may change
underneath it, so accepting a suggestion re-checks the live match state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
import logging

from ..models.ledger import MatchOrigin, MatchSuggestion, Receipt, Transaction
from ..models.working_set import LedgerWorkingSet
from ..utils.exceptions import (
    ConsistencyConflict,
    SuggestionRequestInProgress,
    UnknownSuggestionError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionProjection:
    """Reduced transaction sent to the fuzzy-match service (no currency)."""

    id: str
    date: date
    description: str
    amount: Decimal

    @classmethod
    def of(cls, txn: Transaction) -> "TransactionProjection":
        return cls(id=txn.id, date=txn.date, description=txn.description, amount=txn.amount.magnitude)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
        }


@dataclass(frozen=True)
class ReceiptProjection:
    """Reduced receipt sent to the fuzzy-match service (no currency)."""

    id: str
    date: date
    vendor: str
    amount: Decimal

    @classmethod
    def of(cls, receipt: Receipt) -> "ReceiptProjection":
        return cls(id=receipt.id, date=receipt.date, vendor=receipt.vendor, amount=receipt.amount.magnitude)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "vendor": self.vendor,
            "amount": float(self.amount),
        }


class FuzzyMatcher(ABC):
    """External capability proposing transaction/receipt pairs."""

    @abstractmethod
    async def suggest(
        self,
        transactions: list[TransactionProjection],
        receipts: list[ReceiptProjection],
    ) -> list[MatchSuggestion]:
        """
        Propose matches between the given transactions and receipts.

        Implementations apply their own confidence floor and return only
        pairs they are confident about.

        Raises:
            SuggestionServiceError: On transport or response parsing failure
        """
        pass


class SuggestionOrchestrator:
    """Requests suggestions for unmatched items and manages their review."""

    def __init__(self, fuzzy_matcher: FuzzyMatcher):
        self.fuzzy_matcher = fuzzy_matcher
        self._pending: list[MatchSuggestion] = []
        self._in_flight = False

    @property
    def pending(self) -> list[MatchSuggestion]:
        return list(self._pending)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def request(self, working_set: LedgerWorkingSet) -> list[MatchSuggestion]:
        """
        Ask the fuzzy-match service about everything still unmatched.

        The working set is not modified. On success the returned suggestions
        replace the pending review list; on failure the error propagates and
        the previous list is kept.

        Returns:
            New pending suggestions (empty means no further matches found)
        """
        if self._in_flight:
            raise SuggestionRequestInProgress("A suggestion request is already in progress")

        transactions = [TransactionProjection.of(t) for t in working_set.unmatched_transactions()]
        receipts = [ReceiptProjection.of(r) for r in working_set.unmatched_receipts()]

        if not transactions or not receipts:
            logger.info("Nothing left to suggest: no unmatched transactions or receipts")
            self._pending = []
            return []

        logger.info(
            f"Requesting suggestions for {len(transactions)} transactions "
            f"and {len(receipts)} receipts"
        )
        self._in_flight = True
        try:
            suggestions = await self.fuzzy_matcher.suggest(transactions, receipts)
        finally:
            self._in_flight = False

        self._pending = self._screen(
            suggestions,
            {t.id for t in transactions},
            {r.id for r in receipts},
        )
        logger.info(f"Received {len(self._pending)} suggestions for review")
        return self.pending

    def accept(self, working_set: LedgerWorkingSet, suggestion: MatchSuggestion) -> Transaction:
        """
        Apply a pending suggestion after re-validating it against live state.

        Raises:
            UnknownSuggestionError: If the suggestion is not pending
            ConsistencyConflict: If either side was matched, ignored or removed
                meanwhile; the stale suggestion is dropped
        """
        self._require_pending(suggestion)

        conflict = self._find_conflict(working_set, suggestion)
        if conflict:
            self._pending = [s for s in self._pending if s.key != suggestion.key]
            logger.warning(f"Dropped stale suggestion {suggestion.key}: {conflict}")
            raise ConsistencyConflict(conflict)

        updated = working_set.apply_match(
            suggestion.transaction_id,
            suggestion.receipt_id,
            MatchOrigin.SUGGESTED,
            suggestion.rationale,
        )
        self._pending = [
            s for s in self._pending if s.transaction_id != suggestion.transaction_id
        ]
        logger.info(
            f"Accepted suggestion: transaction {suggestion.transaction_id} "
            f"-> receipt {suggestion.receipt_id}"
        )
        return updated

    def dismiss(self, suggestion: MatchSuggestion) -> None:
        self._require_pending(suggestion)
        self._pending = [s for s in self._pending if s.key != suggestion.key]
        logger.debug(f"Dismissed suggestion {suggestion.key}")

    def clear(self) -> None:
        self._pending = []

    def _require_pending(self, suggestion: MatchSuggestion) -> None:
        if not any(s.key == suggestion.key for s in self._pending):
            raise UnknownSuggestionError(
                f"No pending suggestion for transaction {suggestion.transaction_id} "
                f"and receipt {suggestion.receipt_id}"
            )

    @staticmethod
    def _find_conflict(working_set: LedgerWorkingSet, suggestion: MatchSuggestion) -> str:
        txn = working_set.find_transaction(suggestion.transaction_id)
        if txn is None:
            return f"Transaction {suggestion.transaction_id} no longer exists"
        if not txn.is_available:
            return f"Transaction {txn.id} is already {txn.match_state.value}"

        if working_set.find_receipt(suggestion.receipt_id) is None:
            return f"Receipt {suggestion.receipt_id} no longer exists"
        owner = working_set.transaction_for_receipt(suggestion.receipt_id)
        if owner is not None:
            return f"Receipt {suggestion.receipt_id} is already matched to transaction {owner.id}"
        return ""

    @staticmethod
    def _screen(
        suggestions: list[MatchSuggestion],
        transaction_ids: set[str],
        receipt_ids: set[str],
    ) -> list[MatchSuggestion]:
        """Drop pairs outside the request and duplicate pairs."""
        screened: list[MatchSuggestion] = []
        seen: set[tuple[str, str]] = set()
        for suggestion in suggestions:
            if suggestion.transaction_id not in transaction_ids or suggestion.receipt_id not in receipt_ids:
                logger.warning(f"Ignoring suggestion for unknown ids {suggestion.key}")
                continue
            if suggestion.key in seen:
                continue
            seen.add(suggestion.key)
            screened.append(suggestion)
        return screened
