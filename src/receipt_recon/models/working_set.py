"""
In-memory working set of transactions and receipts handed to the engine.

All match-state changes are staged on a candidate transaction list, checked
against the matching invariants and only then swapped in, so a failed change
never leaves the set partially updated.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
import logging

from .ledger import (
    MatchAction,
    MatchEvent,
    MatchOrigin,
    MatchState,
    Receipt,
    Transaction,
)
from ..utils.exceptions import (
    ConsistencyConflict,
    InputError,
    MatchStateError,
    UnknownRecordError,
)

logger = logging.getLogger(__name__)


@dataclass
class LedgerWorkingSet:
    """Transactions, receipts and the append-only match history."""

    transactions: list[Transaction] = field(default_factory=list)
    receipts: list[Receipt] = field(default_factory=list)
    history: list[MatchEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.validate(self.transactions, self.receipts)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def find_receipt(self, receipt_id: str) -> Optional[Receipt]:
        return next((r for r in self.receipts if r.id == receipt_id), None)

    def get_transaction(self, transaction_id: str) -> Transaction:
        txn = self.find_transaction(transaction_id)
        if txn is None:
            raise UnknownRecordError(f"Unknown transaction: {transaction_id}")
        return txn

    def get_receipt(self, receipt_id: str) -> Receipt:
        receipt = self.find_receipt(receipt_id)
        if receipt is None:
            raise UnknownRecordError(f"Unknown receipt: {receipt_id}")
        return receipt

    def matched_receipt_ids(self) -> dict[str, str]:
        """Map of receipt id to the id of the transaction it is matched to."""
        return {
            t.matched_receipt_id: t.id
            for t in self.transactions
            if t.matched_receipt_id is not None
        }

    def transaction_for_receipt(self, receipt_id: str) -> Optional[Transaction]:
        return next(
            (t for t in self.transactions if t.matched_receipt_id == receipt_id), None
        )

    def unmatched_transactions(self) -> list[Transaction]:
        """Transactions available for matching (neither matched nor ignored)."""
        return [t for t in self.transactions if t.is_available]

    def unmatched_receipts(self) -> list[Receipt]:
        matched = self.matched_receipt_ids()
        return [r for r in self.receipts if r.id not in matched]

    def history_for(self, transaction_id: str) -> list[MatchEvent]:
        return [e for e in self.history if e.transaction_id == transaction_id]

    # ------------------------------------------------------------------
    # Ingestion and removal
    # ------------------------------------------------------------------

    def ingest_transactions(self, batch: Iterable[Transaction]) -> int:
        """Append a parsed statement batch. Duplicate ids are rejected."""
        batch = list(batch)
        self._reject_duplicates([t.id for t in self.transactions], [t.id for t in batch], "transaction")
        candidate = self.transactions + batch
        self._check(candidate, self.receipts, error=InputError)
        self.transactions = candidate
        logger.info(f"Ingested {len(batch)} transactions ({len(candidate)} total)")
        return len(batch)

    def add_receipts(self, batch: Iterable[Receipt]) -> int:
        batch = list(batch)
        self._reject_duplicates([r.id for r in self.receipts], [r.id for r in batch], "receipt")
        self.receipts = self.receipts + batch
        logger.info(f"Added {len(batch)} receipts ({len(self.receipts)} total)")
        return len(batch)

    def remove_transaction(self, transaction_id: str) -> Transaction:
        """Remove a transaction; its receipt (if any) returns to the pool."""
        txn = self.get_transaction(transaction_id)
        if txn.is_matched:
            self._record(txn, txn.without_match(), "Transaction removed")
        self.transactions = [t for t in self.transactions if t.id != transaction_id]
        return txn

    def remove_receipt(self, receipt_id: str) -> Receipt:
        """Remove a receipt, clearing the match of any transaction pointing at it."""
        receipt = self.get_receipt(receipt_id)
        txn = self.transaction_for_receipt(receipt_id)
        remaining = [r for r in self.receipts if r.id != receipt_id]
        if txn is not None:
            self._commit(self._replaced(txn.without_match()), "Receipt removed", receipts=remaining)
        self.receipts = remaining
        return receipt

    # ------------------------------------------------------------------
    # Match transitions
    # ------------------------------------------------------------------

    def apply_match(
        self, transaction_id: str, receipt_id: str, origin: MatchOrigin, rationale: str
    ) -> Transaction:
        """Match one transaction to one receipt. Callers check preconditions first."""
        txn = self.get_transaction(transaction_id)
        self.get_receipt(receipt_id)
        updated = txn.with_match(receipt_id, origin, rationale)
        self._commit(self._replaced(updated))
        return updated

    def clear_match(self, transaction_id: str, note: str = "Unlinked") -> Transaction:
        txn = self.get_transaction(transaction_id)
        updated = txn.without_match()
        self._commit(self._replaced(updated), note)
        return updated

    def set_ignored(self, transaction_id: str, ignored: bool) -> Transaction:
        txn = self.get_transaction(transaction_id)
        if txn.is_matched:
            raise MatchStateError(
                f"Transaction {transaction_id} is matched to {txn.matched_receipt_id}; unlink it first"
            )
        state = MatchState.IGNORED if ignored else MatchState.UNMATCHED
        updated = txn.with_state(state)
        self._commit(self._replaced(updated))
        return updated

    def commit_transactions(self, updated: list[Transaction], note: str = "Unlinked") -> None:
        """
        Replace the transaction list with an updated version of itself.

        Args:
            updated: Same transactions (same ids, same order) with new match fields
            note: Rationale recorded for any match that was cleared

        Raises:
            ConsistencyConflict: If the update adds/drops transactions or breaks an invariant
        """
        if [t.id for t in updated] != [t.id for t in self.transactions]:
            raise ConsistencyConflict("Updated transaction list does not match the working set")
        self._commit(updated, note)

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    @staticmethod
    def validate(transactions: list[Transaction], receipts: list[Receipt]) -> None:
        """Raise ConsistencyConflict if the lists violate any matching invariant."""
        LedgerWorkingSet._check(transactions, receipts, error=ConsistencyConflict)

    @staticmethod
    def _check(
        transactions: list[Transaction], receipts: list[Receipt], error: type[Exception]
    ) -> None:
        duplicates = [i for i, n in Counter(t.id for t in transactions).items() if n > 1]
        if duplicates:
            raise error(f"Duplicate transaction ids: {', '.join(sorted(duplicates))}")

        duplicates = [i for i, n in Counter(r.id for r in receipts).items() if n > 1]
        if duplicates:
            raise error(f"Duplicate receipt ids: {', '.join(sorted(duplicates))}")

        receipt_ids = {r.id for r in receipts}
        claimed: dict[str, str] = {}
        for txn in transactions:
            rid = txn.matched_receipt_id
            if rid is None:
                continue
            if rid not in receipt_ids:
                raise error(f"Transaction {txn.id} is matched to missing receipt {rid}")
            if rid in claimed:
                raise error(
                    f"Receipt {rid} matched to both {claimed[rid]} and {txn.id}"
                )
            claimed[rid] = txn.id

    def _replaced(self, updated: Transaction) -> list[Transaction]:
        return [updated if t.id == updated.id else t for t in self.transactions]

    def _commit(
        self,
        candidate: list[Transaction],
        note: str = "Unlinked",
        receipts: Optional[list[Receipt]] = None,
    ) -> None:
        receipts = self.receipts if receipts is None else receipts
        self.validate(candidate, receipts)

        previous = {t.id: t for t in self.transactions}
        events: list[MatchEvent] = []
        for txn in candidate:
            before = previous.get(txn.id)
            if before is not None:
                events.extend(self._diff(before, txn, note))

        self.transactions = candidate
        self.history.extend(events)

    def _record(self, before: Transaction, after: Transaction, note: str) -> None:
        self.history.extend(self._diff(before, after, note))

    @staticmethod
    def _diff(before: Transaction, after: Transaction, note: str) -> list[MatchEvent]:
        if before.matched_receipt_id == after.matched_receipt_id:
            return []
        events: list[MatchEvent] = []
        if before.matched_receipt_id is not None:
            events.append(
                MatchEvent(
                    transaction_id=before.id,
                    action=MatchAction.UNLINKED,
                    receipt_id=before.matched_receipt_id,
                    origin=before.match_origin,
                    rationale=note,
                )
            )
        if after.matched_receipt_id is not None:
            events.append(
                MatchEvent(
                    transaction_id=after.id,
                    action=MatchAction.LINKED,
                    receipt_id=after.matched_receipt_id,
                    origin=after.match_origin,
                    rationale=after.rationale or "",
                )
            )
        return events

    @staticmethod
    def _reject_duplicates(existing: list[str], incoming: list[str], kind: str) -> None:
        clashes = set(existing) & set(incoming)
        repeated = {i for i, n in Counter(incoming).items() if n > 1}
        if clashes or repeated:
            ids = ", ".join(sorted(clashes | repeated))
            raise InputError(f"Duplicate {kind} ids in batch: {ids}")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "receipts": [r.to_dict() for r in self.receipts],
            "history": [e.to_dict() for e in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerWorkingSet":
        return cls(
            transactions=[Transaction.from_dict(t) for t in data.get("transactions", [])],
            receipts=[Receipt.from_dict(r) for r in data.get("receipts", [])],
            history=[MatchEvent.from_dict(e) for e in data.get("history", [])],
        )
