"""Operator-driven linking and unlinking of single transaction/receipt pairs."""

import logging

from ..models.ledger import MatchOrigin, Transaction
from ..models.working_set import LedgerWorkingSet
from ..utils.exceptions import MatchStateError, SelectionError

logger = logging.getLogger(__name__)


class ManualMatchController:
    """
    Applies explicit link/unlink requests.

    Holds the operator's current selection of transactions and receipts; a
    successful link clears it.
    """

    RATIONALE = "Manually linked"
    UNLINK_NOTE = "Manually unlinked"

    def __init__(self) -> None:
        self.selected_transaction_ids: set[str] = set()
        self.selected_receipt_ids: set[str] = set()

    def toggle_transaction(self, transaction_id: str) -> bool:
        """Flip selection of a transaction. Returns True if it is now selected."""
        return _toggle(self.selected_transaction_ids, transaction_id)

    def toggle_receipt(self, receipt_id: str) -> bool:
        return _toggle(self.selected_receipt_ids, receipt_id)

    def clear_selection(self) -> None:
        self.selected_transaction_ids = set()
        self.selected_receipt_ids = set()

    def link_selected(self, working_set: LedgerWorkingSet) -> Transaction:
        """Link the single selected transaction to the single selected receipt."""
        n_txns = len(self.selected_transaction_ids)
        n_receipts = len(self.selected_receipt_ids)
        if n_txns != 1 or n_receipts != 1:
            raise SelectionError(
                "Select exactly one bank transaction and one receipt to link "
                f"({n_txns} transactions and {n_receipts} receipts selected)"
            )
        (transaction_id,) = self.selected_transaction_ids
        (receipt_id,) = self.selected_receipt_ids
        return self.link(working_set, transaction_id, receipt_id)

    def link(
        self, working_set: LedgerWorkingSet, transaction_id: str, receipt_id: str
    ) -> Transaction:
        """
        Link a transaction to a receipt.

        Both must currently be unmatched in the live working set.

        Raises:
            UnknownRecordError: If either id does not exist
            MatchStateError: If either side is already matched, or the transaction is ignored
        """
        txn = working_set.get_transaction(transaction_id)
        working_set.get_receipt(receipt_id)

        if txn.is_matched:
            raise MatchStateError(
                f"Transaction {transaction_id} is already matched to receipt {txn.matched_receipt_id}"
            )
        if not txn.is_available:
            raise MatchStateError(f"Transaction {transaction_id} is {txn.match_state.value}")

        owner = working_set.transaction_for_receipt(receipt_id)
        if owner is not None:
            raise MatchStateError(
                f"Receipt {receipt_id} is already matched to transaction {owner.id}"
            )

        updated = working_set.apply_match(
            transaction_id, receipt_id, MatchOrigin.MANUAL, self.RATIONALE
        )
        self.clear_selection()
        logger.info(f"Linked transaction {transaction_id} -> receipt {receipt_id}")
        return updated

    def unlink(self, working_set: LedgerWorkingSet, transaction_id: str) -> Transaction:
        """Return a matched transaction and its receipt to the unmatched pool."""
        txn = working_set.get_transaction(transaction_id)
        if not txn.is_matched:
            raise MatchStateError(f"Transaction {transaction_id} is not matched")

        updated = working_set.clear_match(transaction_id, self.UNLINK_NOTE)
        logger.info(f"Unlinked transaction {transaction_id} from receipt {txn.matched_receipt_id}")
        return updated


def _toggle(selection: set[str], item_id: str) -> bool:
    if item_id in selection:
        selection.discard(item_id)
        return False
    selection.add(item_id)
    return True
