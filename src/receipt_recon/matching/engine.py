"""
Reconciliation engine: the single owner of a working set.

Coordinates the deterministic pass, fuzzy-match suggestions, manual linking
and statistics. Every mutating call goes through this handle; persistence,
when attached, is best-effort and can never change in-memory state.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional
import asyncio
import logging

from ..config import ReconConfig
from ..models.ledger import MatchSuggestion, Receipt, Transaction
from ..models.working_set import LedgerWorkingSet
from ..reports.statistics import ReconciliationStatistics, ReconciliationSummary
from ..reports.unified import StatusFilter, UnifiedReportRow, build_unified_report
from ..storage.json_store import JsonWorkingSetStore
from ..utils.exceptions import (
    ConfigurationError,
    StorageQuotaError,
    SuggestionServiceError,
)
from .currency import CurrencyNormalizer
from .deterministic import DeterministicMatcher
from .manual import ManualMatchController
from .suggestions import FuzzyMatcher, SuggestionOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SuggestionReport:
    """Outcome of a suggestion request."""

    suggestions: list[MatchSuggestion]
    deterministic_matches: int = 0

    @property
    def no_further_matches(self) -> bool:
        return not self.suggestions

    @property
    def message(self) -> str:
        if self.suggestions:
            return f"{len(self.suggestions)} suggested matches ready for review."
        if self.deterministic_matches:
            return (
                f"Found {self.deterministic_matches} exact matches. "
                f"No further matches found."
            )
        return "No further matches found."


class ReconciliationEngine:
    """
    Main reconciliation engine owning one working set.

    The engine assumes a single logical owner. The only call that suspends is
    ``request_suggestions``; manual links made while it is pending are safe
    because ``accept`` re-validates each suggestion.
    """

    def __init__(
        self,
        config: ReconConfig,
        working_set: Optional[LedgerWorkingSet] = None,
        fuzzy_matcher: Optional[FuzzyMatcher] = None,
        store: Optional[JsonWorkingSetStore] = None,
        ledger_key: str = "default",
    ):
        """
        Initialize the reconciliation engine.

        Args:
            config: Application configuration
            working_set: Initial working set (empty if omitted)
            fuzzy_matcher: External suggestion capability (optional)
            store: Persistence layer (optional)
            ledger_key: Key the working set is saved under
        """
        self.config = config
        self.working_set = working_set if working_set is not None else LedgerWorkingSet()
        self.store = store
        self.ledger_key = ledger_key

        self.matcher = DeterministicMatcher(
            date_window_days=config.matching.date_window_days,
            amount_tolerance=Decimal(str(config.matching.amount_tolerance)),
        )
        self.manual = ManualMatchController()
        self.orchestrator = SuggestionOrchestrator(fuzzy_matcher) if fuzzy_matcher else None
        self.normalizer = CurrencyNormalizer(
            config.currency.exchange_rates, config.currency.reporting_currency
        )

    # ------------------------------------------------------------------
    # Deterministic pass
    # ------------------------------------------------------------------

    def run_deterministic(self) -> int:
        """
        Run the rule-based matcher over the working set.

        Returns:
            Number of new matches (0 when re-run on unchanged data)
        """
        updated, new_matches = self.matcher.run(
            self.working_set.transactions, self.working_set.receipts
        )
        if new_matches:
            self.working_set.commit_transactions(updated)
            self._persist()
        return new_matches

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    async def request_suggestions(
        self,
        rerun_deterministic: Optional[bool] = None,
        timeout: Optional[float] = None,
    ) -> SuggestionReport:
        """
        Request fuzzy-match suggestions for everything still unmatched.

        Args:
            rerun_deterministic: Run the deterministic pass first; defaults to
                ``suggestions.rerun_deterministic`` from configuration
            timeout: Seconds to wait for the service; expiry raises SuggestionServiceError

        Raises:
            ConfigurationError: If no fuzzy matcher is configured
            SuggestionServiceError: If the service fails; match state is unchanged
        """
        orchestrator = self._require_orchestrator()

        if rerun_deterministic is None:
            rerun_deterministic = self.config.suggestions.rerun_deterministic
        deterministic_matches = self.run_deterministic() if rerun_deterministic else 0

        request = orchestrator.request(self.working_set)
        try:
            if timeout is None:
                suggestions = await request
            else:
                suggestions = await asyncio.wait_for(request, timeout)
        except asyncio.TimeoutError as e:
            raise SuggestionServiceError(
                f"Fuzzy-match service did not respond within {timeout}s"
            ) from e

        report = SuggestionReport(suggestions, deterministic_matches)
        logger.info(report.message)
        return report

    @property
    def pending_suggestions(self) -> list[MatchSuggestion]:
        return self.orchestrator.pending if self.orchestrator else []

    def accept(self, suggestion: MatchSuggestion) -> Transaction:
        updated = self._require_orchestrator().accept(self.working_set, suggestion)
        self._persist()
        return updated

    def dismiss(self, suggestion: MatchSuggestion) -> None:
        self._require_orchestrator().dismiss(suggestion)

    # ------------------------------------------------------------------
    # Manual matching
    # ------------------------------------------------------------------

    def select_transaction(self, transaction_id: str) -> bool:
        return self.manual.toggle_transaction(transaction_id)

    def select_receipt(self, receipt_id: str) -> bool:
        return self.manual.toggle_receipt(receipt_id)

    def link(self, transaction_id: str, receipt_id: str) -> Transaction:
        updated = self.manual.link(self.working_set, transaction_id, receipt_id)
        self._persist()
        return updated

    def link_selected(self) -> Transaction:
        updated = self.manual.link_selected(self.working_set)
        self._persist()
        return updated

    def unlink(self, transaction_id: str) -> Transaction:
        updated = self.manual.unlink(self.working_set, transaction_id)
        self._persist()
        return updated

    # ------------------------------------------------------------------
    # Ledger maintenance
    # ------------------------------------------------------------------

    def ingest_statement(self, transactions: Iterable[Transaction]) -> int:
        count = self.working_set.ingest_transactions(transactions)
        self._persist()
        return count

    def add_receipts(self, receipts: Iterable[Receipt]) -> int:
        count = self.working_set.add_receipts(receipts)
        self._persist()
        return count

    def remove_transaction(self, transaction_id: str) -> Transaction:
        removed = self.working_set.remove_transaction(transaction_id)
        self._persist()
        return removed

    def remove_receipt(self, receipt_id: str) -> Receipt:
        removed = self.working_set.remove_receipt(receipt_id)
        self._persist()
        return removed

    def ignore_transaction(self, transaction_id: str) -> Transaction:
        updated = self.working_set.set_ignored(transaction_id, True)
        self._persist()
        return updated

    def restore_transaction(self, transaction_id: str) -> Transaction:
        updated = self.working_set.set_ignored(transaction_id, False)
        self._persist()
        return updated

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def statistics(self) -> ReconciliationSummary:
        return ReconciliationStatistics.compute(
            self.working_set.transactions,
            self.working_set.receipts,
            self.config.currency.exchange_rates,
            self.config.currency.reporting_currency,
            normalizer=self.normalizer,
        )

    def unified_report(
        self, status_filter: StatusFilter = StatusFilter.ALL
    ) -> list[UnifiedReportRow]:
        return build_unified_report(self.working_set, status_filter)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_orchestrator(self) -> SuggestionOrchestrator:
        if self.orchestrator is None:
            raise ConfigurationError("No fuzzy-match service configured")
        return self.orchestrator

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self.ledger_key, self.working_set)
        except StorageQuotaError as e:
            logger.warning(f"Working set not saved: {e}")
        except OSError as e:
            logger.error(f"Failed to save working set '{self.ledger_key}': {e}")
