from datetime import date
from decimal import Decimal

import pytest

from receipt_recon.config import ReconConfig
from receipt_recon.models.ledger import MatchSuggestion, MonetaryAmount, Receipt, Transaction
from receipt_recon.models.working_set import LedgerWorkingSet
from receipt_recon.matching.suggestions import FuzzyMatcher


@pytest.fixture
def make_transaction():
    def _make(
        id: str,
        amount="-50.00",
        on: date = date(2024, 3, 1),
        currency: str = "USD",
        description: str = "CARD PURCHASE",
        **kwargs,
    ) -> Transaction:
        return Transaction(
            id=id,
            date=on,
            description=description,
            amount=MonetaryAmount(Decimal(str(amount)), currency),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_receipt():
    def _make(
        id: str,
        amount="50.00",
        on: date = date(2024, 3, 1),
        currency: str = "USD",
        vendor: str = "Coffee Shop",
        **kwargs,
    ) -> Receipt:
        return Receipt(
            id=id,
            vendor=vendor,
            date=on,
            amount=MonetaryAmount(Decimal(str(amount)), currency),
            **kwargs,
        )

    return _make


@pytest.fixture
def working_set(make_transaction, make_receipt) -> LedgerWorkingSet:
    """Two expenses with matching receipts, one income and one stray receipt."""
    return LedgerWorkingSet(
        transactions=[
            make_transaction("T1", "-50.00", date(2024, 3, 1)),
            make_transaction("T2", "-12.40", date(2024, 3, 4), description="TAXI"),
            make_transaction("T3", "1000.00", date(2024, 3, 5), description="SALARY"),
        ],
        receipts=[
            make_receipt("R1", "50.00", date(2024, 3, 2)),
            make_receipt("R2", "12.40", date(2024, 3, 3), vendor="Cab Co"),
            make_receipt("R3", "80.00", date(2024, 2, 10), vendor="Hotel"),
        ],
    )


@pytest.fixture
def config() -> ReconConfig:
    return ReconConfig()


class StubFuzzyMatcher(FuzzyMatcher):
    """Returns canned suggestions and records what it was asked."""

    def __init__(self, suggestions=None, error: Exception = None):
        self.suggestions = suggestions or []
        self.error = error
        self.calls = []

    async def suggest(self, transactions, receipts):
        self.calls.append(([t.id for t in transactions], [r.id for r in receipts]))
        if self.error is not None:
            raise self.error
        return list(self.suggestions)


@pytest.fixture
def stub_matcher():
    def _make(*pairs, error: Exception = None, confidence: float = 0.9) -> StubFuzzyMatcher:
        suggestions = [
            MatchSuggestion(tid, rid, confidence, f"{tid} looks like {rid}") for tid, rid in pairs
        ]
        return StubFuzzyMatcher(suggestions, error=error)

    return _make
